"""Folder sync: reconcile remote sales-order folders into pending items and
import them as Operations."""

from folder_sync.errors import (
    FolderSyncError,
    SourceUnavailableError,
    PendingItemNotFoundError,
    ConflictError,
    ScanInProgressError,
    DownstreamFailureError,
)
from folder_sync.models import (
    FileCategory,
    PendingStatus,
    ClassifiedFile,
    PendingItem,
    ScanResult,
    ImportResult,
)

__all__ = [
    "FolderSyncError",
    "SourceUnavailableError",
    "PendingItemNotFoundError",
    "ConflictError",
    "ScanInProgressError",
    "DownstreamFailureError",
    "FileCategory",
    "PendingStatus",
    "ClassifiedFile",
    "PendingItem",
    "ScanResult",
    "ImportResult",
]
