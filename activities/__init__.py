"""Activity definitions module."""

from activities.scan import (
    scan_sharepoint_folders,
    ScanFoldersInput,
    ScanFoldersOutput,
)

__all__ = [
    "scan_sharepoint_folders",
    "ScanFoldersInput",
    "ScanFoldersOutput",
]
