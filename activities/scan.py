"""Folder scan activity.

Temporal activity that runs one reconciliation pass of the remote folder
source into the pending item store.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from temporalio import activity
from temporalio.exceptions import ApplicationError

from core.observability.logging import (
    log_activity_complete,
    log_activity_error,
    log_activity_start,
    with_correlation,
)
from folder_sync.errors import ConflictError, SourceUnavailableError
from folder_sync.service import FolderSyncService
from folder_sync.settings import SyncSettings


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ScanFoldersInput:
    """Input for scan_sharepoint_folders activity.

    Attributes:
        source_uri: Override SYNC_SOURCE_URI ("sharepoint:" or "local:/path")
        db_path: Override SYNC_DB_PATH
    """
    source_uri: Optional[str] = None
    db_path: Optional[str] = None


@dataclass
class ScanFoldersOutput:
    """Output from scan_sharepoint_folders activity."""
    found: int
    new: int


# =============================================================================
# Activity Definition
# =============================================================================

@activity.defn
async def scan_sharepoint_folders(input: ScanFoldersInput) -> ScanFoldersOutput:
    """Reconcile the remote folder tree into pending items.

    A scan already holding the lease is not an error worth retrying: the
    other scan does the work, so it is reported as non-retryable. A source
    outage propagates and is retried by the workflow's retry policy.

    Args:
        input: ScanFoldersInput with optional source / database overrides

    Returns:
        ScanFoldersOutput with found / new counts
    """
    settings = SyncSettings.from_env()
    if input.source_uri:
        settings.source_uri = input.source_uri
    if input.db_path:
        settings.db_path = Path(input.db_path)

    info = activity.info()
    with with_correlation(workflow_id=info.workflow_id, activity_name=info.activity_type):
        log_activity_start("scan_sharepoint_folders", source=settings.source_uri)

        service = FolderSyncService.from_settings(settings)
        try:
            result = await service.scan()
        except ConflictError as e:
            log_activity_error("scan_sharepoint_folders", str(e))
            raise ApplicationError(str(e), type=type(e).__name__, non_retryable=True) from e
        except SourceUnavailableError as e:
            log_activity_error("scan_sharepoint_folders", str(e))
            raise
        finally:
            await service.close()

        log_activity_complete("scan_sharepoint_folders", found=result.found, new=result.new)
        return ScanFoldersOutput(found=result.found, new=result.new)
