"""Error taxonomy for the folder sync subsystem.

Every failure a caller can observe from a scan, an import or an ignore is one
of these. The API layer maps them onto HTTP status codes; Temporal activities
use them to decide what is retryable.
"""

from typing import Optional


class FolderSyncError(Exception):
    """Base exception for folder sync operations."""
    pass


class SourceUnavailableError(FolderSyncError):
    """The remote folder source could not be listed.

    Raised for connectivity, authentication and timeout failures. A scan that
    raises this has written nothing.
    """

    def __init__(self, message: str, source: str = "", status_code: int = 0):
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class PendingItemNotFoundError(FolderSyncError):
    """No pending item exists with the requested id."""

    def __init__(self, item_id: int):
        super().__init__(f"Pending item not found: {item_id}")
        self.item_id = item_id


class ConflictError(FolderSyncError):
    """A status precondition was violated.

    This is the expected outcome when two operators resolve the same item;
    callers should report it as "already resolved", not as a failure.
    """

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class ScanInProgressError(ConflictError):
    """Another scan currently holds the scan lease."""

    def __init__(self, holder: str, expires_at: Optional[str] = None):
        super().__init__(f"A scan is already in progress (held by {holder})")
        self.holder = holder
        self.expires_at = expires_at


class DownstreamFailureError(FolderSyncError):
    """Creating the domain records for an import failed.

    The import transaction was rolled back and the item is still pending, so
    the operator can retry.
    """

    def __init__(self, message: str, item_id: Optional[int] = None):
        super().__init__(message)
        self.item_id = item_id
