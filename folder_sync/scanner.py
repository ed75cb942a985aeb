"""Scan orchestrator.

One reconciliation pass: list the remote source, classify every file and
record every folder not seen before as a pending item.

The pass is all-or-nothing. A source failure aborts before any write, and
the inserts of one pass commit together. Running it again against an
unchanged source inserts nothing.
"""

import asyncio
import uuid
from typing import List, Tuple

from connectors.folder_source import FolderSource, SourceFolder
from core.observability.logging import get_logger, with_correlation
from folder_sync.classifier import classify
from folder_sync.db import PendingItemStore
from folder_sync.errors import FolderSyncError, SourceUnavailableError
from folder_sync.models import ClassifiedFile, ScanResult

logger = get_logger(__name__)


def classify_folder(folder: SourceFolder) -> List[ClassifiedFile]:
    """Build the persisted file snapshot for one folder, in listing order."""
    return [
        ClassifiedFile(name=f.name, download_url=f.download_reference, type=classify(f.name))
        for f in folder.files
    ]


class ScanOrchestrator:
    """Runs reconciliation passes against one folder source.

    Args:
        source: Folder source to list
        store: Pending item store to reconcile into
        timeout_seconds: Upper bound for listing the source
        lease_seconds: Lifetime of the scan lease if it is never released
    """

    def __init__(
        self,
        source: FolderSource,
        store: PendingItemStore,
        timeout_seconds: float = 120,
        lease_seconds: int = 600,
    ):
        self.source = source
        self.store = store
        self.timeout_seconds = timeout_seconds
        self.lease_seconds = lease_seconds

    async def scan(self) -> ScanResult:
        """Run one pass.

        Returns:
            ScanResult with folders found this pass and pending items inserted

        Raises:
            ScanInProgressError: If another scan holds the lease
            SourceUnavailableError: If the source cannot be listed in time
        """
        scan_id = f"scan-{uuid.uuid4().hex[:8]}"

        with with_correlation(scan_id=scan_id):
            self.store.acquire_scan_lease(scan_id, self.lease_seconds)
            try:
                folders = await self._list_source()

                candidates: List[Tuple[str, List[ClassifiedFile]]] = [
                    (folder.name, classify_folder(folder)) for folder in folders
                ]
                inserted = self.store.insert_many_if_absent(candidates)

                result = ScanResult(found=len(folders), new=len(inserted))
                logger.info(
                    "Scan complete",
                    extra_fields={
                        "found": result.found,
                        "new": result.new,
                        "new_folders": [item.folder_name for item in inserted],
                    },
                )
                return result
            finally:
                self.store.release_scan_lease(scan_id)

    async def _list_source(self) -> List[SourceFolder]:
        try:
            return await asyncio.wait_for(self.source.list_folders(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"Source listing timed out after {self.timeout_seconds}s")
            raise SourceUnavailableError(
                f"Source listing timed out after {self.timeout_seconds}s",
                source=self.source.source_type,
            ) from e
        except SourceUnavailableError as e:
            logger.error(f"Source unavailable: {e}")
            raise
        except FolderSyncError:
            raise
        except Exception as e:
            logger.exception(f"Source listing failed: {e}")
            raise SourceUnavailableError(
                f"Source listing failed: {e}", source=self.source.source_type
            ) from e
