"""Folder sync service.

Wires the folder source, the pending item store, the scan orchestrator, the
import pipeline and the ignore handler together from settings. The API
routes and the Temporal activity both go through this class.

Usage:
    service = FolderSyncService.from_settings(SyncSettings.from_env())
    result = await service.scan()
    await service.import_item(item_id, actor_id=3)
    await service.close()
"""

from typing import List, Optional

from connectors.folder_source import FolderSource, create_folder_source
from core.storage.documents import DocumentStore
from folder_sync.db import PendingItemStore, init_sync_db
from folder_sync.ignore import ignore_item
from folder_sync.importer import ImportPipeline
from folder_sync.models import ImportResult, PendingItem, PendingStatus, ScanResult
from folder_sync.records import DomainRecordWriter, init_records_db
from folder_sync.scanner import ScanOrchestrator
from folder_sync.settings import SyncSettings


def init_database(settings: SyncSettings) -> None:
    """Create every table the sync reads or writes (idempotent)."""
    init_records_db(settings.db_path)
    init_sync_db(settings.db_path)


class FolderSyncService:
    """Entry point for scans, imports and ignores."""

    def __init__(
        self,
        settings: SyncSettings,
        source: FolderSource,
        store: PendingItemStore,
        documents: DocumentStore,
        records: Optional[DomainRecordWriter] = None,
    ):
        self.settings = settings
        self.source = source
        self.store = store
        self.scanner = ScanOrchestrator(
            source,
            store,
            timeout_seconds=settings.scan_timeout_seconds,
            lease_seconds=settings.scan_lease_seconds,
        )
        self.importer = ImportPipeline(
            source,
            store,
            documents,
            records=records,
            timeout_seconds=settings.import_timeout_seconds,
            invoice_currency=settings.invoice_currency,
        )

    @classmethod
    def from_settings(
        cls,
        settings: SyncSettings,
        source: Optional[FolderSource] = None,
        init_db: bool = True,
    ) -> "FolderSyncService":
        """Build the service; the source defaults to ``settings.source_uri``."""
        if init_db:
            init_database(settings)
        return cls(
            settings,
            source or create_folder_source(settings.source_uri, settings),
            PendingItemStore(settings.db_path),
            DocumentStore(settings.uploads_path),
        )

    async def scan(self) -> ScanResult:
        return await self.scanner.scan()

    async def import_item(self, item_id: int, actor_id: Optional[int] = None) -> ImportResult:
        if actor_id is None:
            actor_id = self.settings.system_actor_id
        return await self.importer.import_item(item_id, actor_id)

    def ignore_item(self, item_id: int) -> PendingItem:
        return ignore_item(self.store, item_id)

    def get_item(self, item_id: int) -> PendingItem:
        return self.store.get(item_id)

    def list_items(
        self,
        status: PendingStatus = PendingStatus.PENDING,
        limit: int = 50,
        offset: int = 0,
    ) -> List[PendingItem]:
        return self.store.list_by_status(status, limit=limit, offset=offset)

    def count_items(self, status: PendingStatus = PendingStatus.PENDING) -> int:
        return self.store.count_by_status(status)

    async def close(self) -> None:
        await self.source.close()
