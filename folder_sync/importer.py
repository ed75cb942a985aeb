"""Import pipeline.

Turns one pending item into ERP records:

1. Check the item exists and is still pending
2. Download its order and invoice files from the folder source
3. Store the bytes under the uploads directory
4. In one IMMEDIATE transaction: create (or reuse) the Operation, attach the
   order documents, create draft invoices and flip the item to imported
5. On any failure roll back and delete the stored files

The status flip is the last statement of the transaction and is conditional
on ``status = 'pending'``, so of two concurrent imports of the same item
exactly one commits; the other rolls back its Operation with everything else.
"""

import asyncio
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from connectors.folder_source import FolderSource
from core.observability.logging import get_logger, with_correlation
from core.storage.documents import INVOICES_DIR, OPERATION_DOCS_DIR, DocumentStore, StoredDocument
from folder_sync.db import PendingItemStore, transaction
from folder_sync.errors import ConflictError, DownstreamFailureError, FolderSyncError
from folder_sync.models import ClassifiedFile, FileCategory, ImportResult, PendingItem, PendingStatus
from folder_sync.records import DomainRecordWriter, SQLiteRecordWriter

logger = get_logger(__name__)

DOCUMENT_NOTE = "Imported from SharePoint"


def operation_note(today: Optional[datetime] = None) -> str:
    today = today or datetime.now(timezone.utc)
    return f"Imported from SharePoint on {today.strftime('%Y-%m-%d')}"


class ImportPipeline:
    """Imports pending items as Operations with documents and draft invoices.

    Args:
        source: Folder source the item's files are downloaded from
        store: Pending item store
        documents: Where downloaded files are written
        records: Domain record writer (defaults to the SQLite tables)
        timeout_seconds: Upper bound for downloading one item's files
        invoice_currency: Currency of the draft invoices
    """

    def __init__(
        self,
        source: FolderSource,
        store: PendingItemStore,
        documents: DocumentStore,
        records: Optional[DomainRecordWriter] = None,
        timeout_seconds: float = 120,
        invoice_currency: str = "EUR",
    ):
        self.source = source
        self.store = store
        self.documents = documents
        self.records = records or SQLiteRecordWriter()
        self.timeout_seconds = timeout_seconds
        self.invoice_currency = invoice_currency

    async def import_item(self, item_id: int, actor_id: Optional[int] = None) -> ImportResult:
        """Import one pending item.

        Args:
            item_id: Pending item id
            actor_id: User performing the import (recorded as imported_by)

        Returns:
            ImportResult describing the Operation and the linked records

        Raises:
            PendingItemNotFoundError: If no item has this id
            ConflictError: If the item is not pending, now or at commit time
            DownstreamFailureError: If a download or a record write failed
        """
        with with_correlation(pending_item_id=item_id, actor_id=actor_id):
            item = self.store.get(item_id)
            if item.status != PendingStatus.PENDING:
                raise ConflictError(
                    f"Item is already {item.status.value}", current_status=item.status.value
                )

            with with_correlation(folder_name=item.folder_name):
                try:
                    groups = item.files_by_category()
                except ValueError as e:
                    raise DownstreamFailureError(str(e), item_id=item_id) from e

                orders = groups[FileCategory.ORDER]
                invoices = groups[FileCategory.INVOICE]
                skipped = [f.name for f in groups[FileCategory.OTHER]]

                contents = await self._download_all(item, orders + invoices)

                stored: List[StoredDocument] = []
                try:
                    order_docs = [
                        self._store(stored, contents[i], OPERATION_DOCS_DIR, f)
                        for i, f in enumerate(orders)
                    ]
                    invoice_docs = [
                        self._store(stored, contents[len(orders) + i], INVOICES_DIR, f)
                        for i, f in enumerate(invoices)
                    ]
                    operation_id, created = self._write_records(item, order_docs, invoice_docs, actor_id)
                except ConflictError as e:
                    self._cleanup(stored)
                    logger.warning(f"Import lost to a concurrent resolution: {e}")
                    raise
                except FolderSyncError as e:
                    self._cleanup(stored)
                    logger.error(f"Import failed, rolled back: {e}")
                    raise
                except Exception as e:
                    self._cleanup(stored)
                    logger.exception(f"Import failed, rolled back: {e}")
                    raise DownstreamFailureError(f"Import failed: {e}", item_id=item_id) from e

                result = ImportResult(
                    pending_item_id=item_id,
                    operation_id=operation_id,
                    operation_number=item.folder_name,
                    created_operation=created,
                    orders_linked=len(order_docs),
                    invoices_linked=len(invoice_docs),
                    skipped_files=skipped,
                )
                logger.info(
                    "Import complete",
                    extra_fields={
                        "operation_id": operation_id,
                        "created_operation": created,
                        "orders_linked": result.orders_linked,
                        "invoices_linked": result.invoices_linked,
                        "skipped_files": skipped,
                    },
                )
                return result

    async def _download_all(self, item: PendingItem, files: List[ClassifiedFile]) -> List[bytes]:
        async def fetch_all() -> List[bytes]:
            return [await self.source.download(f.download_url) for f in files]

        try:
            return await asyncio.wait_for(fetch_all(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise DownstreamFailureError(
                f"Downloading files of {item.folder_name} timed out after {self.timeout_seconds}s",
                item_id=item.id,
            ) from e
        except (FolderSyncError, OSError) as e:
            logger.error(f"Download failed: {e}")
            raise DownstreamFailureError(f"Download failed: {e}", item_id=item.id) from e

    def _store(
        self,
        stored: List[StoredDocument],
        data: bytes,
        subdir: str,
        file: ClassifiedFile,
    ) -> StoredDocument:
        doc = self.documents.put(data, subdir, file.name)
        stored.append(doc)
        logger.info(
            "Stored document",
            extra_fields={
                "original_name": doc.original_name,
                "file_name": doc.file_name,
                "sha256": doc.content_hash,
                "size_bytes": doc.size_bytes,
            },
        )
        return doc

    def _write_records(
        self,
        item: PendingItem,
        order_docs: List[StoredDocument],
        invoice_docs: List[StoredDocument],
        actor_id: Optional[int],
    ) -> Tuple[int, bool]:
        try:
            with transaction(self.store.db_path) as conn:
                # Under the write lock; a concurrent import that committed first wins
                self.store.require_pending(conn, item.id)
                operation_id, created = self.records.ensure_operation(
                    conn, item.folder_name, operation_note()
                )
                for doc in order_docs:
                    self.records.attach_document(
                        conn, operation_id, doc.file_name, doc.original_name, DOCUMENT_NOTE
                    )
                for n, doc in enumerate(invoice_docs, start=1):
                    self.records.create_draft_invoice(
                        conn,
                        invoice_number=f"{item.folder_name}-INV{n}",
                        operation_id=operation_id,
                        file_path=doc.file_name,
                        file_name=doc.original_name,
                        currency=self.invoice_currency,
                    )
                self.store.mark_imported(item.id, operation_id, actor_id, conn=conn)
        except sqlite3.Error as e:
            raise DownstreamFailureError(f"Record creation failed: {e}", item_id=item.id) from e
        return operation_id, created

    def _cleanup(self, stored: List[StoredDocument]) -> None:
        for doc in stored:
            try:
                self.documents.delete(doc)
            except OSError as e:
                logger.warning(f"Could not remove {doc.storage_uri} after failed import: {e}")
