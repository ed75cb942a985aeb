"""
Import pipeline tests.

Pass criteria:
- One import creates exactly one Operation with its documents and invoices
- Two concurrent imports of the same item produce one Operation, one conflict
- A failure part-way leaves no records, no stored files and a pending item
- A failed import can be retried
"""

import asyncio
import hashlib
import logging
import re
import threading

import pytest

from folder_sync.errors import ConflictError, DownstreamFailureError, PendingItemNotFoundError
from folder_sync.models import PendingStatus
from folder_sync.records import SQLiteRecordWriter


STORED_NAME = re.compile(r"^\d+-[0-9a-f]{16}\.pdf$")


def _item_id(service, folder_name):
    return service.store.find_by_folder_name(folder_name).id


def _count(db, table):
    return db.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def _stored_files(settings):
    return sorted(p for p in settings.uploads_path.rglob("*") if p.is_file())


class FailingInvoiceWriter(SQLiteRecordWriter):
    """Creates the Operation and documents, then fails on the invoice."""

    def create_draft_invoice(self, conn, invoice_number, operation_id, file_path, file_name, currency):
        raise RuntimeError("invoice table is locked by accounting")


class TestImportScenario:
    """SO-1001 (order + invoice) and SO-1002 (other only)."""

    def test_import_creates_operation_documents_and_invoice(self, service, db, sync_settings):
        asyncio.run(service.scan())
        db.execute("INSERT INTO users (id, username, display_name) VALUES (3, 'op', 'Operator')")
        db.commit()

        result = asyncio.run(service.import_item(_item_id(service, "SO-1001"), actor_id=3))

        assert result.operation_number == "SO-1001"
        assert result.orders_linked == 1
        assert result.invoices_linked == 1
        assert result.skipped_files == []
        assert result.created_operation is True

        operation = db.execute("SELECT * FROM operations").fetchone()
        assert operation["id"] == result.operation_id
        assert operation["operation_number"] == "SO-1001"
        assert operation["notes"].startswith("Imported from SharePoint on ")

        doc = db.execute("SELECT * FROM operation_documents").fetchone()
        assert doc["operation_id"] == result.operation_id
        assert doc["file_name"] == "PO_1001.pdf"
        assert STORED_NAME.match(doc["file_path"])
        stored = sync_settings.uploads_path / "operation-docs" / doc["file_path"]
        assert stored.read_bytes() == b"%PDF-1.4 order 1001"

        invoice = db.execute("SELECT * FROM invoices").fetchone()
        assert invoice["invoice_number"] == "SO-1001-INV1"
        assert invoice["type"] == "customer"
        assert invoice["amount"] == 0
        assert invoice["currency"] == "EUR"
        assert invoice["status"] == "draft"
        assert invoice["file_name"] == "INV_1001.pdf"
        assert invoice["operation_id"] == result.operation_id
        assert (sync_settings.uploads_path / "invoices" / invoice["file_path"]).exists()

        item = service.get_item(result.pending_item_id)
        assert item.status == PendingStatus.IMPORTED
        assert item.operation_id == result.operation_id
        assert item.imported_by == 3
        assert item.imported_by_name == "Operator"

    def test_rescan_and_ignore_after_import(self, service, db):
        asyncio.run(service.scan())
        asyncio.run(service.import_item(_item_id(service, "SO-1001")))

        result = asyncio.run(service.scan())
        assert (result.found, result.new) == (2, 0)

        ignored = service.ignore_item(_item_id(service, "SO-1002"))
        assert ignored.status == PendingStatus.IGNORED
        assert _count(db, "operations") == 1

    def test_folder_without_recognized_files(self, service, db):
        asyncio.run(service.scan())

        result = asyncio.run(service.import_item(_item_id(service, "SO-1002")))

        assert result.orders_linked == 0
        assert result.invoices_linked == 0
        assert result.skipped_files == ["random.pdf"]
        assert _count(db, "operations") == 1
        assert _count(db, "operation_documents") == 0

    def test_existing_operation_is_reused(self, service, db):
        db.execute("""
            INSERT INTO operations (operation_number, notes, created_at, updated_at)
            VALUES ('SO-1001', 'created by hand', '2026-01-01', '2026-01-01')
        """)
        db.commit()
        asyncio.run(service.scan())

        result = asyncio.run(service.import_item(_item_id(service, "SO-1001")))

        assert result.created_operation is False
        assert _count(db, "operations") == 1
        assert db.execute("SELECT notes FROM operations").fetchone()[0] == "created by hand"

    def test_stored_documents_are_logged_with_checksum(self, service, caplog):
        asyncio.run(service.scan())

        with caplog.at_level(logging.INFO, logger="folder_sync.importer"):
            asyncio.run(service.import_item(_item_id(service, "SO-1001")))

        stored = [r.extra_fields for r in caplog.records if r.getMessage() == "Stored document"]
        by_name = {fields["original_name"]: fields for fields in stored}
        content = b"%PDF-1.4 order 1001"
        assert by_name["PO_1001.pdf"]["sha256"] == hashlib.sha256(content).hexdigest()
        assert by_name["PO_1001.pdf"]["size_bytes"] == len(content)
        assert set(by_name) == {"PO_1001.pdf", "INV_1001.pdf"}

    def test_system_actor_is_used_without_user(self, sync_settings, service):
        service.settings.system_actor_id = 99
        asyncio.run(service.scan())

        result = asyncio.run(service.import_item(_item_id(service, "SO-1001")))

        assert service.get_item(result.pending_item_id).imported_by == 99


class TestImportPreconditions:

    def test_unknown_item(self, service):
        with pytest.raises(PendingItemNotFoundError):
            asyncio.run(service.import_item(9999))

    def test_second_import_conflicts(self, service, db):
        asyncio.run(service.scan())
        item_id = _item_id(service, "SO-1001")
        asyncio.run(service.import_item(item_id))

        with pytest.raises(ConflictError) as exc_info:
            asyncio.run(service.import_item(item_id))
        assert exc_info.value.current_status == "imported"
        assert _count(db, "operations") == 1

    def test_ignored_item_cannot_be_imported(self, service, db):
        asyncio.run(service.scan())
        item_id = _item_id(service, "SO-1002")
        service.ignore_item(item_id)

        with pytest.raises(ConflictError):
            asyncio.run(service.import_item(item_id))
        assert _count(db, "operations") == 0


class TestImportAtomicity:

    def test_record_failure_rolls_back_everything(self, service, db, sync_settings):
        asyncio.run(service.scan())
        item_id = _item_id(service, "SO-1001")
        service.importer.records = FailingInvoiceWriter()

        with pytest.raises(DownstreamFailureError):
            asyncio.run(service.import_item(item_id))

        assert service.get_item(item_id).status == PendingStatus.PENDING
        assert _count(db, "operations") == 0
        assert _count(db, "operation_documents") == 0
        assert _count(db, "invoices") == 0
        assert _stored_files(sync_settings) == []

    def test_retry_after_failure_succeeds(self, service, db):
        asyncio.run(service.scan())
        item_id = _item_id(service, "SO-1001")
        service.importer.records = FailingInvoiceWriter()
        with pytest.raises(DownstreamFailureError):
            asyncio.run(service.import_item(item_id))

        service.importer.records = SQLiteRecordWriter()
        result = asyncio.run(service.import_item(item_id))

        assert result.invoices_linked == 1
        assert _count(db, "operations") == 1

    def test_download_failure_writes_nothing(self, service, db, sync_settings, packet_root):
        asyncio.run(service.scan())
        (packet_root / "SO-1001" / "INV_1001.pdf").unlink()

        with pytest.raises(DownstreamFailureError):
            asyncio.run(service.import_item(_item_id(service, "SO-1001")))

        assert service.get_item(_item_id(service, "SO-1001")).status == PendingStatus.PENDING
        assert _count(db, "operations") == 0
        assert _stored_files(sync_settings) == []


class TestConcurrentImport:

    def test_two_simultaneous_imports_create_one_operation(self, service, db, sync_settings):
        asyncio.run(service.scan())
        item_id = _item_id(service, "SO-1001")

        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def run_import():
            barrier.wait()
            try:
                asyncio.run(service.import_item(item_id))
                outcome = "ok"
            except ConflictError:
                outcome = "conflict"
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=run_import) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert sorted(outcomes) == ["conflict", "ok"]
        assert _count(db, "operations") == 1
        assert _count(db, "operation_documents") == 1
        assert _count(db, "invoices") == 1
        # The loser's downloaded files were removed again
        assert len(_stored_files(sync_settings)) == 2
