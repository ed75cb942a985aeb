"""
Scan orchestrator tests.

Pass criteria:
- Repeated scans of an unchanged source add nothing
- A failing or slow source fails the scan without writing
- Only one scan runs at a time
"""

import asyncio
import shutil

import pytest

from connectors.folder_source import FolderSource, SourceFile, SourceFolder
from folder_sync.errors import ScanInProgressError, SourceUnavailableError
from folder_sync.models import FileCategory
from folder_sync.scanner import ScanOrchestrator
from folder_sync.settings import SyncSettings


class FakeFolderSource(FolderSource):
    """In-memory source with optional delay and failure."""

    source_type = "fake"

    def __init__(self, folders=None, delay: float = 0, error: Exception = None):
        super().__init__(SyncSettings())
        self.folders = folders or []
        self.delay = delay
        self.error = error
        self.calls = 0

    async def list_folders(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.folders)

    async def download(self, reference):
        raise NotImplementedError


def _folder(name, *file_names):
    return SourceFolder(
        name=name,
        files=[SourceFile(name=f, download_reference=f"mem://{name}/{f}") for f in file_names],
    )


class TestScanAgainstLocalSource:

    def test_example_packets(self, service):
        result = asyncio.run(service.scan())

        assert (result.found, result.new) == (2, 2)
        names = sorted(item.folder_name for item in service.list_items())
        assert names == ["SO-1001", "SO-1002"]

    def test_repeated_scans_are_idempotent(self, service):
        asyncio.run(service.scan())

        for _ in range(3):
            result = asyncio.run(service.scan())
            assert (result.found, result.new) == (2, 0)

        assert service.store.count_all() == 2

    def test_files_are_classified_at_detection(self, service):
        asyncio.run(service.scan())

        item = service.store.find_by_folder_name("SO-1001")
        files = {f.name: f for f in item.classified_files}
        assert files["PO_1001.pdf"].type == FileCategory.ORDER
        assert files["INV_1001.pdf"].type == FileCategory.INVOICE
        assert files["PO_1001.pdf"].download_url.startswith("file://")

        other = service.store.find_by_folder_name("SO-1002")
        assert [f.type for f in other.classified_files] == [FileCategory.OTHER]

    def test_non_packet_folders_are_skipped(self, service):
        asyncio.run(service.scan())

        assert service.store.find_by_folder_name("Archive") is None

    def test_new_folder_is_picked_up(self, service, packet_root):
        asyncio.run(service.scan())

        (packet_root / "SO-1003").mkdir()
        (packet_root / "SO-1003" / "PO_1003.pdf").write_bytes(b"order")
        result = asyncio.run(service.scan())

        assert (result.found, result.new) == (3, 1)

    def test_snapshot_is_not_refreshed(self, service, packet_root):
        asyncio.run(service.scan())
        before = service.store.find_by_folder_name("SO-1001").files

        (packet_root / "SO-1001" / "INV_1001b.pdf").write_bytes(b"late invoice")
        asyncio.run(service.scan())

        assert service.store.find_by_folder_name("SO-1001").files == before

    def test_missing_root_fails_without_writes(self, service, packet_root):
        shutil.rmtree(packet_root)

        with pytest.raises(SourceUnavailableError):
            asyncio.run(service.scan())
        assert service.store.count_all() == 0

    def test_lease_is_released_after_failure(self, service, packet_root, tmp_path):
        moved = tmp_path / "moved"
        packet_root.rename(moved)
        with pytest.raises(SourceUnavailableError):
            asyncio.run(service.scan())

        moved.rename(packet_root)
        result = asyncio.run(service.scan())
        assert result.new == 2


class TestScanOrchestrator:

    def test_timeout_is_source_unavailable(self, store):
        source = FakeFolderSource([_folder("SO-1")], delay=5)
        scanner = ScanOrchestrator(source, store, timeout_seconds=0.05)

        with pytest.raises(SourceUnavailableError):
            asyncio.run(scanner.scan())
        assert store.count_all() == 0

    def test_unexpected_source_error_is_source_unavailable(self, store):
        source = FakeFolderSource(error=RuntimeError("connection reset"))
        scanner = ScanOrchestrator(source, store)

        with pytest.raises(SourceUnavailableError) as exc_info:
            asyncio.run(scanner.scan())
        assert "connection reset" in str(exc_info.value)

    def test_scan_refused_while_lease_held(self, store):
        source = FakeFolderSource([_folder("SO-1")])
        scanner = ScanOrchestrator(source, store)
        store.acquire_scan_lease("other-scan", ttl_seconds=600)

        with pytest.raises(ScanInProgressError):
            asyncio.run(scanner.scan())
        assert source.calls == 0
        assert store.count_all() == 0

    def test_duplicate_names_in_one_listing(self, store):
        source = FakeFolderSource([_folder("SO-1", "PO.pdf"), _folder("SO-1", "INV.pdf")])
        result = asyncio.run(ScanOrchestrator(source, store).scan())

        assert result.found == 2
        assert result.new == 1

    def test_empty_source(self, store):
        result = asyncio.run(ScanOrchestrator(FakeFolderSource([]), store).scan())

        assert (result.found, result.new) == (0, 0)
