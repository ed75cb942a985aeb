"""Shared fixtures: a local packet tree, settings and a wired service."""

import asyncio
import sqlite3
import sys
from pathlib import Path

import pytest

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from folder_sync.db import PendingItemStore
from folder_sync.service import FolderSyncService, init_database
from folder_sync.settings import SyncSettings


@pytest.fixture
def packet_root(tmp_path):
    """Remote tree with two sales-order packets and one unrelated folder.

    SO-1001: PO_1001.pdf (order), INV_1001.pdf (invoice)
    SO-1002: random.pdf (other)
    """
    root = tmp_path / "remote"
    so1 = root / "SO-1001"
    so1.mkdir(parents=True)
    (so1 / "PO_1001.pdf").write_bytes(b"%PDF-1.4 order 1001")
    (so1 / "INV_1001.pdf").write_bytes(b"%PDF-1.4 invoice 1001")

    so2 = root / "SO-1002"
    so2.mkdir()
    (so2 / "random.pdf").write_bytes(b"%PDF-1.4 random")

    (root / "Archive").mkdir()
    return root


@pytest.fixture
def sync_settings(tmp_path, packet_root):
    return SyncSettings(
        db_path=tmp_path / "erp.db",
        uploads_path=tmp_path / "uploads",
        source_uri=f"local:{packet_root}",
        scan_timeout_seconds=10,
        import_timeout_seconds=10,
    )


@pytest.fixture
def store(sync_settings):
    init_database(sync_settings)
    return PendingItemStore(sync_settings.db_path)


@pytest.fixture
def service(sync_settings):
    svc = FolderSyncService.from_settings(sync_settings)
    yield svc
    asyncio.run(svc.close())


@pytest.fixture
def db(sync_settings, store):
    """Raw connection for assertions against the ERP tables."""
    conn = sqlite3.connect(str(sync_settings.db_path))
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()
