"""Pending Item Store.

SQLite persistence for observed remote folders:
- Schema initialization (sharepoint_pending, sharepoint_scan_lease)
- Insert-if-absent keyed on the UNIQUE folder_name
- Conditional status transitions (pending → imported / ignored)
- The single-row scan lease that serializes scans

Every write is a single statement or a single IMMEDIATE transaction, so
concurrent scans and concurrent operator clicks are decided by SQLite, not by
a read followed by a write in Python.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from folder_sync.errors import ConflictError, PendingItemNotFoundError, ScanInProgressError
from folder_sync.models import ClassifiedFile, PendingItem, PendingStatus, encode_files
from folder_sync.settings import DEFAULT_DB_PATH


BUSY_TIMEOUT_SECONDS = 30

_SELECT_ITEM = """
    SELECT sp.*,
           u.display_name AS imported_by_name,
           op.operation_number AS imported_operation_number
    FROM sharepoint_pending sp
    LEFT JOIN users u ON sp.imported_by = u.id
    LEFT JOIN operations op ON sp.operation_id = op.id
"""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_timestamp(dt: datetime) -> str:
    """Format a datetime the way every timestamp column stores it."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def connect(db_path: Path) -> sqlite3.Connection:
    """Open a connection in autocommit mode; transactions are explicit."""
    conn = sqlite3.connect(str(db_path), timeout=BUSY_TIMEOUT_SECONDS, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Run a block inside ``BEGIN IMMEDIATE`` ... ``COMMIT``.

    IMMEDIATE takes the write lock up front, so two writers never interleave
    inside the block. Any exception rolls the whole block back.
    """
    conn = connect(db_path)
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


def init_sync_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create the pending item and scan lease tables.

    The status / operation_id CHECK keeps ``operation_id`` set exactly when
    the item is imported.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS sharepoint_pending (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                folder_name TEXT NOT NULL UNIQUE,
                files TEXT NOT NULL DEFAULT '[]',
                detected_at TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'imported', 'ignored')),
                operation_id INTEGER,
                imported_at TEXT,
                imported_by INTEGER,
                ignored_at TEXT,
                CHECK ((status = 'imported') = (operation_id IS NOT NULL))
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_sharepoint_pending_status
            ON sharepoint_pending(status, detected_at)
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS sharepoint_scan_lease (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                holder TEXT NOT NULL,
                acquired_at TEXT NOT NULL,
                expires_at TEXT NOT NULL
            )
        """)
    finally:
        conn.close()


def _row_to_item(row: sqlite3.Row) -> PendingItem:
    keys = row.keys()
    return PendingItem(
        id=row["id"],
        folder_name=row["folder_name"],
        files=row["files"],
        detected_at=row["detected_at"],
        status=row["status"],
        operation_id=row["operation_id"],
        imported_at=row["imported_at"],
        imported_by=row["imported_by"],
        ignored_at=row["ignored_at"],
        imported_by_name=row["imported_by_name"] if "imported_by_name" in keys else None,
        imported_operation_number=(
            row["imported_operation_number"] if "imported_operation_number" in keys else None
        ),
    )


class PendingItemStore:
    """Deduplicated index of every folder ever observed.

    Usage:
        store = PendingItemStore(db_path)
        item = store.insert_if_absent("SO-1001", files)   # None if known
        store.mark_ignored(item.id)
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)

    # -------------------------------------------------------------------------
    # Inserts
    # -------------------------------------------------------------------------

    def insert_if_absent(
        self,
        folder_name: str,
        files: Sequence[ClassifiedFile],
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[PendingItem]:
        """Record a folder on first sighting.

        Relies on the UNIQUE(folder_name) constraint: a folder that is already
        known, in any status, is left untouched.

        Args:
            folder_name: Remote folder name (dedup key)
            files: Classified file snapshot
            conn: Optional connection with an open transaction to join

        Returns:
            The new PendingItem, or None if the folder was already known
        """
        if conn is not None:
            return self._insert(conn, folder_name, files)
        with transaction(self.db_path) as tx:
            return self._insert(tx, folder_name, files)

    def insert_many_if_absent(
        self,
        folders: Sequence[Tuple[str, Sequence[ClassifiedFile]]],
    ) -> List[PendingItem]:
        """Insert-if-absent for a whole scan in one transaction.

        Returns:
            Only the items that were actually inserted
        """
        inserted = []
        with transaction(self.db_path) as tx:
            for folder_name, files in folders:
                item = self._insert(tx, folder_name, files)
                if item is not None:
                    inserted.append(item)
        return inserted

    def _insert(
        self,
        conn: sqlite3.Connection,
        folder_name: str,
        files: Sequence[ClassifiedFile],
    ) -> Optional[PendingItem]:
        cursor = conn.execute("""
            INSERT INTO sharepoint_pending (folder_name, files, detected_at, status)
            VALUES (?, ?, ?, 'pending')
            ON CONFLICT(folder_name) DO NOTHING
        """, (folder_name, encode_files(list(files)), to_timestamp(utc_now())))
        if cursor.rowcount == 0:
            return None
        return self.get(cursor.lastrowid, conn=conn)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, item_id: int, conn: Optional[sqlite3.Connection] = None) -> PendingItem:
        """Fetch one item with its joined display fields.

        Raises:
            PendingItemNotFoundError: If no item has this id
        """
        own = conn is None
        conn = conn or connect(self.db_path)
        try:
            row = conn.execute(_SELECT_ITEM + " WHERE sp.id = ?", (item_id,)).fetchone()
        finally:
            if own:
                conn.close()
        if row is None:
            raise PendingItemNotFoundError(item_id)
        return _row_to_item(row)

    def find_by_folder_name(self, folder_name: str) -> Optional[PendingItem]:
        conn = connect(self.db_path)
        try:
            row = conn.execute(
                _SELECT_ITEM + " WHERE sp.folder_name = ?", (folder_name,)
            ).fetchone()
            return _row_to_item(row) if row else None
        finally:
            conn.close()

    def list_by_status(
        self,
        status: PendingStatus = PendingStatus.PENDING,
        limit: int = 50,
        offset: int = 0,
    ) -> List[PendingItem]:
        """List items in one status, newest detection first."""
        conn = connect(self.db_path)
        try:
            rows = conn.execute(
                _SELECT_ITEM + """
                WHERE sp.status = ?
                ORDER BY sp.detected_at DESC, sp.id DESC
                LIMIT ? OFFSET ?
                """,
                (PendingStatus(status).value, limit, offset),
            ).fetchall()
            return [_row_to_item(row) for row in rows]
        finally:
            conn.close()

    def count_by_status(self, status: PendingStatus = PendingStatus.PENDING) -> int:
        conn = connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT COUNT(*) FROM sharepoint_pending WHERE status = ?",
                (PendingStatus(status).value,),
            ).fetchone()
            return row[0]
        finally:
            conn.close()

    def count_all(self) -> int:
        conn = connect(self.db_path)
        try:
            return conn.execute("SELECT COUNT(*) FROM sharepoint_pending").fetchone()[0]
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------------

    def mark_imported(
        self,
        item_id: int,
        operation_id: int,
        actor_id: Optional[int],
        conn: Optional[sqlite3.Connection] = None,
    ) -> PendingItem:
        """Flip a pending item to imported.

        A single conditional UPDATE; zero affected rows means the item is
        missing or already resolved.

        Args:
            item_id: Pending item id
            operation_id: Operation created (or reused) by the import
            actor_id: User performing the import
            conn: Optional connection with an open transaction to join

        Raises:
            PendingItemNotFoundError: If no item has this id
            ConflictError: If the item is not pending
        """
        sql = """
            UPDATE sharepoint_pending
            SET status = 'imported', operation_id = ?, imported_at = ?, imported_by = ?
            WHERE id = ? AND status = 'pending'
        """
        params = (operation_id, to_timestamp(utc_now()), actor_id, item_id)
        if conn is not None:
            return self._transition(conn, item_id, sql, params)
        with transaction(self.db_path) as tx:
            return self._transition(tx, item_id, sql, params)

    def mark_ignored(self, item_id: int) -> PendingItem:
        """Flip a pending item to ignored.

        Raises:
            PendingItemNotFoundError: If no item has this id
            ConflictError: If the item is not pending
        """
        sql = """
            UPDATE sharepoint_pending
            SET status = 'ignored', ignored_at = ?
            WHERE id = ? AND status = 'pending'
        """
        with transaction(self.db_path) as tx:
            return self._transition(tx, item_id, sql, (to_timestamp(utc_now()), item_id))

    def require_pending(self, conn: sqlite3.Connection, item_id: int) -> None:
        """Check, inside the caller's transaction, that the item is still pending.

        Raises:
            PendingItemNotFoundError: If no item has this id
            ConflictError: If the item is not pending
        """
        row = conn.execute(
            "SELECT status FROM sharepoint_pending WHERE id = ?", (item_id,)
        ).fetchone()
        if row is None:
            raise PendingItemNotFoundError(item_id)
        if row["status"] != PendingStatus.PENDING.value:
            raise ConflictError(f"Item is already {row['status']}", current_status=row["status"])

    def _transition(self, conn: sqlite3.Connection, item_id: int, sql: str, params: tuple) -> PendingItem:
        cursor = conn.execute(sql, params)
        if cursor.rowcount == 0:
            self.require_pending(conn, item_id)
            raise ConflictError("Item is no longer pending")
        return self.get(item_id, conn=conn)

    # -------------------------------------------------------------------------
    # Scan lease
    # -------------------------------------------------------------------------

    def acquire_scan_lease(self, holder: str, ttl_seconds: int) -> None:
        """Take the scan lease, or fail if a live scan holds it.

        An expired lease (holder crashed without releasing) is taken over.

        Raises:
            ScanInProgressError: If another holder owns an unexpired lease
        """
        now = utc_now()
        with transaction(self.db_path) as tx:
            row = tx.execute(
                "SELECT holder, expires_at FROM sharepoint_scan_lease WHERE id = 1"
            ).fetchone()
            if row is not None and row["expires_at"] > to_timestamp(now) and row["holder"] != holder:
                raise ScanInProgressError(row["holder"], row["expires_at"])
            tx.execute("""
                INSERT INTO sharepoint_scan_lease (id, holder, acquired_at, expires_at)
                VALUES (1, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    holder = excluded.holder,
                    acquired_at = excluded.acquired_at,
                    expires_at = excluded.expires_at
            """, (holder, to_timestamp(now), to_timestamp(now + timedelta(seconds=ttl_seconds))))

    def release_scan_lease(self, holder: str) -> bool:
        """Release the lease if this holder still owns it."""
        with transaction(self.db_path) as tx:
            cursor = tx.execute(
                "DELETE FROM sharepoint_scan_lease WHERE id = 1 AND holder = ?", (holder,)
            )
            return cursor.rowcount > 0
