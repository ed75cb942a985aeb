"""Domain record writer.

Creates the ERP records an import produces: the Operation, its attached order
documents and the draft customer invoices. All methods take a connection with
an open transaction so the import pipeline can commit them together with the
pending item's status flip, or roll everything back.

The tables themselves belong to the ERP; ``init_records_db`` only creates
their shape for development and tests.
"""

import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple

from folder_sync.db import connect, to_timestamp, utc_now
from folder_sync.settings import DEFAULT_DB_PATH


def init_records_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create the users / operations / operation_documents / invoices tables."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                display_name TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS operations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                operation_number TEXT NOT NULL UNIQUE,
                status TEXT NOT NULL DEFAULT 'open',
                notes TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS operation_documents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                operation_id INTEGER NOT NULL REFERENCES operations(id),
                file_path TEXT NOT NULL,
                file_name TEXT NOT NULL,
                notes TEXT,
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS invoices (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                invoice_number TEXT NOT NULL UNIQUE,
                type TEXT NOT NULL,
                amount REAL NOT NULL DEFAULT 0,
                currency TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'draft',
                file_path TEXT,
                file_name TEXT,
                operation_id INTEGER REFERENCES operations(id),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
    finally:
        conn.close()


class DomainRecordWriter(ABC):
    """Creates the records one import produces.

    Implementations must not commit: the caller owns the transaction.
    """

    @abstractmethod
    def ensure_operation(
        self,
        conn: sqlite3.Connection,
        operation_number: str,
        notes: str,
    ) -> Tuple[int, bool]:
        """Create the Operation, or reuse the one with this number.

        Returns:
            (operation_id, created)
        """
        pass

    @abstractmethod
    def attach_document(
        self,
        conn: sqlite3.Connection,
        operation_id: int,
        file_path: str,
        file_name: str,
        notes: Optional[str] = None,
    ) -> int:
        """Link a stored order document to an Operation."""
        pass

    @abstractmethod
    def create_draft_invoice(
        self,
        conn: sqlite3.Connection,
        invoice_number: str,
        operation_id: int,
        file_path: str,
        file_name: str,
        currency: str,
    ) -> int:
        """Create a draft customer invoice for a stored invoice document."""
        pass


class SQLiteRecordWriter(DomainRecordWriter):
    """Writes records into the ERP's SQLite tables."""

    def ensure_operation(self, conn, operation_number, notes):
        row = conn.execute(
            "SELECT id FROM operations WHERE operation_number = ?", (operation_number,)
        ).fetchone()
        now = to_timestamp(utc_now())
        if row is not None:
            conn.execute(
                "UPDATE operations SET updated_at = ? WHERE id = ?", (now, row["id"])
            )
            return row["id"], False

        cursor = conn.execute("""
            INSERT INTO operations (operation_number, status, notes, created_at, updated_at)
            VALUES (?, 'open', ?, ?, ?)
        """, (operation_number, notes, now, now))
        return cursor.lastrowid, True

    def attach_document(self, conn, operation_id, file_path, file_name, notes=None):
        cursor = conn.execute("""
            INSERT INTO operation_documents (operation_id, file_path, file_name, notes, created_at)
            VALUES (?, ?, ?, ?, ?)
        """, (operation_id, file_path, file_name, notes, to_timestamp(utc_now())))
        return cursor.lastrowid

    def create_draft_invoice(self, conn, invoice_number, operation_id, file_path, file_name, currency):
        now = to_timestamp(utc_now())
        cursor = conn.execute("""
            INSERT INTO invoices (
                invoice_number, type, amount, currency, status,
                file_path, file_name, operation_id, created_at, updated_at
            )
            VALUES (?, 'customer', 0, ?, 'draft', ?, ?, ?, ?, ?)
        """, (invoice_number, currency, file_path, file_name, operation_id, now, now))
        return cursor.lastrowid
