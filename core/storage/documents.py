"""Document storage for imported files.

Stores downloaded bytes under the uploads directory with generated,
collision-free names and returns a reference with integrity metadata. The
import pipeline keeps the references so it can delete the files again if the
database transaction fails.
"""

import hashlib
import os
import secrets
import time
from pathlib import Path
from typing import Union

from pydantic import BaseModel


OPERATION_DOCS_DIR = "operation-docs"
INVOICES_DIR = "invoices"
DEFAULT_EXTENSION = ".pdf"


def _compute_sha256(data: bytes) -> str:
    """Compute SHA256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def generate_file_name(original_name: str) -> str:
    """Build a stored file name: ``{epoch ms}-{16 hex}{ext}``.

    The extension is taken from the original name, lowercased, and defaults
    to ``.pdf``.
    """
    ext = os.path.splitext(original_name or "")[1].lower() or DEFAULT_EXTENSION
    return f"{int(time.time() * 1000)}-{secrets.token_hex(8)}{ext}"


class StoredDocument(BaseModel):
    """Reference to a document written by DocumentStore.

    Attributes:
        file_name: Generated name, as recorded in the ERP tables
        original_name: Name of the file in the remote folder
        storage_uri: Absolute file path
        content_hash: SHA256 of the content
        size_bytes: Size in bytes
    """
    file_name: str
    original_name: str
    storage_uri: str
    content_hash: str
    size_bytes: int


class DocumentStore:
    """Writes imported documents below a base uploads directory."""

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path)

    def put(self, data: bytes, subdir: str, original_name: str) -> StoredDocument:
        """Store bytes in ``<base>/<subdir>/`` under a generated name.

        Args:
            data: File content
            subdir: Target sub-directory (OPERATION_DOCS_DIR or INVOICES_DIR)
            original_name: Remote file name, used for the extension

        Returns:
            StoredDocument describing the written file
        """
        target_dir = self.base_path / subdir
        target_dir.mkdir(parents=True, exist_ok=True)

        file_name = generate_file_name(original_name)
        path = target_dir / file_name
        path.write_bytes(data)

        return StoredDocument(
            file_name=file_name,
            original_name=original_name,
            storage_uri=str(path.absolute()),
            content_hash=_compute_sha256(data),
            size_bytes=len(data),
        )

    def delete(self, doc: StoredDocument) -> bool:
        """Remove a stored document. Returns False if it was already gone."""
        path = Path(doc.storage_uri)
        if not path.exists():
            return False
        path.unlink()
        return True
