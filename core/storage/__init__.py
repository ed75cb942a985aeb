"""Core storage - imported document storage."""

from core.storage.documents import (
    DocumentStore,
    StoredDocument,
    generate_file_name,
    OPERATION_DOCS_DIR,
    INVOICES_DIR,
)

__all__ = [
    "DocumentStore",
    "StoredDocument",
    "generate_file_name",
    "OPERATION_DOCS_DIR",
    "INVOICES_DIR",
]
