"""Folder sync data models.

PendingItem is the record of one observed remote folder. Its ``files`` field
is kept exactly as persisted (a JSON string) so the snapshot taken at scan
time reaches the UI byte for byte; use ``classified_files`` to work with the
decoded list.
"""

import json
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FileCategory(str, Enum):
    """Category assigned to a file by the classifier."""
    ORDER = "order"
    INVOICE = "invoice"
    OTHER = "other"


class PendingStatus(str, Enum):
    """Lifecycle status of a pending item.

    ``imported`` and ``ignored`` are terminal.
    """
    PENDING = "pending"
    IMPORTED = "imported"
    IGNORED = "ignored"


class ClassifiedFile(BaseModel):
    """One entry of a pending item's file snapshot."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    download_url: str = Field(default="", alias="downloadUrl")
    type: FileCategory


def encode_files(files: List[ClassifiedFile]) -> str:
    """Serialize a file snapshot to the persisted JSON form."""
    return json.dumps([f.model_dump(mode="json", by_alias=True) for f in files])


def decode_files(raw: str) -> List[ClassifiedFile]:
    """Parse a persisted file snapshot.

    Raises:
        ValueError: If the blob is not a JSON list of file entries
    """
    try:
        data = json.loads(raw) if raw else []
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid files data: {e}") from e
    if not isinstance(data, list):
        raise ValueError("Invalid files data: expected a list")
    return [ClassifiedFile.model_validate(entry) for entry in data]


class PendingItem(BaseModel):
    """A remote folder as recorded by the pending item store."""
    id: int
    folder_name: str
    files: str = Field(..., description="JSON-encoded [{name, downloadUrl, type}] snapshot")
    detected_at: str
    status: PendingStatus
    operation_id: Optional[int] = None
    imported_at: Optional[str] = None
    imported_by: Optional[int] = None
    ignored_at: Optional[str] = None

    # Joined from the users / operations tables when listing
    imported_by_name: Optional[str] = None
    imported_operation_number: Optional[str] = None

    @property
    def classified_files(self) -> List[ClassifiedFile]:
        return decode_files(self.files)

    def files_by_category(self) -> Dict[FileCategory, List[ClassifiedFile]]:
        """Partition the snapshot by category, preserving order."""
        groups: Dict[FileCategory, List[ClassifiedFile]] = {c: [] for c in FileCategory}
        for f in self.classified_files:
            groups[f.type].append(f)
        return groups


class ScanResult(BaseModel):
    """Outcome of one reconciliation pass."""
    found: int = Field(..., description="Folders seen in the source this pass")
    new: int = Field(..., description="Pending items actually inserted")


class ImportResult(BaseModel):
    """Outcome of importing one pending item."""
    pending_item_id: int
    operation_id: int
    operation_number: str
    created_operation: bool = True
    orders_linked: int = 0
    invoices_linked: int = 0
    skipped_files: List[str] = Field(default_factory=list)
