"""Folder sync configuration.

All settings come from the environment. A ``.env`` file at the repository
root is loaded first if present, so local development needs no exports.

Example .env:
    SYNC_SOURCE_URI=sharepoint:
    SHAREPOINT_TENANT_ID=...
    SHAREPOINT_CLIENT_ID=...
    SHAREPOINT_CLIENT_SECRET=...
    SHAREPOINT_SITE_HOST=contoso.sharepoint.com
    SHAREPOINT_SITE_PATH=/sites/Productmanagement
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]

env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


DEFAULT_DB_PATH = REPO_ROOT / "erp.db"
DEFAULT_UPLOADS_PATH = REPO_ROOT / "uploads"
DEFAULT_OPERATIONS_FOLDER = "General/03 - Operations (Sales orders)"


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SharePointSettings:
    """Where the sales-order folders live and how to reach them."""
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    site_host: str = ""
    site_path: str = ""
    drive_name: str = "Documents"
    operations_folder: str = DEFAULT_OPERATIONS_FOLDER
    token_cache_path: Optional[Path] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)


@dataclass
class SyncSettings:
    """Top-level settings for scans, imports and the scheduler.

    Attributes:
        db_path: SQLite database holding pending items and ERP records
        uploads_path: Root directory for imported documents
        source_uri: "sharepoint:" or "local:/path/to/root"
        folder_pattern: Regex a folder name must match to be a sales-order packet
        scan_timeout_seconds: Upper bound for listing the whole source
        import_timeout_seconds: Upper bound for downloading an item's files
        scan_lease_seconds: How long a scan lease stays valid if never released
        invoice_currency: Currency for draft invoices created on import
        system_actor_id: Actor recorded when a request carries no user id
    """
    db_path: Path = DEFAULT_DB_PATH
    uploads_path: Path = DEFAULT_UPLOADS_PATH
    source_uri: str = "sharepoint:"
    folder_pattern: str = r"^SO"
    scan_timeout_seconds: int = 120
    import_timeout_seconds: int = 120
    scan_lease_seconds: int = 600
    invoice_currency: str = "EUR"
    system_actor_id: Optional[int] = None
    task_queue: str = "folder-sync"
    scan_interval_minutes: int = 15
    log_level: str = "INFO"
    log_json: bool = False
    sharepoint: SharePointSettings = field(default_factory=SharePointSettings)

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Build settings from environment variables."""
        token_cache = os.getenv("SHAREPOINT_TOKEN_CACHE")
        sharepoint = SharePointSettings(
            tenant_id=os.getenv("SHAREPOINT_TENANT_ID", ""),
            client_id=os.getenv("SHAREPOINT_CLIENT_ID", ""),
            client_secret=os.getenv("SHAREPOINT_CLIENT_SECRET", ""),
            site_host=os.getenv("SHAREPOINT_SITE_HOST", ""),
            site_path=os.getenv("SHAREPOINT_SITE_PATH", ""),
            drive_name=os.getenv("SHAREPOINT_DRIVE_NAME", "Documents"),
            operations_folder=os.getenv("SHAREPOINT_OPERATIONS_FOLDER", DEFAULT_OPERATIONS_FOLDER),
            token_cache_path=Path(token_cache) if token_cache else None,
        )
        return cls(
            db_path=Path(os.getenv("SYNC_DB_PATH", str(DEFAULT_DB_PATH))),
            uploads_path=Path(os.getenv("SYNC_UPLOADS_PATH", str(DEFAULT_UPLOADS_PATH))),
            source_uri=os.getenv("SYNC_SOURCE_URI", "sharepoint:"),
            folder_pattern=os.getenv("SHAREPOINT_FOLDER_PATTERN", r"^SO"),
            scan_timeout_seconds=_env_int("SYNC_SCAN_TIMEOUT_SECONDS", 120),
            import_timeout_seconds=_env_int("SYNC_IMPORT_TIMEOUT_SECONDS", 120),
            scan_lease_seconds=_env_int("SYNC_SCAN_LEASE_SECONDS", 600),
            invoice_currency=os.getenv("SYNC_INVOICE_CURRENCY", "EUR"),
            system_actor_id=_env_int("SYNC_SYSTEM_ACTOR_ID", None),
            task_queue=os.getenv("SYNC_TASK_QUEUE", "folder-sync"),
            scan_interval_minutes=_env_int("SYNC_SCAN_INTERVAL_MINUTES", 15),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON"),
            sharepoint=sharepoint,
        )

    @property
    def token_encryption_key(self) -> Optional[str]:
        return os.getenv("TOKEN_ENCRYPTION_KEY") or None
