"""Abstract Folder Source Interface.

A folder source lists the sales-order packets (one remote folder per order,
each holding the order and invoice documents) and downloads their files. It
is read-only: nothing here ever writes to the remote side.

Implementations:
- connectors/sharepoint/folder_source.py  ("sharepoint:")
- LocalFolderSource below                  ("local:/path/to/root")

Sources are selected by URI through the registry, so the scan orchestrator
and the import pipeline depend only on this interface.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Type
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ConfigDict, Field

from folder_sync.errors import SourceUnavailableError
from folder_sync.settings import SyncSettings


# =============================================================================
# Normalized Listing Models
# =============================================================================

class SourceFile(BaseModel):
    """A file inside a remote folder."""
    model_config = ConfigDict(frozen=True)

    name: str
    download_reference: str = Field(
        default="",
        description="Opaque handle passed back to FolderSource.download()",
    )


class SourceFolder(BaseModel):
    """A remote folder (one sales-order packet) and its files."""
    model_config = ConfigDict(frozen=True)

    name: str
    files: List[SourceFile] = Field(default_factory=list)


# =============================================================================
# Abstract Source
# =============================================================================

class FolderSource(ABC):
    """Abstract base class for folder sources.

    Contract:
    - list_folders() returns every packet folder, or raises
      SourceUnavailableError. An empty list means the source really is empty.
    - download() returns the bytes behind a SourceFile.download_reference.
    """

    source_type: str = ""

    def __init__(self, settings: SyncSettings):
        self.settings = settings
        self._folder_re = re.compile(settings.folder_pattern, re.IGNORECASE)

    def matches_folder(self, name: str) -> bool:
        """Whether a folder name looks like a sales-order packet."""
        return bool(self._folder_re.search(name))

    @abstractmethod
    async def list_folders(self) -> List[SourceFolder]:
        """List packet folders with their files.

        Raises:
            SourceUnavailableError: If the source cannot be listed
        """
        pass

    @abstractmethod
    async def download(self, reference: str) -> bytes:
        """Fetch the content behind a download reference."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass


# =============================================================================
# Registry
# =============================================================================

_source_registry: Dict[str, Type[FolderSource]] = {}


def register_source(source_type: str):
    """Decorator to register a folder source implementation."""
    def decorator(cls):
        cls.source_type = source_type
        _source_registry[source_type] = cls
        return cls
    return decorator


# =============================================================================
# Local Filesystem Source
# =============================================================================

@register_source("local")
class LocalFolderSource(FolderSource):
    """Packets as sub-directories of a local root.

    Used for development and tests. Download references are ``file://`` URIs.
    """

    def __init__(self, location: str, settings: SyncSettings):
        super().__init__(settings)
        self.root = Path(location)

    async def list_folders(self) -> List[SourceFolder]:
        return await asyncio.to_thread(self._list_folders)

    def _list_folders(self) -> List[SourceFolder]:
        if not self.root.is_dir():
            raise SourceUnavailableError(
                f"Local source root does not exist: {self.root}", source="local"
            )

        folders = []
        for entry in sorted(self.root.iterdir(), key=lambda p: p.name):
            if not entry.is_dir() or not self.matches_folder(entry.name):
                continue
            files = [
                SourceFile(name=f.name, download_reference=f.absolute().as_uri())
                for f in sorted(entry.iterdir(), key=lambda p: p.name)
                if f.is_file()
            ]
            folders.append(SourceFolder(name=entry.name, files=files))
        return folders

    async def download(self, reference: str) -> bytes:
        parsed = urlparse(reference)
        if parsed.scheme != "file":
            raise SourceUnavailableError(
                f"Not a local file reference: {reference!r}", source="local"
            )
        path = Path(unquote(parsed.path))
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise SourceUnavailableError(f"Cannot read {path}: {e}", source="local") from e


# =============================================================================
# Factory
# =============================================================================

def create_folder_source(source_uri: str, settings: SyncSettings) -> FolderSource:
    """Create a folder source from a URI.

    Args:
        source_uri: "sharepoint:" or "local:/path/to/root"
        settings: Sync settings (credentials, folder pattern)

    Returns:
        Configured source instance

    Raises:
        ValueError: If the URI scheme is not registered
    """
    source_type, _, location = source_uri.partition(":")
    source_type = source_type.strip().lower()

    if source_type not in _source_registry:
        available = list(_source_registry.keys())
        raise ValueError(
            f"Unknown folder source: {source_type!r}. "
            f"Available: {available}"
        )

    source_class = _source_registry[source_type]
    return source_class(location, settings)


def list_available_sources() -> List[str]:
    """List all registered source types."""
    return list(_source_registry.keys())
