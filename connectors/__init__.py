"""Folder Sources - pluggable remote folder integrations.

This package contains the abstract FolderSource interface and concrete
implementations (SharePoint via Microsoft Graph, local directories).

Key Design Principle:
- The scan orchestrator and import pipeline depend ONLY on FolderSource
- Listings are returned as normalized SourceFolder / SourceFile models

To add a new source:
1. Create a new folder (e.g., dropbox/)
2. Implement the FolderSource interface
3. Register using the @register_source decorator
4. Import it here so the registry sees it
"""

from connectors.folder_source import (
    FolderSource,
    SourceFile,
    SourceFolder,
    LocalFolderSource,
    create_folder_source,
    register_source,
    list_available_sources,
)
from connectors.sharepoint import SharePointFolderSource

__all__ = [
    # Core interface
    "FolderSource",
    "SourceFile",
    "SourceFolder",
    # Implementations
    "LocalFolderSource",
    "SharePointFolderSource",
    # Factory
    "create_folder_source",
    "register_source",
    "list_available_sources",
]
