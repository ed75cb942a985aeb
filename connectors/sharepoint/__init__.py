"""SharePoint Connector Package.

Implements the FolderSource interface on top of Microsoft Graph.
"""

from connectors.sharepoint.folder_source import SharePointFolderSource
from connectors.sharepoint.graph_auth import GraphAuthProvider, GraphAuthConfig, GraphToken
from connectors.sharepoint.graph_client import (
    GraphClient,
    GraphApiConfig,
    GraphApiError,
    GraphAuthenticationError,
    GraphNotFoundError,
    GraphRateLimitError,
    GraphValidationError,
    RetryConfig,
)

__all__ = [
    # Source
    "SharePointFolderSource",
    # Client credentials auth
    "GraphAuthProvider",
    "GraphAuthConfig",
    "GraphToken",
    # HTTP client
    "GraphClient",
    "GraphApiConfig",
    "RetryConfig",
    # Errors
    "GraphApiError",
    "GraphAuthenticationError",
    "GraphNotFoundError",
    "GraphRateLimitError",
    "GraphValidationError",
]
