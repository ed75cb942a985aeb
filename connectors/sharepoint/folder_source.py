"""SharePoint Folder Source.

Lists the sales-order packet folders of a SharePoint document library through
Microsoft Graph:

    GET /sites/{host}:{site_path}                    → site id
    GET /sites/{site_id}/drives                      → drive id ("Documents" or first)
    GET /drives/{drive}/root:/{folder}:/children     → packet folders
    GET /drives/{drive}/items/{id}/children          → files of one packet
    GET /drives/{drive}/items/{id}/content           → file bytes, at import time

Graph errors never leave this module as-is: they become
SourceUnavailableError so the scan fails loudly instead of reporting an empty
source.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from connectors.folder_source import FolderSource, SourceFile, SourceFolder, register_source
from connectors.sharepoint.graph_auth import GraphAuthConfig, GraphAuthProvider
from connectors.sharepoint.graph_client import GraphApiError, GraphClient
from core.observability.logging import get_logger
from core.security.encryption import TokenEncryption
from folder_sync.errors import SourceUnavailableError
from folder_sync.settings import SyncSettings

logger = get_logger(__name__)


@register_source("sharepoint")
class SharePointFolderSource(FolderSource):
    """Folder source backed by a SharePoint document library.

    Usage:
        source = SharePointFolderSource("", SyncSettings.from_env())
        folders = await source.list_folders()
        data = await source.download(folders[0].files[0].download_reference)
        await source.close()
    """

    def __init__(self, location: str, settings: SyncSettings, client: Optional[GraphClient] = None):
        """Initialize the source.

        Args:
            location: Unused; the SharePoint location comes from settings
            settings: Sync settings with the ``sharepoint`` section filled in
            client: Pre-built Graph client (tests inject a fake)
        """
        super().__init__(settings)
        self.sp = settings.sharepoint
        self._client = client
        self._owns_client = client is None
        self._drive_id: Optional[str] = None

    def _get_client(self) -> GraphClient:
        if self._client is not None:
            return self._client

        if not self.sp.has_credentials or not self.sp.site_host:
            raise SourceUnavailableError(
                "SharePoint credentials are not configured "
                "(SHAREPOINT_TENANT_ID / SHAREPOINT_CLIENT_ID / SHAREPOINT_CLIENT_SECRET / SHAREPOINT_SITE_HOST)",
                source="sharepoint",
            )

        key = self.settings.token_encryption_key
        auth = GraphAuthProvider(
            GraphAuthConfig(
                tenant_id=self.sp.tenant_id,
                client_id=self.sp.client_id,
                client_secret=self.sp.client_secret,
            ),
            cache_path=self.sp.token_cache_path,
            encryption=TokenEncryption(key) if key else None,
        )
        self._client = GraphClient(auth)
        return self._client

    async def _resolve_drive_id(self, client: GraphClient) -> str:
        """Find the document library drive; cached for the source's lifetime."""
        if self._drive_id:
            return self._drive_id

        site_path = self.sp.site_path if self.sp.site_path.startswith("/") else f"/{self.sp.site_path}"
        site = await client.get_json(f"/sites/{self.sp.site_host}:{site_path}")
        drives = await client.list_all(f"/sites/{site['id']}/drives")
        if not drives:
            raise SourceUnavailableError(
                f"No document library found on site {self.sp.site_host}{site_path}",
                source="sharepoint",
            )

        drive = next((d for d in drives if d.get("name") == self.sp.drive_name), drives[0])
        self._drive_id = drive["id"]
        logger.info(
            "Resolved SharePoint drive",
            extra_fields={"drive_id": self._drive_id, "drive_name": drive.get("name")},
        )
        return self._drive_id

    async def list_folders(self) -> List[SourceFolder]:
        client = self._get_client()
        try:
            drive_id = await self._resolve_drive_id(client)
            root = quote(self.sp.operations_folder.strip("/"), safe="/")
            children = await client.list_all(f"/drives/{drive_id}/root:/{root}:/children")

            folders = []
            for child in children:
                if "folder" not in child or not self.matches_folder(child.get("name", "")):
                    continue
                items = await client.list_all(f"/drives/{drive_id}/items/{child['id']}/children")
                files = [self._to_source_file(drive_id, item) for item in items if "file" in item]
                folders.append(SourceFolder(name=child["name"], files=files))
            return folders

        except GraphApiError as e:
            raise SourceUnavailableError(
                f"SharePoint listing failed: {e}", source="sharepoint", status_code=e.status_code
            ) from e

    @staticmethod
    def _to_source_file(drive_id: str, item: Dict[str, Any]) -> SourceFile:
        # The listing's pre-authenticated downloadUrl expires within the hour
        reference = f"/drives/{drive_id}/items/{item['id']}/content"
        return SourceFile(name=item["name"], download_reference=reference)

    async def download(self, reference: str) -> bytes:
        if not reference:
            raise SourceUnavailableError("File has no download reference", source="sharepoint")

        client = self._get_client()
        # Pre-authenticated download URLs must not carry the bearer token
        authenticated = not reference.startswith("https://")
        try:
            return await client.download(reference, authenticated=authenticated)
        except GraphApiError as e:
            raise SourceUnavailableError(
                f"SharePoint download failed: {e}", source="sharepoint", status_code=e.status_code
            ) from e

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None
            self._drive_id = None
