"""Microsoft Graph Authentication Provider.

Handles the OAuth2 client-credentials flow against Azure AD for Graph API
access (app-only, scope ``https://graph.microsoft.com/.default``).
Tokens are cached in memory and, optionally, on disk; the disk cache is
encrypted when a TokenEncryption is supplied.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import aiohttp

from connectors.sharepoint.graph_client import GraphAuthenticationError
from core.observability.logging import get_logger
from core.security.encryption import EncryptedToken, TokenEncryption

logger = get_logger(__name__)

# Refresh this long before the token actually expires
EXPIRY_BUFFER = timedelta(seconds=60)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GraphAuthConfig:
    """Configuration for Graph authentication.

    Attributes:
        tenant_id: Azure AD tenant ID
        client_id: Application (client) ID
        client_secret: Client secret
        scope: OAuth2 scope
    """
    tenant_id: str
    client_id: str
    client_secret: str
    scope: str = "https://graph.microsoft.com/.default"
    authority_url: str = "https://login.microsoftonline.com"
    timeout_seconds: int = 30

    @property
    def token_endpoint(self) -> str:
        """Get the OAuth2 token endpoint."""
        return f"{self.authority_url}/{self.tenant_id}/oauth2/v2.0/token"


@dataclass
class GraphToken:
    """OAuth2 access token with expiration tracking."""
    access_token: str
    token_type: str
    expires_in: int
    obtained_at: datetime = field(default_factory=_utcnow)

    @property
    def expires_at(self) -> datetime:
        return self.obtained_at + timedelta(seconds=self.expires_in)

    @property
    def is_expired(self) -> bool:
        """True once we are inside the refresh buffer."""
        return _utcnow() >= (self.expires_at - EXPIRY_BUFFER)

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "obtained_at": self.obtained_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphToken":
        obtained_at = datetime.fromisoformat(data["obtained_at"])
        if obtained_at.tzinfo is None:
            obtained_at = obtained_at.replace(tzinfo=timezone.utc)
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type", "Bearer"),
            expires_in=int(data["expires_in"]),
            obtained_at=obtained_at,
        )


class GraphAuthProvider:
    """Authentication provider for Microsoft Graph.

    Usage:
        auth = GraphAuthProvider(GraphAuthConfig(tenant_id, client_id, secret))
        await auth.ensure_valid_token()
        headers = {"Authorization": auth.get_authorization_header()}
    """

    def __init__(
        self,
        config: GraphAuthConfig,
        cache_path: Optional[Path] = None,
        encryption: Optional[TokenEncryption] = None,
    ):
        self.config = config
        self.cache_path = cache_path
        self.encryption = encryption
        self._token: Optional[GraphToken] = None

    async def ensure_valid_token(self) -> GraphToken:
        """Return a non-expired token, fetching a new one if needed.

        Raises:
            GraphAuthenticationError: If Azure AD refuses or cannot be reached
        """
        if self._token and not self._token.is_expired:
            return self._token

        cached = self._load_cached_token()
        if cached is not None:
            self._token = cached
            return cached

        token_data = await self._request_token()
        self._token = GraphToken(
            access_token=token_data["access_token"],
            token_type=token_data.get("token_type", "Bearer"),
            expires_in=int(token_data.get("expires_in", 3600)),
        )
        self._save_token_to_cache()
        logger.info(
            "Obtained Graph access token",
            extra_fields={"tenant_id": self.config.tenant_id, "expires_in": self._token.expires_in},
        )
        return self._token

    def get_authorization_header(self) -> Optional[str]:
        if self._token and not self._token.is_expired:
            return self._token.authorization_header
        return None

    def invalidate(self) -> None:
        """Drop the current token (after a 401/403) so the next call refetches."""
        self._token = None
        if self.cache_path and self.cache_path.exists():
            self.cache_path.unlink()

    async def _request_token(self) -> Dict[str, Any]:
        data = {
            "grant_type": "client_credentials",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "scope": self.config.scope,
        }
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.config.token_endpoint,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise GraphAuthenticationError(
                            f"Token request failed: {response.status} - {error_text}",
                            response.status,
                            error_text,
                        )
                    return await response.json()
        except aiohttp.ClientError as e:
            raise GraphAuthenticationError(f"Token request failed: {e}") from e

    # -------------------------------------------------------------------------
    # Disk cache
    # -------------------------------------------------------------------------

    def _load_cached_token(self) -> Optional[GraphToken]:
        if not self.cache_path or not self.cache_path.exists():
            return None

        try:
            data = json.loads(self.cache_path.read_text())
            if self.encryption is not None:
                data = self.encryption.decrypt(EncryptedToken.from_dict(data))
            token = GraphToken.from_dict(data)
        except (ValueError, KeyError, OSError) as e:
            logger.warning(f"Ignoring unreadable token cache: {e}")
            return None

        return None if token.is_expired else token

    def _save_token_to_cache(self) -> None:
        if not self.cache_path or not self._token:
            return

        data = self._token.to_dict()
        if self.encryption is not None:
            data = self.encryption.encrypt(data, tenant_id=self.config.tenant_id).to_dict()

        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            self.cache_path.write_text(json.dumps(data))
        except OSError as e:
            logger.warning(f"Failed to cache token: {e}")
