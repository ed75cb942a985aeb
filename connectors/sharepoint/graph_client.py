"""Microsoft Graph HTTP Client.

Low-level HTTP client for the Graph v1.0 API calls the SharePoint folder
source needs. Handles authentication headers, ``@odata.nextLink`` paging,
retries and error handling.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from core.observability.logging import get_logger

logger = get_logger(__name__)


class GraphApiError(Exception):
    """Base exception for Graph API errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class GraphAuthenticationError(GraphApiError):
    """Authentication failed (401/403) or no token could be obtained."""
    pass


class GraphNotFoundError(GraphApiError):
    """Resource not found (404)."""
    pass


class GraphRateLimitError(GraphApiError):
    """Rate limit exceeded (429)."""
    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message, 429)
        self.retry_after = retry_after


class GraphValidationError(GraphApiError):
    """Bad request (400)."""
    pass


def _parse_retry_after(value: Optional[str], default: int = 60) -> int:
    """Retry-After in seconds; HTTP-date values fall back to the default."""
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return default


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 60.0  # seconds
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (429, 500, 502, 503, 504)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt (exponential backoff)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)


@dataclass
class GraphApiConfig:
    """Configuration for the Graph API client."""
    base_url: str = "https://graph.microsoft.com/v1.0"
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    timeout_seconds: int = 30


class GraphClient:
    """HTTP client for Microsoft Graph.

    Provides:
    - Authenticated JSON GETs
    - Automatic ``@odata.nextLink`` pagination
    - Error handling and retries
    - File content downloads (pre-authenticated or authenticated)

    Usage:
        client = GraphClient(auth_provider)
        site = await client.get_json("/sites/contoso.sharepoint.com:/sites/Ops")
        drives = await client.list_all(f"/sites/{site['id']}/drives")
        await client.close()
    """

    def __init__(self, auth_provider, api_config: Optional[GraphApiConfig] = None):
        """Initialize API client.

        Args:
            auth_provider: GraphAuthProvider (or any object with
                ensure_valid_token / get_authorization_header / invalidate)
            api_config: API configuration
        """
        self.auth_provider = auth_provider
        self.api_config = api_config or GraphApiConfig()
        self._session: Optional[aiohttp.ClientSession] = None

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            return endpoint
        return f"{self.api_config.base_url}/{endpoint.lstrip('/')}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        authenticated: bool = True,
        raw: bool = False,
    ) -> Any:
        """Make an API request with automatic retries.

        Args:
            method: HTTP method
            endpoint: Path below the base URL, or a complete URL
            params: Query parameters
            authenticated: Send the bearer token (False for pre-authenticated URLs)
            raw: Return the body as bytes instead of parsed JSON

        Returns:
            Response JSON, or bytes when ``raw`` is set

        Raises:
            GraphAuthenticationError: Authentication failed
            GraphNotFoundError: Resource not found
            GraphRateLimitError: Rate limit exceeded
            GraphValidationError: Bad request
            GraphApiError: Other API errors
        """
        url = self._build_url(endpoint)
        retry_config = self.api_config.retry_config
        timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)
        session = self._get_session()
        refreshed = False
        last_error: Optional[Exception] = None

        for attempt in range(retry_config.max_retries + 1):
            headers = {"Accept": "application/json"} if not raw else {}
            if authenticated:
                await self.auth_provider.ensure_valid_token()
                auth_header = self.auth_provider.get_authorization_header()
                if not auth_header:
                    raise GraphAuthenticationError("Not authenticated")
                headers["Authorization"] = auth_header

            try:
                async with session.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    timeout=timeout,
                ) as response:
                    if response.status < 400:
                        if raw:
                            return await response.read()
                        if response.status == 204:
                            return {}
                        response_text = await response.text()
                        return json.loads(response_text) if response_text else {}

                    response_text = await response.text()

                    if response.status in (401, 403):
                        # Refresh the token once
                        if authenticated and not refreshed:
                            logger.warning("Got 401/403 from Graph, refreshing token")
                            self.auth_provider.invalidate()
                            refreshed = True
                            continue
                        raise GraphAuthenticationError(
                            f"Authentication failed: {response_text}",
                            response.status,
                            response_text,
                        )

                    if response.status == 404:
                        raise GraphNotFoundError(
                            f"Resource not found: {url}",
                            response.status,
                            response_text,
                        )

                    if response.status == 429:
                        retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                        if attempt < retry_config.max_retries:
                            logger.warning(f"Rate limited by Graph, waiting {retry_after}s...")
                            await asyncio.sleep(retry_after)
                            continue
                        raise GraphRateLimitError("Rate limit exceeded", retry_after)

                    if response.status == 400:
                        raise GraphValidationError(
                            f"Bad request: {response_text}",
                            response.status,
                            response_text,
                        )

                    if response.status in retry_config.retry_on_status:
                        if attempt < retry_config.max_retries:
                            delay = retry_config.get_delay(attempt)
                            logger.warning(
                                f"Request failed with {response.status}, "
                                f"retrying in {delay:.1f}s (attempt {attempt + 1}/{retry_config.max_retries})"
                            )
                            await asyncio.sleep(delay)
                            continue

                    raise GraphApiError(
                        f"API error {response.status}: {response_text}",
                        response.status,
                        response_text,
                    )

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
                if attempt < retry_config.max_retries:
                    delay = retry_config.get_delay(attempt)
                    logger.warning(
                        f"Request failed with {type(e).__name__}: {e}, "
                        f"retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise GraphApiError(
                    f"Request failed after {retry_config.max_retries} retries: {e}"
                ) from e

        raise GraphApiError(f"Request failed: {last_error}")

    async def get_json(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """GET a single resource."""
        return await self._request("GET", endpoint, params=params)

    async def list_all(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """GET a collection, following ``@odata.nextLink`` until exhausted.

        Returns:
            Every item of every page, in order
        """
        items: List[Dict[str, Any]] = []
        next_url: Optional[str] = endpoint

        while next_url:
            page = await self._request("GET", next_url, params=params)
            items.extend(page.get("value", []))
            next_url = page.get("@odata.nextLink")
            # nextLink already carries the query string
            params = None

        return items

    async def download(self, url: str, authenticated: bool = False) -> bytes:
        """Download file content.

        Args:
            url: ``@microsoft.graph.downloadUrl`` (pre-authenticated) or an
                ``/items/{id}/content`` endpoint
            authenticated: Send the bearer token
        """
        return await self._request("GET", url, authenticated=authenticated, raw=True)
