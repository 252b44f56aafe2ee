"""
Site Publisher - Hosting API Client

Async HTTP binding of the hosting provider's REST API (Firebase Hosting
v1beta1 shape). One client is opened per deployment attempt and passed to
every stage; it holds no deployment state of its own.

Every call carries a bearer token fetched from the token provider at call
time and is bounded by a per-call timeout. Non-2xx responses, transport
errors and timeouts all raise ProviderError.

Usage:
    async with HostingClient(base_url, token_provider) as client:
        version = await client.create_version("my-site", config)
"""

import json
from typing import Any, Callable, Optional

import httpx

from config.logging import get_logger
from config.settings import Settings
from publishing.exceptions import ConfigurationError, ProviderError


logger = get_logger(__name__)

TokenProvider = Callable[[], str]

# Truncate provider error bodies in messages and logs
MAX_ERROR_BODY = 500


def settings_token_provider(settings: Settings) -> TokenProvider:
    """
    Token provider reading HOSTING_ACCESS_TOKEN from settings.

    Refreshing the token is left to whatever populates the setting.
    """
    def _token() -> str:
        if not settings.hosting_access_token:
            raise ConfigurationError(
                "Hosting access token is not configured. Set HOSTING_ACCESS_TOKEN."
            )
        return settings.hosting_access_token

    return _token


class HostingClient:
    """
    Thin async client for the hosting REST API.

    Args:
        base_url: API root, e.g. https://firebasehosting.googleapis.com/v1beta1
        token_provider: Callable returning a valid bearer token
        timeout_seconds: Per-call timeout
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_provider: Optional[TokenProvider] = None,
    ) -> "HostingClient":
        return cls(
            base_url=settings.hosting_api_base_url,
            token_provider=token_provider or settings_token_provider(settings),
            timeout_seconds=settings.hosting_timeout_seconds,
            transport=transport,
        )

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "HostingClient":
        await self._init_http_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def _init_http_client(self) -> None:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                limits=httpx.Limits(max_connections=20),
            )
            logger.debug("Hosting HTTP client initialized")

    async def aclose(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
            logger.debug("Hosting HTTP client closed")

    # -------------------------------------------------------------------------
    # Provider Operations
    # -------------------------------------------------------------------------

    async def create_version(self, site_id: str, config: dict[str, Any]) -> str:
        """
        Create a new version for a site.

        Returns:
            The full version name, e.g. "sites/my-site/versions/abc123"
        """
        data = await self._request_json(
            "POST",
            f"{self.base_url}/sites/{site_id}/versions",
            json={"config": config},
        )
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ProviderError("Version response did not include a name", body=json.dumps(data))
        return name

    async def populate_files(self, version_name: str, files: dict[str, str]) -> dict[str, Any]:
        """Register path -> digest pairs; returns the raw populateFiles response."""
        return await self._request_json(
            "POST",
            f"{self.base_url}/{version_name}:populateFiles",
            json={"files": files},
        )

    async def upload_unit(self, upload_url: str, digest: str, data: bytes) -> None:
        """POST compressed bytes to {upload_url}/{digest}."""
        await self._request(
            "POST",
            f"{upload_url.rstrip('/')}/{digest}",
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )

    async def finalize_version(self, version_name: str) -> dict[str, Any]:
        return await self._request_json(
            "PATCH",
            f"{self.base_url}/{version_name}",
            params={"update_mask": "status"},
            json={"status": "FINALIZED"},
        )

    async def create_channel(
        self,
        site_id: str,
        channel_id: str,
        ttl_seconds: Optional[int] = None,
    ) -> bool:
        """
        Create a channel if it does not exist.

        Returns:
            True if the channel was created, False if it already existed
        """
        body: dict[str, Any] = {}
        if ttl_seconds is not None:
            body["ttl"] = f"{ttl_seconds}s"

        try:
            await self._request(
                "POST",
                f"{self.base_url}/sites/{site_id}/channels",
                params={"channelId": channel_id},
                json=body,
            )
        except ProviderError as e:
            if e.is_conflict:
                logger.debug(f"Channel already exists: {channel_id}")
                return False
            raise
        return True

    async def create_release(
        self,
        site_id: str,
        channel_id: str,
        version_name: str,
        message: str,
    ) -> dict[str, Any]:
        return await self._request_json(
            "POST",
            f"{self.base_url}/sites/{site_id}/channels/{channel_id}/releases",
            params={"versionName": version_name},
            json={"message": message},
        )

    async def get_channel(self, site_id: str, channel_id: str) -> dict[str, Any]:
        return await self._request_json(
            "GET",
            f"{self.base_url}/sites/{site_id}/channels/{channel_id}",
        )

    # -------------------------------------------------------------------------
    # HTTP Helpers
    # -------------------------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http_client is None:
            await self._init_http_client()

        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {self._token_provider()}"

        try:
            response = await self._http_client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderError(f"Timed out calling {method} {url}", url=url) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise ProviderError(f"Request to {method} {url} failed: {e}", url=url) from e

        if response.status_code >= 400:
            body = response.text[:MAX_ERROR_BODY]
            raise ProviderError(
                f"Hosting API error ({response.status_code}): {body}",
                status_code=response.status_code,
                body=body,
                url=url,
            )
        return response

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, url, **kwargs)
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"Malformed JSON from {method} {url}",
                status_code=response.status_code,
                body=response.text[:MAX_ERROR_BODY],
                url=url,
            ) from e
        if not isinstance(data, dict):
            raise ProviderError(
                f"Expected a JSON object from {method} {url}",
                status_code=response.status_code,
                body=response.text[:MAX_ERROR_BODY],
                url=url,
            )
        return data


__all__ = [
    "HostingClient",
    "TokenProvider",
    "settings_token_provider",
]
