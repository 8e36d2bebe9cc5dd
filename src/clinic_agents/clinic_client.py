"""HTTP client for the clinic data API with OAuth2 client-credentials auth.

The relational schema and its query layer live behind the clinic
dashboard's REST API. This module provides ClinicAPIClient, which handles:
1. Token acquisition via the OAuth2 "client credentials" grant
2. Re-acquiring the token shortly before it expires
3. Authenticated GET/POST/PATCH requests to any API endpoint
4. One retry with a fresh token when the API answers 401

Every tool and the API telemetry sink share a single client via get_client().

Usage:
    client = await get_client()
    data = await client.get("/patients", params={"search": "Garcia"})
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from clinic_agents.config import (
    CLINIC_API_BASE_URL,
    CLINIC_API_TOKEN_URL,
    CLINIC_CLIENT_ID,
    CLINIC_CLIENT_SECRET,
    CLINIC_SSL_VERIFY,
)

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = "patients:read appointments:write claims:read medicaid:read agent-logs:write"


class ClinicAuthError(Exception):
    """Raised when the client-credentials token request fails."""


class ClinicAPIError(Exception):
    """Raised when an API request returns an error response.

    status_code is 0 when the request never got a response (connection
    refused, timeout, TLS failure).
    """

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class ClinicAPIClient:
    """Async HTTP client for the clinic data API.

    Attributes:
        base_url: API root, e.g. "http://localhost:3000/api".
        token_url: OAuth2 token endpoint (defaults to {base_url}/oauth/token).
    """

    def __init__(
        self,
        base_url: str = CLINIC_API_BASE_URL,
        client_id: str = CLINIC_CLIENT_ID,
        client_secret: str = CLINIC_CLIENT_SECRET,
        token_url: str = CLINIC_API_TOKEN_URL,
        verify_ssl: bool = CLINIC_SSL_VERIFY,
        scopes: str = DEFAULT_SCOPES,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url or f"{self.base_url}/oauth/token"
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = scopes

        self._access_token: str = ""
        self._token_expires_at: float = 0.0  # Unix timestamp

        self._http = httpx.AsyncClient(
            verify=verify_ssl,
            timeout=httpx.Timeout(30.0),
        )

    @property
    def auth_enabled(self) -> bool:
        return bool(self.client_id)

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    # --- OAuth2 ---

    async def _get_token(self) -> None:
        """Get an access token using the client-credentials grant.

        The token endpoint expects form-encoded data, not JSON.

        Raises:
            ClinicAuthError: If the token request fails.
        """
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scopes,
        }
        try:
            response = await self._http.post(self.token_url, data=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ClinicAuthError(
                f"Token request failed (HTTP {exc.response.status_code}): {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ClinicAuthError(f"Token request failed: {exc}") from exc

        data = response.json()
        self._access_token = data["access_token"]
        expires_in = data.get("expires_in", 3600)
        # Renew a minute early so in-flight requests never carry a stale token
        self._token_expires_at = time.time() + expires_in - 60
        logger.debug("Clinic API token acquired, expires in %d seconds", expires_in)

    async def _ensure_token(self) -> None:
        if not self.auth_enabled:
            return
        if not self._access_token or time.time() >= self._token_expires_at:
            await self._get_token()

    # --- API Request Methods ---

    async def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Authenticated GET. Parameters whose value is None are dropped."""
        return await self._request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json_data: dict[str, Any] | None = None) -> Any:
        return await self._request("POST", endpoint, json_data=json_data)

    async def patch(self, endpoint: str, json_data: dict[str, Any] | None = None) -> Any:
        return await self._request("PATCH", endpoint, json_data=json_data)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> Any:
        """Send an authenticated request and return the parsed JSON body.

        Raises:
            ClinicAuthError: If token acquisition fails.
            ClinicAPIError: If the request fails or returns a non-2xx status.
        """
        await self._ensure_token()

        url = f"{self.base_url}{endpoint}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await self._http.request(
                method, url, headers=self._headers(), params=params, json=json_data
            )
            # The token may have been revoked server-side; re-authenticate once
            if response.status_code == 401 and self.auth_enabled:
                logger.warning("Got 401 from clinic API — retrying with fresh token")
                await self._get_token()
                response = await self._http.request(
                    method, url, headers=self._headers(), params=params, json=json_data
                )
        except httpx.HTTPError as exc:
            raise ClinicAPIError(
                status_code=0,
                detail=f"Request to {url} failed: {exc}",
            ) from exc

        if response.status_code >= 400:
            raise ClinicAPIError(status_code=response.status_code, detail=response.text)

        if not response.content:
            return {}
        return response.json()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers


# --- Module-level singleton ---
# FastAPI runs in a single event loop, so one client instance is fine.

_client: ClinicAPIClient | None = None


async def get_client() -> ClinicAPIClient:
    """Get or create the shared ClinicAPIClient."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = ClinicAPIClient()
    return _client


async def close_client() -> None:
    """Close the shared client, if one was created."""
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.close()
        _client = None
