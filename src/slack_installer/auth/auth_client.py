"""
Outbound OAuth calls for the Slack installer.

The installer never talks to the network directly; it goes through an
AuthClient injected at construction time. HttpxAuthClient is the production
implementation, calling the platform Web API over httpx.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from ..models import AuthVersion
from ..utils.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_HTTP_TIMEOUT,
    METHOD_AUTH_TEST,
    METHOD_OAUTH_V1_ACCESS,
    METHOD_OAUTH_V2_ACCESS,
)
from ..utils.errors import PlatformApiError, handle_http_error

logger = logging.getLogger(__name__)


class AuthClient(ABC):
    """Capability interface for the three outbound OAuth operations."""

    @abstractmethod
    async def exchange_code(
        self,
        auth_version: AuthVersion,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Exchange an authorization code for tokens (v1 or v2 endpoint)."""

    @abstractmethod
    async def refresh_token(
        self, refresh_token: str, client_id: str, client_secret: str
    ) -> Dict[str, Any]:
        """Exchange a refresh token for a new access token."""

    @abstractmethod
    async def verify_identity(self, token: str) -> Dict[str, Any]:
        """Look up the identity behind a token (bot id, workspace url)."""


class HttpxAuthClient(AuthClient):
    """AuthClient backed by the platform Web API."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Args:
            base_url: Web API root, e.g. ``https://slack.com/api/``.
            timeout: Per-request timeout in seconds.
            http_client: Optional shared client; one is created per call otherwise.
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self._http_client = http_client

    async def _call(
        self,
        method: str,
        data: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{method}"
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        form = {key: value for key, value in (data or {}).items() if value is not None}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, data=form, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, data=form, headers=headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            logger.error(f"{method} request failed: {e}")
            raise handle_http_error(e, method) from e
        except ValueError as e:
            raise PlatformApiError(f"{method} returned a non-JSON response") from e

        if not payload.get("ok"):
            error = payload.get("error", "unknown_error")
            logger.error(f"{method} returned an error: {error}")
            raise PlatformApiError(
                f"{method} failed: {error}",
                error=error,
                status_code=response.status_code,
            )
        return payload

    async def exchange_code(
        self,
        auth_version: AuthVersion,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
    ) -> Dict[str, Any]:
        method = (
            METHOD_OAUTH_V1_ACCESS
            if auth_version == AuthVersion.V1
            else METHOD_OAUTH_V2_ACCESS
        )
        return await self._call(
            method,
            {
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
            },
        )

    async def refresh_token(
        self, refresh_token: str, client_id: str, client_secret: str
    ) -> Dict[str, Any]:
        return await self._call(
            METHOD_OAUTH_V2_ACCESS,
            {
                "client_id": client_id,
                "client_secret": client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
        )

    async def verify_identity(self, token: str) -> Dict[str, Any]:
        return await self._call(METHOD_AUTH_TEST, token=token)
