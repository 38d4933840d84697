"""
Token rotation for installations that opted into expiring tokens.

Rotation runs in three steps: detect which grants are expired or expire
within the window, refresh them concurrently, then apply each outcome to the
installation and the caller's AuthorizeResult, persisting after every one.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Union

from .auth_client import AuthClient
from .installation_store import InstallationStore
from ..models import AuthorizeResult, GrantKind, Installation
from ..utils.constants import TOKEN_EXPIRY_WINDOW_SECONDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshOutcome:
    token_type: GrantKind
    access_token: str
    refresh_token: str
    expires_in: int


RefreshResult = Union[RefreshOutcome, Exception]


def _is_expiring(
    refresh_token: Optional[str], expires_at: Optional[int], now: int
) -> bool:
    if not refresh_token or expires_at is None:
        return False
    return expires_at - now <= TOKEN_EXPIRY_WINDOW_SECONDS


def detect_refreshable(result: AuthorizeResult, now: int) -> List[str]:
    """
    Collect refresh tokens whose access tokens are expired or about to expire.

    Args:
        result: The flattened authorization for the installation.
        now: Current UTC epoch seconds.

    Returns:
        Refresh tokens to exchange, bot first.
    """
    tokens = []
    if _is_expiring(result.bot_refresh_token, result.bot_token_expires_at, now):
        tokens.append(result.bot_refresh_token)
    if _is_expiring(result.user_refresh_token, result.user_token_expires_at, now):
        tokens.append(result.user_refresh_token)
    return tokens


class TokenRotator:
    """Refreshes expiring tokens and writes the new values back."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        auth_client: AuthClient,
        installation_store: InstallationStore,
        logger: logging.Logger = logger,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.auth_client = auth_client
        self.installation_store = installation_store
        self.logger = logger

    async def _refresh_one(self, refresh_token: str) -> RefreshOutcome:
        response = await self.auth_client.refresh_token(
            refresh_token, self.client_id, self.client_secret
        )
        return RefreshOutcome(
            token_type=GrantKind(response["token_type"]),
            access_token=response["access_token"],
            refresh_token=response["refresh_token"],
            expires_in=int(response["expires_in"]),
        )

    async def refresh(self, tokens: List[str]) -> List[RefreshResult]:
        """
        Exchange every refresh token concurrently.

        A failed exchange is returned as the exception in its slot; it does
        not cancel the others.
        """
        results = await asyncio.gather(
            *(self._refresh_one(token) for token in tokens), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
        return list(results)

    async def apply(
        self,
        outcomes: List[RefreshResult],
        installation: Installation,
        result: AuthorizeResult,
        now: int,
    ) -> Installation:
        """
        Write successful outcomes into ``result`` and the installation store.

        Outcomes are persisted one at a time, in order. Failed refreshes are
        skipped; their grants keep the stale values and will be detected again
        on the next authorization.

        Returns:
            The installation as last persisted.
        """
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                self.logger.warning(f"Token refresh failed, keeping stale token: {outcome}")
                continue

            grant = installation.grant(outcome.token_type)
            if grant is None:
                self.logger.warning(
                    f"Refresh returned a {outcome.token_type.value} token but the "
                    "installation has no such grant"
                )
                continue

            expires_at = now + outcome.expires_in
            installation = installation.with_grant(
                outcome.token_type,
                replace(
                    grant,
                    token=outcome.access_token,
                    refresh_token=outcome.refresh_token,
                    expires_at=expires_at,
                ),
            )
            result.update_tokens(
                outcome.token_type,
                outcome.access_token,
                outcome.refresh_token,
                expires_at,
            )
            await self.installation_store.store_installation(installation)
            self.logger.info(
                f"Rotated {outcome.token_type.value} token "
                f"(expires at {expires_at})"
            )
        return installation

    async def rotate(
        self, installation: Installation, result: AuthorizeResult, now: int
    ) -> List[Exception]:
        """
        Detect, refresh and apply in one pass.

        Returns:
            Errors from individual refresh exchanges, if any.
        """
        tokens = detect_refreshable(result, now)
        if not tokens:
            return []

        self.logger.debug(f"Refreshing {len(tokens)} expiring token(s)")
        outcomes = await self.refresh(tokens)
        await self.apply(outcomes, installation, result, now)
        return [outcome for outcome in outcomes if isinstance(outcome, Exception)]
