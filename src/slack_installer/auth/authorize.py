"""Request-time authorization: stored installation to live credentials."""

import logging
import time
from typing import Callable

from .installation_store import InstallationStore
from .token_rotation import TokenRotator
from ..models import AuthorizeResult, Installation, InstallationQuery
from ..utils.errors import AuthorizationError, InstallationNotFoundError

logger = logging.getLogger(__name__)


def flatten_installation(
    installation: Installation, query: InstallationQuery
) -> AuthorizeResult:
    """
    Build the AuthorizeResult view of an installation.

    Org-wide installs carry no team id, so the query's team id is used when
    the record has none; the same applies to the enterprise id.
    """
    result = AuthorizeResult(
        team_id=installation.team_id or query.team_id,
        enterprise_id=installation.enterprise_id or query.enterprise_id,
    )

    bot = installation.bot
    if bot is not None:
        result.bot_token = bot.token
        result.bot_id = bot.id
        result.bot_user_id = bot.user_id
        if bot.rotates:
            result.bot_refresh_token = bot.refresh_token
            result.bot_token_expires_at = bot.expires_at

    user = installation.user
    if user is not None:
        result.user_token = user.token
        if user.rotates:
            result.user_refresh_token = user.refresh_token
            result.user_token_expires_at = user.expires_at

    return result


class AuthorizeResolver:
    """Resolves an InstallationQuery into an AuthorizeResult, rotating tokens."""

    def __init__(
        self,
        installation_store: InstallationStore,
        token_rotator: TokenRotator,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger = logger,
    ) -> None:
        self.installation_store = installation_store
        self.token_rotator = token_rotator
        self.clock = clock
        self.logger = logger

    async def authorize(self, query: InstallationQuery) -> AuthorizeResult:
        """
        Fetch credentials for ``query``.

        Raises:
            AuthorizationError: If the installation cannot be loaded or
                rotation fails; the cause is chained.
        """
        try:
            installation = await self.installation_store.fetch_installation(query)
            if installation is None:
                raise InstallationNotFoundError(
                    "Failed fetching data from the Installation Store"
                )

            result = flatten_installation(installation, query)

            if result.bot_refresh_token or result.user_refresh_token:
                failures = await self.token_rotator.rotate(
                    installation, result, int(self.clock())
                )
                for failure in failures:
                    self.logger.warning(f"Serving stale token after refresh error: {failure}")

            return result
        except Exception as e:
            raise AuthorizationError(str(e)) from e
