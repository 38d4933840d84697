"""
OAuth callback handling for the Slack installer.

CallbackHandler drives one redirect from the platform through parameter
extraction, state verification, code exchange, installation assembly and
persistence. Every outcome is returned as a CallbackSuccess or a
CallbackFailure; no exception escapes ``handle``.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple, Union
from urllib.parse import parse_qs, urlsplit

from .auth_client import AuthClient
from .installation_store import InstallationStore
from .scopes import LEGACY_BOT_SCOPES, split_scopes
from .state_store import StateStore
from ..models import (
    AuthVersion,
    Enterprise,
    Grant,
    IncomingWebhook,
    Installation,
    InstallUrlOptions,
    Team,
    empty_install_options,
)
from ..utils.constants import ACCESS_DENIED
from ..utils.errors import (
    AuthorizationError,
    MissingCodeError,
    MissingStateError,
    UnknownError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallbackSuccess:
    installation: Installation
    install_options: InstallUrlOptions


@dataclass(frozen=True)
class CallbackFailure:
    error: Exception
    install_options: InstallUrlOptions


CallbackResult = Union[CallbackSuccess, CallbackFailure]


def _query_param(params: Dict[str, list], name: str) -> Optional[str]:
    values = params.get(name)
    return values[0] if values else None


def _rotation_fields(
    refresh_token: Optional[str], expires_in: Optional[int], now: int
) -> Dict[str, Any]:
    """Rotation fields for a grant, only when both halves were returned."""
    if refresh_token is None or expires_in is None:
        return {}
    return {"refresh_token": refresh_token, "expires_at": now + int(expires_in)}


def _incoming_webhook(response: Dict[str, Any]) -> Optional[IncomingWebhook]:
    webhook = response.get("incoming_webhook")
    if not webhook:
        return None
    return IncomingWebhook(
        url=webhook.get("url"),
        channel=webhook.get("channel"),
        channel_id=webhook.get("channel_id"),
        configuration_url=webhook.get("configuration_url"),
    )


def build_v1_installation(
    response: Dict[str, Any],
    bot_identity: Optional[Dict[str, Any]],
    metadata: Optional[Any] = None,
) -> Installation:
    """
    Map an ``oauth.access`` response to an Installation.

    Enterprise-wide installs do not exist in the v1 flow. Bot scopes are not
    reported, so a bot grant carries the legacy ``bot`` scope.
    """
    enterprise_id = response.get("enterprise_id")
    bot = None
    if response.get("bot") is not None:
        bot_data = response["bot"]
        bot = Grant(
            token=bot_data.get("bot_access_token"),
            scopes=list(LEGACY_BOT_SCOPES),
            id=(bot_identity or {}).get("bot_id"),
            user_id=bot_data.get("bot_user_id"),
        )

    return Installation(
        auth_version=AuthVersion.V1,
        is_enterprise_install=False,
        team=Team(id=response.get("team_id"), name=response.get("team_name")),
        enterprise=Enterprise(id=enterprise_id) if enterprise_id else None,
        app_id=response.get("app_id"),
        metadata=metadata,
        incoming_webhook=_incoming_webhook(response),
        bot=bot,
        user=Grant(
            token=response.get("access_token"),
            scopes=split_scopes(response.get("scope")),
            id=response.get("user_id"),
        ),
    )


def has_complete_bot_grant(response: Dict[str, Any]) -> bool:
    """A v2 bot grant needs its token, scopes and bot user id together."""
    return all(
        response.get(key) is not None
        for key in ("access_token", "scope", "bot_user_id")
    )


def build_v2_installation(
    response: Dict[str, Any],
    now: int,
    bot_identity: Optional[Dict[str, Any]] = None,
    enterprise_url: Optional[str] = None,
    metadata: Optional[Any] = None,
) -> Installation:
    """
    Map an ``oauth.v2.access`` response to an Installation.

    Args:
        response: The decoded Web API response.
        now: Current UTC epoch seconds, used to compute token expiry.
        bot_identity: ``auth.test`` result for the bot token, if any.
        enterprise_url: Resolved organization URL for enterprise installs.
        metadata: Caller metadata recovered from the install options.
    """
    team = response.get("team")
    enterprise = response.get("enterprise")
    is_enterprise_install = bool(response.get("is_enterprise_install"))

    bot = None
    if has_complete_bot_grant(response):
        bot = Grant(
            token=response["access_token"],
            scopes=split_scopes(response["scope"]),
            id=(bot_identity or {}).get("bot_id"),
            user_id=response["bot_user_id"],
            **_rotation_fields(
                response.get("refresh_token"), response.get("expires_in"), now
            ),
        )

    authed_user = response.get("authed_user") or {}
    user = None
    if authed_user:
        user = Grant(
            token=authed_user.get("access_token"),
            scopes=split_scopes(authed_user.get("scope")),
            id=authed_user.get("id"),
            **_rotation_fields(
                authed_user.get("refresh_token"), authed_user.get("expires_in"), now
            ),
        )

    return Installation(
        auth_version=AuthVersion.V2,
        is_enterprise_install=is_enterprise_install,
        team=Team(id=team["id"], name=team.get("name")) if team else None,
        enterprise=(
            Enterprise(
                id=enterprise["id"],
                name=enterprise.get("name"),
                url=enterprise_url if is_enterprise_install else None,
            )
            if enterprise
            else None
        ),
        app_id=response.get("app_id"),
        token_type=response.get("token_type"),
        metadata=metadata,
        incoming_webhook=_incoming_webhook(response),
        bot=bot,
        user=user,
    )


class CallbackHandler:
    """State machine for the OAuth redirect back from the platform."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        auth_version: AuthVersion,
        auth_client: AuthClient,
        installation_store: InstallationStore,
        state_store: Optional[StateStore] = None,
        state_verification: bool = True,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger = logger,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.auth_version = auth_version
        self.auth_client = auth_client
        self.installation_store = installation_store
        self.state_store = state_store
        self.state_verification = state_verification
        self.clock = clock
        self.logger = logger

    async def handle(
        self,
        url: Optional[str],
        install_options: Optional[InstallUrlOptions] = None,
    ) -> CallbackResult:
        """
        Process one callback request.

        Args:
            url: The request URL (absolute or path with query string).
            install_options: Options to use when state verification is off.

        Returns:
            CallbackSuccess with the stored installation, or CallbackFailure
            carrying the original error and the best-known install options.
        """
        try:
            code, state = self._extract_params(url)
            install_options = await self._verify_state(state, install_options)
            response = await self.auth_client.exchange_code(
                self.auth_version,
                code=code,
                client_id=self.client_id,
                client_secret=self.client_secret,
                redirect_uri=install_options.redirect_uri,
            )
            installation = await self._build_installation(response, install_options)
            await self._persist(installation)
        except Exception as e:
            self.logger.error(f"OAuth callback failed: {e}")
            return CallbackFailure(
                error=e, install_options=install_options or empty_install_options()
            )

        self.logger.debug("OAuth callback completed")
        return CallbackSuccess(installation=installation, install_options=install_options)

    def _extract_params(self, url: Optional[str]) -> Tuple[str, Optional[str]]:
        if not url:
            raise UnknownError("Something went wrong: the callback request has no URL")

        params = parse_qs(urlsplit(url).query)
        if _query_param(params, "error") == ACCESS_DENIED:
            raise AuthorizationError("User cancelled the OAuth installation flow!")

        code = _query_param(params, "code")
        state = _query_param(params, "state")
        if not code:
            raise MissingCodeError(
                "Redirect url is missing the required code query parameter"
            )
        if self.state_verification and not state:
            raise MissingStateError(
                "Redirect url is missing the state query parameter. If this is "
                "intentional, see options for disabling default state verification."
            )
        return code, state

    async def _verify_state(
        self, state: Optional[str], install_options: Optional[InstallUrlOptions]
    ) -> InstallUrlOptions:
        if self.state_verification and self.state_store is not None:
            now = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
            return await self.state_store.verify(now, state)
        return install_options or empty_install_options()

    async def _build_installation(
        self, response: Dict[str, Any], install_options: InstallUrlOptions
    ) -> Installation:
        metadata = install_options.metadata

        if self.auth_version == AuthVersion.V1:
            bot_identity = None
            if response.get("bot") is not None:
                bot_identity = await self.auth_client.verify_identity(
                    response["bot"]["bot_access_token"]
                )
            return build_v1_installation(response, bot_identity, metadata)

        now = int(self.clock())
        bot_identity = None
        enterprise_url = None
        is_enterprise_install = bool(response.get("is_enterprise_install"))

        if has_complete_bot_grant(response):
            self.logger.debug(f"Verifying bot identity {response['access_token'][:8]}...")
            bot_identity = await self.auth_client.verify_identity(
                response["access_token"]
            )
            if is_enterprise_install:
                enterprise_url = bot_identity.get("url")

        user_token = (response.get("authed_user") or {}).get("access_token")
        if is_enterprise_install and enterprise_url is None and user_token:
            user_identity = await self.auth_client.verify_identity(user_token)
            enterprise_url = user_identity.get("url")

        return build_v2_installation(
            response,
            now,
            bot_identity=bot_identity,
            enterprise_url=enterprise_url,
            metadata=metadata,
        )

    async def _persist(self, installation: Installation) -> None:
        if installation.is_enterprise_install:
            self.logger.info(
                f"Storing enterprise installation for {installation.enterprise_id}"
            )
        else:
            self.logger.info(f"Storing team installation for {installation.team_id}")
        await self.installation_store.store_installation(installation)
