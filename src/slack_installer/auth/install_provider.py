"""
Core installation flow for the Slack installer.

InstallProvider wires configuration and collaborators together and exposes
the three entry points of the flow: generating the install URL, handling the
OAuth callback, and authorizing requests against a stored installation.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from .auth_client import AuthClient, HttpxAuthClient
from .authorize import AuthorizeResolver
from .callback import CallbackHandler, CallbackResult
from .install_url import build_install_url
from .installation_store import (
    InstallationStore,
    LocalDirectoryInstallationStore,
    MemoryInstallationStore,
)
from .oauth_config import OAuthConfig, get_oauth_config
from .state_store import SignedStateStore, StateStore
from .token_rotation import TokenRotator
from ..models import AuthorizeResult, AuthVersion, InstallationQuery, InstallUrlOptions
from ..utils.constants import (
    AUTHORIZE_URL_V1,
    AUTHORIZE_URL_V2,
    DEFAULT_STATE_TTL_SECONDS,
)
from ..utils.errors import InstallerInitializationError

logger = logging.getLogger(__name__)


class InstallProvider:
    """
    Entry point for the "add to Slack" installation flow.

    Args:
        client_id: The app's client ID.
        client_secret: The app's client secret.
        state_secret: Secret used by the built-in signed state store.
        state_store: Replacement for the built-in state store.
        state_verification: Pass False to skip state verification. Intended
            only for org-wide installs started from admin pages.
        state_ttl_seconds: Lifetime of states issued by the built-in store.
        installation_store: Where installations are persisted. Defaults to
            an in-memory store.
        auth_version: ``v1`` or ``v2``; selects the OAuth endpoints.
        authorization_url: Override for the consent screen URL.
        auth_client: Outbound OAuth capability. Defaults to HttpxAuthClient.
        logger: Logger to use instead of the module logger.
        clock: Returns current UTC epoch seconds.
    """

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        state_secret: Optional[str] = None,
        state_store: Optional[StateStore] = None,
        state_verification: bool = True,
        state_ttl_seconds: int = DEFAULT_STATE_TTL_SECONDS,
        installation_store: Optional[InstallationStore] = None,
        auth_version: Union[AuthVersion, str] = AuthVersion.V2,
        authorization_url: Optional[str] = None,
        auth_client: Optional[AuthClient] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not client_id or not client_secret:
            raise InstallerInitializationError(
                "You must provide a valid client_id and client_secret"
            )

        self.logger = logger or logging.getLogger(__name__)
        self.client_id = client_id
        self.client_secret = client_secret
        self.clock = clock

        try:
            self.auth_version = AuthVersion(auth_version)
        except ValueError as e:
            raise InstallerInitializationError(
                f"Unsupported auth_version: {auth_version!r}"
            ) from e

        self.state_verification = state_verification
        if not state_verification:
            self.logger.warning(
                "State verification is disabled. This is intended for org-wide "
                "installations started from admin pages; otherwise keep it enabled "
                "and start the flow from the install endpoint."
            )

        self.state_store: Optional[StateStore] = None
        if state_store is not None:
            self.state_store = state_store
        elif state_verification:
            if not state_secret:
                raise InstallerInitializationError(
                    "To use the built-in state store you must provide a state secret"
                )
            self.state_store = SignedStateStore(state_secret, state_ttl_seconds)

        if authorization_url is not None:
            if self.auth_version == AuthVersion.V1:
                self.logger.info(
                    "Both authorization_url and auth_version were given; the "
                    "authorization_url takes precedence."
                )
            self.authorization_url = authorization_url
        elif self.auth_version == AuthVersion.V1:
            self.authorization_url = AUTHORIZE_URL_V1
        else:
            self.authorization_url = AUTHORIZE_URL_V2

        self.installation_store = installation_store or MemoryInstallationStore()
        self.auth_client = auth_client or HttpxAuthClient()

        self.callback_handler = CallbackHandler(
            client_id=client_id,
            client_secret=client_secret,
            auth_version=self.auth_version,
            auth_client=self.auth_client,
            installation_store=self.installation_store,
            state_store=self.state_store,
            state_verification=state_verification,
            clock=clock,
            logger=self.logger,
        )
        self.token_rotator = TokenRotator(
            client_id=client_id,
            client_secret=client_secret,
            auth_client=self.auth_client,
            installation_store=self.installation_store,
            logger=self.logger,
        )
        self.authorize_resolver = AuthorizeResolver(
            installation_store=self.installation_store,
            token_rotator=self.token_rotator,
            clock=clock,
            logger=self.logger,
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[OAuthConfig] = None,
        installation_store: Optional[InstallationStore] = None,
        **kwargs,
    ) -> "InstallProvider":
        """
        Build a provider from environment configuration.

        Installations go to a LocalDirectoryInstallationStore under the
        configured directory unless a store is passed in.
        """
        if config is None:
            config = get_oauth_config()
        if installation_store is None:
            installation_store = LocalDirectoryInstallationStore(config.installations_dir)

        kwargs.setdefault(
            "auth_client",
            HttpxAuthClient(base_url=config.api_base_url, timeout=config.http_timeout),
        )
        return cls(
            client_id=config.client_id,
            client_secret=config.client_secret,
            state_secret=config.state_secret,
            state_verification=config.state_verification,
            state_ttl_seconds=config.state_ttl_seconds,
            installation_store=installation_store,
            auth_version=config.auth_version,
            authorization_url=config.authorization_url,
            **kwargs,
        )

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    async def generate_install_url(
        self, options: InstallUrlOptions, state_verification: bool = True
    ) -> str:
        """
        Return a URL suitable for an "Add to Slack" button.

        A state value is issued through the state store unless
        ``state_verification`` is False for this call or no store is configured.

        Raises:
            GenerateInstallUrlError: If ``options.scopes`` is missing.
        """
        state = None
        if options.scopes is not None and state_verification and self.state_store:
            state = await self.state_store.generate(options, self._now())

        return build_install_url(
            self.authorization_url,
            self.client_id,
            self.auth_version,
            options,
            state=state,
        )

    async def handle_callback(
        self, url: Optional[str], install_options: Optional[InstallUrlOptions] = None
    ) -> CallbackResult:
        """Process the OAuth redirect. Never raises; see CallbackHandler."""
        return await self.callback_handler.handle(url, install_options)

    async def authorize(self, query: InstallationQuery) -> AuthorizeResult:
        """
        Resolve credentials for an incoming request, rotating expiring tokens.

        Raises:
            AuthorizationError: If the installation is missing or rotation fails.
        """
        return await self.authorize_resolver.authorize(query)
