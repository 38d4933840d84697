"""Run the installation endpoints from environment configuration."""

import logging
from urllib.parse import urlparse

import uvicorn

from .auth import InstallProvider, OAuthConfig, create_oauth_app, get_oauth_config
from .models import InstallUrlOptions
from .utils.errors import InstallerInitializationError

logger = logging.getLogger(__name__)


def install_options_from_config(config: OAuthConfig) -> InstallUrlOptions:
    """
    Build the install options served by ``/slack/install``.

    Raises:
        InstallerInitializationError: If SLACK_SCOPES is not configured.
    """
    scopes = config.get_default_scopes()
    if scopes is None:
        raise InstallerInitializationError(
            "SLACK_SCOPES must list the bot scopes to request"
        )
    return InstallUrlOptions(
        scopes=scopes,
        user_scopes=config.user_scopes,
        redirect_uri=config.redirect_uri,
    )


def main() -> None:
    """Entry point for the slack-installer callback server."""
    logging.basicConfig(level=logging.INFO)
    config = get_oauth_config()
    provider = InstallProvider.from_config(config)
    app = create_oauth_app(provider, install_options_from_config(config))

    logger.info(f"Serving installation endpoints: {config.get_environment_summary()}")
    uvicorn.run(
        app,
        host=urlparse(config.base_uri).hostname or "localhost",
        port=config.port,
    )


if __name__ == "__main__":
    main()
