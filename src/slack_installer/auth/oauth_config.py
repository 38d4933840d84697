"""
OAuth Configuration Management for the Slack installer.

This module centralizes installer configuration to eliminate hardcoded values.
Values are read from environment variables, with a local ``.env`` file loaded
on first access.
"""

import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .scopes import parse_scopes_env
from ..models import AuthVersion
from ..utils.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_STATE_TTL_SECONDS,
    REDIRECT_PATH,
)
from ..utils.errors import InstallerInitializationError


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


class OAuthConfig:
    """
    Centralized installer configuration.

    Provides a single source of truth for all OAuth-related configuration values.
    """

    def __init__(self) -> None:
        # App credentials
        self.client_id = os.getenv("SLACK_CLIENT_ID")
        self.client_secret = os.getenv("SLACK_CLIENT_SECRET")

        # State parameter
        self.state_secret = os.getenv("SLACK_STATE_SECRET")
        self.state_verification = _env_flag("SLACK_STATE_VERIFICATION", True)
        self.state_ttl_seconds = int(
            os.getenv("SLACK_STATE_TTL_SECONDS", str(DEFAULT_STATE_TTL_SECONDS))
        )

        # OAuth flavour and endpoints
        self.auth_version = self._get_auth_version()
        self.authorization_url = os.getenv("SLACK_AUTHORIZATION_URL")
        self.api_base_url = os.getenv("SLACK_API_BASE_URL", DEFAULT_API_BASE_URL)
        self.http_timeout = float(
            os.getenv("SLACK_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT))
        )

        # Default install options
        self.scopes = parse_scopes_env(os.getenv("SLACK_SCOPES"))
        self.user_scopes = parse_scopes_env(os.getenv("SLACK_USER_SCOPES"))

        # Callback server
        self.base_uri = os.getenv("SLACK_INSTALLER_BASE_URI", "http://localhost")
        self.port = int(os.getenv("SLACK_INSTALLER_PORT", "3000"))
        self.base_url = f"{self.base_uri}:{self.port}"
        self.redirect_uri = self._get_redirect_uri()

        # Installation storage
        self.installations_dir = os.path.expanduser(
            os.getenv(
                "SLACK_INSTALLATIONS_DIR", "~/.config/slack-installer/installations"
            )
        )

    def _get_auth_version(self) -> AuthVersion:
        """Get the OAuth flavour, rejecting values other than v1 and v2."""
        value = os.getenv("SLACK_AUTH_VERSION", "v2")
        try:
            return AuthVersion(value)
        except ValueError as e:
            raise InstallerInitializationError(
                f"Unsupported SLACK_AUTH_VERSION: {value!r}"
            ) from e

    def _get_redirect_uri(self) -> Optional[str]:
        """Get the OAuth redirect URI, if one should be sent explicitly."""
        explicit_uri = os.getenv("SLACK_REDIRECT_URI")
        if explicit_uri:
            return explicit_uri
        return f"{self.base_url}{REDIRECT_PATH}"

    def get_default_scopes(self) -> Optional[List[str]]:
        """Get the configured bot scopes, or None when SLACK_SCOPES is unset."""
        return list(self.scopes) if self.scopes is not None else None

    def is_configured(self) -> bool:
        """Check if the app credentials are present."""
        return bool(self.client_id and self.client_secret)

    def get_environment_summary(self) -> Dict[str, Any]:
        """Get a summary of the current configuration (excluding secrets)."""
        return {
            "base_url": self.base_url,
            "redirect_uri": self.redirect_uri,
            "auth_version": self.auth_version.value,
            "authorization_url": self.authorization_url,
            "api_base_url": self.api_base_url,
            "state_verification": self.state_verification,
            "state_ttl_seconds": self.state_ttl_seconds,
            "installations_dir": self.installations_dir,
            "client_configured": self.is_configured(),
            "scopes": self.scopes,
            "user_scopes": self.user_scopes,
        }


# Global configuration instance
_oauth_config: Optional[OAuthConfig] = None


def get_oauth_config() -> OAuthConfig:
    """Get the global OAuth configuration instance."""
    global _oauth_config
    if _oauth_config is None:
        load_dotenv()
        _oauth_config = OAuthConfig()
    return _oauth_config


def reload_oauth_config() -> OAuthConfig:
    """Reload the OAuth configuration from environment variables."""
    global _oauth_config
    load_dotenv()
    _oauth_config = OAuthConfig()
    return _oauth_config

