"""
OAuth installation package for the Slack installer.

This package provides:
- Signed, time-bound state parameters
- Pluggable installation storage
- The OAuth callback state machine
- Token rotation for expiring tokens
- A FastAPI adapter for the install and redirect endpoints
"""

from .auth_client import AuthClient, HttpxAuthClient
from .authorize import AuthorizeResolver, flatten_installation
from .callback import (
    CallbackFailure,
    CallbackHandler,
    CallbackResult,
    CallbackSuccess,
    build_v1_installation,
    build_v2_installation,
)
from .install_provider import InstallProvider
from .install_url import build_install_url
from .installation_store import (
    InstallationStore,
    LocalDirectoryInstallationStore,
    MemoryInstallationStore,
)
from .oauth_callback_server import CallbackServer, create_oauth_app
from .oauth_config import OAuthConfig, get_oauth_config, reload_oauth_config
from .state_store import SignedStateStore, StateStore
from .token_rotation import RefreshOutcome, TokenRotator, detect_refreshable

__all__ = [
    # Clients
    "AuthClient",
    "HttpxAuthClient",
    # Flow
    "InstallProvider",
    "build_install_url",
    "CallbackHandler",
    "CallbackResult",
    "CallbackSuccess",
    "CallbackFailure",
    "build_v1_installation",
    "build_v2_installation",
    # Authorization
    "AuthorizeResolver",
    "flatten_installation",
    "TokenRotator",
    "RefreshOutcome",
    "detect_refreshable",
    # Stores
    "StateStore",
    "SignedStateStore",
    "InstallationStore",
    "MemoryInstallationStore",
    "LocalDirectoryInstallationStore",
    # Configuration
    "OAuthConfig",
    "get_oauth_config",
    "reload_oauth_config",
    # HTTP
    "CallbackServer",
    "create_oauth_app",
]
