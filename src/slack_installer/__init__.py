"""Slack Installer - OAuth "Add to Slack" installation flow.

This package implements the server side of the app installation flow:
install URL generation, the OAuth callback, installation persistence, and
request-time authorization with token rotation.
"""
from .auth import InstallProvider
from .models import (
    AuthorizeResult,
    AuthVersion,
    Installation,
    InstallationQuery,
    InstallUrlOptions,
)

__version__ = "0.1.0"
__all__ = [
    "InstallProvider",
    "AuthorizeResult",
    "AuthVersion",
    "Installation",
    "InstallationQuery",
    "InstallUrlOptions",
]
