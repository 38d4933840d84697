"""Custom exceptions for the Slack installer.

This module provides structured error handling with specific exception types
for each way an installation or authorization can fail. All exceptions
inherit from InstallerError.
"""
from typing import Any, Optional


class InstallerError(Exception):
    """Base exception for all slack-installer errors.

    Attributes:
        message: Human-readable error description.
        code: Stable machine-readable identifier.
    """

    code = "slack_oauth_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InstallerInitializationError(InstallerError):
    """Raised when the provider is constructed with an unusable configuration."""

    code = "slack_oauth_installer_initialization_error"


class GenerateInstallUrlError(InstallerError):
    """Raised when an install URL is requested without scopes."""

    code = "slack_oauth_generate_url_error"


class MissingStateError(InstallerError):
    """Raised when the callback carries no state but verification is on."""

    code = "slack_oauth_missing_state"


class StateVerificationError(InstallerError):
    """Raised when a state value is tampered with, malformed, or expired."""

    code = "slack_oauth_invalid_state"


class MissingCodeError(InstallerError):
    """Raised when the callback carries no authorization code."""

    code = "slack_oauth_missing_code"


class UnknownError(InstallerError):
    """Raised when the callback request has no usable URL."""

    code = "slack_oauth_unknown_error"


class AuthorizationError(InstallerError):
    """Raised when the user declines, or when authorizing a request fails."""

    code = "slack_oauth_authorization_error"


class InstallationNotFoundError(InstallerError):
    """Raised when the installation store has no matching record."""

    code = "slack_oauth_installation_not_found"


class PlatformApiError(InstallerError):
    """Raised when a platform Web API call fails.

    Attributes:
        error: The platform's error string (e.g. ``invalid_code``), if any.
        status_code: HTTP status of the response, if one was received.
    """

    code = "slack_oauth_platform_api_error"

    def __init__(
        self,
        message: str,
        error: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.error = error
        self.status_code = status_code
        super().__init__(message)


def handle_http_error(error: Any, method: str) -> PlatformApiError:
    """Convert an httpx error into a PlatformApiError.

    Args:
        error: The exception raised by the HTTP client.
        method: The Web API method being called (e.g. ``oauth.v2.access``).

    Returns:
        A PlatformApiError describing the failure.
    """
    response = getattr(error, "response", None)
    try:
        status = response.status_code
    except AttributeError:
        return PlatformApiError(f"{method} request failed: {error}")

    if status == 429:
        return PlatformApiError(
            f"{method} was rate limited. Please wait a moment and try again.",
            error="ratelimited",
            status_code=status,
        )
    return PlatformApiError(
        f"{method} failed (HTTP {status})", status_code=status
    )


def format_error(action: str, error: Exception) -> str:
    """Format an error message consistently.

    Args:
        action: The action that failed (e.g., "Installation").
        error: The exception that occurred.

    Returns:
        Formatted error string.
    """
    if isinstance(error, InstallerError):
        return f"{action} failed: {error.message}"
    return f"{action} failed: {str(error)}"
