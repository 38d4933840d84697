"""Authorization redirect URL assembly."""

from typing import List, Optional, Tuple
from urllib.parse import urlencode, urlsplit, urlunsplit

from .scopes import join_scopes
from ..models import AuthVersion, InstallUrlOptions
from ..utils.errors import GenerateInstallUrlError


def build_install_url(
    authorization_url: str,
    client_id: str,
    auth_version: AuthVersion,
    options: InstallUrlOptions,
    state: Optional[str] = None,
) -> str:
    """
    Build the URL that sends a user to the platform's consent screen.

    Query parameters are emitted in a fixed order: ``scope``, ``state``,
    ``client_id``, ``redirect_uri``, ``team``, ``user_scope``. ``user_scope``
    is only sent for the v2 flow. Any query string already present on
    ``authorization_url`` is replaced.

    Raises:
        GenerateInstallUrlError: If ``options.scopes`` is missing.
    """
    if options.scopes is None:
        raise GenerateInstallUrlError(
            "You must provide a scope parameter when generating an install URL"
        )

    params: List[Tuple[str, str]] = [("scope", join_scopes(options.scopes))]
    if state is not None:
        params.append(("state", state))
    params.append(("client_id", client_id))
    if options.redirect_uri is not None:
        params.append(("redirect_uri", options.redirect_uri))
    if options.team_id is not None:
        params.append(("team", options.team_id))
    if options.user_scopes is not None and auth_version == AuthVersion.V2:
        params.append(("user_scope", join_scopes(options.user_scopes)))

    parts = urlsplit(authorization_url)
    return urlunsplit(
        (parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment)
    )
