"""
Scope handling for the Slack installer.

Scopes travel as comma-delimited strings on the wire and may be supplied by
callers either as a list or as such a string.
"""

import logging
from typing import List, Optional

from ..models import Scopes

logger = logging.getLogger(__name__)

# v1 responses do not report bot scopes; bot grants get this placeholder
LEGACY_BOT_SCOPES = ["bot"]


def join_scopes(scopes: Scopes) -> str:
    """
    Render scopes for a query string.

    Returns:
        Comma-delimited scope string.
    """
    if isinstance(scopes, str):
        return scopes
    return ",".join(scopes)


def split_scopes(scopes: Optional[str]) -> List[str]:
    """
    Parse a comma-delimited scope string returned by the platform.

    Returns:
        Ordered list of scopes; empty when none were granted.
    """
    if not scopes:
        return []
    return scopes.split(",")


def parse_scopes_env(value: Optional[str]) -> Optional[List[str]]:
    """Parse a scope list from configuration, tolerating whitespace."""
    if value is None:
        return None
    parsed = [scope.strip() for scope in value.split(",") if scope.strip()]
    if not parsed:
        logger.debug("Ignoring empty scope configuration")
        return None
    return parsed
