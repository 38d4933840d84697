"""
State parameter store for the Slack installer.

The state value sent with the authorization redirect carries the caller's
install options, signed and time-bound, so the callback can detect forged or
replayed redirects without keeping server-side session state.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from ..models import InstallUrlOptions
from ..utils.constants import DEFAULT_STATE_TTL_SECONDS, STATE_SIGNING_ALGORITHM
from ..utils.errors import InstallerInitializationError, StateVerificationError

logger = logging.getLogger(__name__)

_DECODE_OPTIONS = {
    # Expiry is checked against the caller-supplied clock below.
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_aud": False,
}


def _to_epoch_seconds(moment: datetime) -> float:
    """Convert a datetime to UTC epoch seconds, treating naive values as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()


class StateStore(ABC):
    """Abstract base class for state parameter stores."""

    @abstractmethod
    async def generate(self, options: InstallUrlOptions, now: datetime) -> str:
        """Issue a state value bound to ``options``."""

    @abstractmethod
    async def verify(self, now: datetime, state: str) -> InstallUrlOptions:
        """
        Verify a state value and recover its install options.

        Raises:
            StateVerificationError: If the state is tampered, malformed, or expired.
        """


class SignedStateStore(StateStore):
    """State store that signs install options into an HS256 JWT."""

    def __init__(
        self, secret: str, expiration_seconds: int = DEFAULT_STATE_TTL_SECONDS
    ) -> None:
        if not secret:
            raise InstallerInitializationError(
                "To use the built-in state store you must provide a state secret"
            )
        if expiration_seconds <= 0:
            raise InstallerInitializationError(
                "State expiration must be a positive number of seconds"
            )
        self._secret = secret
        self.expiration_seconds = expiration_seconds

    async def generate(self, options: InstallUrlOptions, now: datetime) -> str:
        issued_at = int(_to_epoch_seconds(now))
        claims: Dict[str, Any] = {
            "install_options": options.to_dict(),
            "iat": issued_at,
            "exp": issued_at + self.expiration_seconds,
        }
        state = jwt.encode(claims, self._secret, algorithm=STATE_SIGNING_ALGORITHM)
        logger.debug(f"Issued state {state[:8]}... (expires at {claims['exp']})")
        return state

    async def verify(self, now: datetime, state: str) -> InstallUrlOptions:
        try:
            claims = jwt.decode(
                state,
                self._secret,
                algorithms=[STATE_SIGNING_ALGORITHM],
                options=_DECODE_OPTIONS,
            )
        except JWTError as e:
            logger.debug(f"Rejected state with invalid signature or encoding: {e}")
            raise StateVerificationError(
                "The state parameter is not valid or has been tampered with"
            ) from e

        expires_at = claims.get("exp")
        if not isinstance(expires_at, (int, float)):
            raise StateVerificationError("The state parameter has no expiry")
        if _to_epoch_seconds(now) > expires_at:
            raise StateVerificationError("The state parameter has expired")

        try:
            options = InstallUrlOptions.from_dict(claims["install_options"])
        except (KeyError, TypeError) as e:
            raise StateVerificationError(
                "The state parameter does not carry install options"
            ) from e

        logger.debug(f"Verified state {state[:8]}...")
        return options
