"""
Data types shared by the installation flow.

Installation records are immutable values: the callback path builds one per
completed grant and the rotation path replaces individual Grant fields with
``dataclasses.replace``. InstallationQuery and AuthorizeResult only live for
the duration of a single call.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Union

Scopes = Union[List[str], str]


class AuthVersion(str, Enum):
    """OAuth flavour used by the platform (``oauth.access`` vs ``oauth.v2.access``)."""

    V1 = "v1"
    V2 = "v2"


class GrantKind(str, Enum):
    BOT = "bot"
    USER = "user"


@dataclass(frozen=True)
class Team:
    id: str
    name: Optional[str] = None


@dataclass(frozen=True)
class Enterprise:
    id: str
    name: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class IncomingWebhook:
    url: str
    channel: Optional[str] = None
    channel_id: Optional[str] = None
    configuration_url: Optional[str] = None


@dataclass(frozen=True)
class Grant:
    """
    Token and identity issued to one actor (bot or authorizing user).

    ``refresh_token`` and ``expires_at`` are either both set (token rotation
    is enabled for this grant) or both absent (long-lived token).
    """

    token: Optional[str]
    scopes: List[str] = field(default_factory=list)
    id: Optional[str] = None
    user_id: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None  # utc, seconds

    def __post_init__(self) -> None:
        if (self.refresh_token is None) != (self.expires_at is None):
            raise ValueError("refresh_token and expires_at must be provided together")

    @property
    def rotates(self) -> bool:
        return self.refresh_token is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "scopes": list(self.scopes),
            "id": self.id,
            "user_id": self.user_id,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Grant":
        return cls(
            token=data.get("token"),
            scopes=list(data.get("scopes") or []),
            id=data.get("id"),
            user_id=data.get("user_id"),
            refresh_token=data.get("refresh_token"),
            expires_at=data.get("expires_at"),
        )


@dataclass(frozen=True)
class Installation:
    """Durable record of one completed app-to-tenant authorization."""

    auth_version: AuthVersion
    is_enterprise_install: bool = False
    team: Optional[Team] = None
    enterprise: Optional[Enterprise] = None
    app_id: Optional[str] = None
    token_type: Optional[str] = None
    metadata: Optional[Any] = None
    incoming_webhook: Optional[IncomingWebhook] = None
    bot: Optional[Grant] = None
    user: Optional[Grant] = None

    def __post_init__(self) -> None:
        if self.team is None and self.enterprise is None:
            raise ValueError("An installation needs a team, an enterprise, or both")

    @property
    def team_id(self) -> Optional[str]:
        return self.team.id if self.team else None

    @property
    def enterprise_id(self) -> Optional[str]:
        return self.enterprise.id if self.enterprise else None

    def grant(self, kind: GrantKind) -> Optional[Grant]:
        return self.bot if kind == GrantKind.BOT else self.user

    def with_grant(self, kind: GrantKind, grant: Grant) -> "Installation":
        """Return a copy with the bot or user grant replaced."""
        return replace(self, **{kind.value: grant})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auth_version": self.auth_version.value,
            "is_enterprise_install": self.is_enterprise_install,
            "team": _dataclass_dict(self.team),
            "enterprise": _dataclass_dict(self.enterprise),
            "app_id": self.app_id,
            "token_type": self.token_type,
            "metadata": self.metadata,
            "incoming_webhook": _dataclass_dict(self.incoming_webhook),
            "bot": self.bot.to_dict() if self.bot else None,
            "user": self.user.to_dict() if self.user else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Installation":
        # Stores may hand back explicit nulls for absent sub-records.
        team = data.get("team")
        enterprise = data.get("enterprise")
        webhook = data.get("incoming_webhook")
        bot = data.get("bot")
        user = data.get("user")
        return cls(
            auth_version=AuthVersion(data.get("auth_version") or AuthVersion.V2.value),
            is_enterprise_install=bool(data.get("is_enterprise_install")),
            team=Team(**team) if team else None,
            enterprise=Enterprise(**enterprise) if enterprise else None,
            app_id=data.get("app_id"),
            token_type=data.get("token_type"),
            metadata=data.get("metadata"),
            incoming_webhook=IncomingWebhook(**webhook) if webhook else None,
            bot=Grant.from_dict(bot) if bot else None,
            user=Grant.from_dict(user) if user else None,
        )


def _dataclass_dict(value: Any) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    return dict(value.__dict__)


@dataclass(frozen=True)
class InstallationQuery:
    """Lookup key for a stored installation."""

    team_id: Optional[str] = None
    enterprise_id: Optional[str] = None
    user_id: Optional[str] = None
    is_enterprise_install: bool = False


@dataclass
class AuthorizeResult:
    """Flattened credentials for one authenticated request. Never cached."""

    bot_token: Optional[str] = None
    bot_id: Optional[str] = None
    bot_user_id: Optional[str] = None
    user_token: Optional[str] = None
    team_id: Optional[str] = None
    enterprise_id: Optional[str] = None
    bot_refresh_token: Optional[str] = None
    bot_token_expires_at: Optional[int] = None
    user_refresh_token: Optional[str] = None
    user_token_expires_at: Optional[int] = None

    def update_tokens(
        self, kind: GrantKind, token: str, refresh_token: str, expires_at: int
    ) -> None:
        if kind == GrantKind.BOT:
            self.bot_token = token
            self.bot_refresh_token = refresh_token
            self.bot_token_expires_at = expires_at
        else:
            self.user_token = token
            self.user_refresh_token = refresh_token
            self.user_token_expires_at = expires_at


@dataclass
class InstallUrlOptions:
    """Options a caller supplies when starting an installation."""

    scopes: Optional[Scopes] = None
    user_scopes: Optional[Scopes] = None
    redirect_uri: Optional[str] = None
    team_id: Optional[str] = None
    metadata: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scopes": self.scopes,
            "user_scopes": self.user_scopes,
            "redirect_uri": self.redirect_uri,
            "team_id": self.team_id,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstallUrlOptions":
        if not isinstance(data, dict):
            raise TypeError("install options must be a mapping")
        unknown = set(data) - {"scopes", "user_scopes", "redirect_uri", "team_id", "metadata"}
        if unknown:
            raise TypeError(f"unexpected install option fields: {sorted(unknown)}")
        return cls(**data)


def empty_install_options() -> InstallUrlOptions:
    """Install options used when none could be recovered."""
    return InstallUrlOptions(scopes=[])
