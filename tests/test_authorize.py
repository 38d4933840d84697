"""Unit tests for request-time authorization and provider setup."""

import asyncio
import os
import sys
from unittest.mock import AsyncMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../src"))

from slack_installer.auth.auth_client import AuthClient
from slack_installer.auth.authorize import flatten_installation
from slack_installer.auth.install_provider import InstallProvider
from slack_installer.auth.installation_store import (
    InstallationStore,
    MemoryInstallationStore,
)
from slack_installer.models import (
    AuthVersion,
    Enterprise,
    Grant,
    Installation,
    InstallationQuery,
    Team,
)
from slack_installer.utils.errors import (
    AuthorizationError,
    InstallationNotFoundError,
    InstallerInitializationError,
    PlatformApiError,
)

NOW = 1_772_366_400

LONG_LIVED = Installation(
    auth_version=AuthVersion.V2,
    team=Team(id="T111", name="Acme"),
    bot=Grant(token="xoxb-1", scopes=["chat:write"], id="B111", user_id="UBOT"),
    user=Grant(token="xoxp-1", scopes=["search:read"], id="U111"),
)


class TestFlattenInstallation:
    """Tests for flatten_installation."""

    def test_long_lived_tokens(self):
        """Test that rotation fields stay empty for long-lived tokens."""
        result = flatten_installation(LONG_LIVED, InstallationQuery(team_id="T111"))

        assert result.team_id == "T111"
        assert result.enterprise_id is None
        assert result.bot_token == "xoxb-1"
        assert result.bot_id == "B111"
        assert result.bot_user_id == "UBOT"
        assert result.user_token == "xoxp-1"
        assert result.bot_refresh_token is None
        assert result.bot_token_expires_at is None
        assert result.user_refresh_token is None

    def test_org_install_uses_query_team(self):
        """Test that an org-wide install reports the requesting workspace."""
        installation = Installation(
            auth_version=AuthVersion.V2,
            is_enterprise_install=True,
            enterprise=Enterprise(id="E111", name="Acme Org"),
            bot=Grant(token="xoxb-1", scopes=["chat:write"], id="B111", user_id="UBOT"),
        )
        query = InstallationQuery(
            team_id="T222", enterprise_id="E111", is_enterprise_install=True
        )

        result = flatten_installation(installation, query)

        assert result.team_id == "T222"
        assert result.enterprise_id == "E111"
        assert result.user_token is None


class TestAuthorize:
    """Tests for InstallProvider.authorize."""

    def setup_method(self):
        self.auth_client = AsyncMock(spec=AuthClient)
        self.store = MemoryInstallationStore()
        self.provider = InstallProvider(
            client_id="cid",
            client_secret="csecret",
            state_secret="state-secret",
            auth_client=self.auth_client,
            installation_store=self.store,
            clock=lambda: NOW,
        )

    def _authorize(self, query):
        return asyncio.run(self.provider.authorize(query))

    def test_returns_stored_credentials(self):
        """Test a lookup without rotation."""
        asyncio.run(self.store.store_installation(LONG_LIVED))

        result = self._authorize(InstallationQuery(team_id="T111"))

        assert result.bot_token == "xoxb-1"
        assert result.user_token == "xoxp-1"
        self.auth_client.refresh_token.assert_not_awaited()

    def test_missing_installation(self):
        """Test that a missing record is reported as an authorization error."""
        with pytest.raises(AuthorizationError) as exc_info:
            self._authorize(InstallationQuery(team_id="T999"))

        assert isinstance(exc_info.value.__cause__, InstallationNotFoundError)

    def test_store_failure_is_wrapped(self):
        """Test that store errors are wrapped with the cause chained."""
        store = AsyncMock(spec=InstallationStore)
        store.fetch_installation.side_effect = IOError("connection reset")
        provider = InstallProvider(
            client_id="cid",
            client_secret="csecret",
            state_secret="state-secret",
            auth_client=self.auth_client,
            installation_store=store,
            clock=lambda: NOW,
        )

        with pytest.raises(AuthorizationError) as exc_info:
            asyncio.run(provider.authorize(InstallationQuery(team_id="T111")))

        assert isinstance(exc_info.value.__cause__, IOError)
        assert "connection reset" in exc_info.value.message

    def test_expiring_bot_token_is_rotated(self):
        """Test that an expiring bot token is refreshed and persisted."""
        installation = Installation(
            auth_version=AuthVersion.V2,
            team=Team(id="T111", name="Acme"),
            bot=Grant(
                token="xoxb-old",
                scopes=["chat:write"],
                id="B111",
                user_id="UBOT",
                refresh_token="xoxe-1",
                expires_at=NOW + 100,
            ),
        )
        asyncio.run(self.store.store_installation(installation))
        self.auth_client.refresh_token.return_value = {
            "ok": True,
            "token_type": "bot",
            "access_token": "xoxb-new",
            "refresh_token": "xoxe-2",
            "expires_in": 43200,
        }

        result = self._authorize(InstallationQuery(team_id="T111"))

        assert result.bot_token == "xoxb-new"
        assert result.bot_refresh_token == "xoxe-2"
        assert result.bot_token_expires_at == NOW + 43200
        self.auth_client.refresh_token.assert_awaited_once_with(
            "xoxe-1", "cid", "csecret"
        )

        stored = asyncio.run(
            self.store.fetch_installation(InstallationQuery(team_id="T111"))
        )
        assert stored.bot.token == "xoxb-new"
        assert stored.bot.refresh_token == "xoxe-2"
        assert stored.bot.expires_at == NOW + 43200
        assert stored.bot.id == "B111"

    def test_refresh_failure_serves_stale_token(self):
        """Test that a failed refresh leaves the old values in place."""
        installation = Installation(
            auth_version=AuthVersion.V2,
            team=Team(id="T111"),
            user=Grant(
                token="xoxp-old",
                id="U111",
                refresh_token="xoxe-1",
                expires_at=NOW - 10,
            ),
        )
        asyncio.run(self.store.store_installation(installation))
        self.auth_client.refresh_token.side_effect = PlatformApiError(
            "oauth.v2.access failed: invalid_refresh_token"
        )

        result = self._authorize(InstallationQuery(team_id="T111"))

        assert result.user_token == "xoxp-old"
        assert result.user_token_expires_at == NOW - 10
        stored = asyncio.run(
            self.store.fetch_installation(InstallationQuery(team_id="T111"))
        )
        assert stored == installation


class TestInstallProviderInit:
    """Tests for InstallProvider construction."""

    def test_requires_client_credentials(self):
        """Test that missing client credentials are rejected."""
        with pytest.raises(InstallerInitializationError):
            InstallProvider(client_id=None, client_secret="csecret", state_secret="s")
        with pytest.raises(InstallerInitializationError):
            InstallProvider(client_id="cid", client_secret="", state_secret="s")

    def test_requires_state_secret(self):
        """Test that verification without a secret or store is rejected."""
        with pytest.raises(InstallerInitializationError):
            InstallProvider(client_id="cid", client_secret="csecret")

    def test_rejects_unknown_auth_version(self):
        """Test that only v1 and v2 are accepted."""
        with pytest.raises(InstallerInitializationError):
            InstallProvider(
                client_id="cid",
                client_secret="csecret",
                state_secret="s",
                auth_version="v3",
            )

    def test_verification_disabled_needs_no_state_store(self):
        """Test that no state store is built when verification is off."""
        provider = InstallProvider(
            client_id="cid", client_secret="csecret", state_verification=False
        )

        assert provider.state_store is None
        assert isinstance(provider.installation_store, MemoryInstallationStore)
