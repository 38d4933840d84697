"""Unit tests for installation stores."""

import asyncio
import json
import os
import shutil
import sys
import tempfile

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../src"))

from slack_installer.auth.installation_store import (
    LocalDirectoryInstallationStore,
    MemoryInstallationStore,
    installation_key,
)
from slack_installer.models import (
    AuthVersion,
    Enterprise,
    Grant,
    GrantKind,
    IncomingWebhook,
    Installation,
    InstallationQuery,
    Team,
)

TEAM_INSTALL = Installation(
    auth_version=AuthVersion.V2,
    team=Team(id="T111", name="Acme"),
    enterprise=Enterprise(id="E111", name="Acme Org"),
    app_id="A111",
    token_type="bot",
    metadata="meta",
    incoming_webhook=IncomingWebhook(url="https://hooks.slack.com/x", channel="#general"),
    bot=Grant(
        token="xoxb-1",
        scopes=["chat:write"],
        id="B111",
        user_id="UBOT",
        refresh_token="xoxe-1",
        expires_at=1_772_366_400,
    ),
    user=Grant(token="xoxp-1", scopes=["search:read"], id="U111"),
)

ORG_INSTALL = Installation(
    auth_version=AuthVersion.V2,
    is_enterprise_install=True,
    enterprise=Enterprise(id="E222", name="Other Org", url="https://other.enterprise.slack.com/"),
    bot=Grant(token="xoxb-2", scopes=["chat:write"], id="B222", user_id="UBOT2"),
)


class TestInstallationKey:
    """Tests for installation_key."""

    def test_team_install(self):
        assert installation_key(False, "E111", "T111") == "E111:T111"
        assert installation_key(False, None, "T111") == "-:T111"

    def test_enterprise_install_ignores_team(self):
        assert installation_key(True, "E111", "T111") == "E111:-"


class TestMemoryInstallationStore:
    """Tests for MemoryInstallationStore."""

    def setup_method(self):
        self.store = MemoryInstallationStore()

    def test_fetch_missing(self):
        """Test that an unknown query returns None."""
        result = asyncio.run(
            self.store.fetch_installation(InstallationQuery(team_id="T999"))
        )
        assert result is None

    def test_org_install_found_from_any_workspace(self):
        """Test that an org-wide install is shared by every workspace."""
        asyncio.run(self.store.store_installation(ORG_INSTALL))

        query = InstallationQuery(
            team_id="T333", enterprise_id="E222", is_enterprise_install=True
        )
        assert asyncio.run(self.store.fetch_installation(query)) == ORG_INSTALL

    def test_store_replaces_existing(self):
        """Test that a second write under the same key wins."""
        asyncio.run(self.store.store_installation(TEAM_INSTALL))
        updated = TEAM_INSTALL.with_grant(
            GrantKind.BOT,
            Grant(token="xoxb-2", scopes=["chat:write"], id="B111", user_id="UBOT"),
        )

        asyncio.run(self.store.store_installation(updated))

        result = asyncio.run(
            self.store.fetch_installation(
                InstallationQuery(team_id="T111", enterprise_id="E111")
            )
        )
        assert result.bot.token == "xoxb-2"
        assert result.user == TEAM_INSTALL.user


class TestLocalDirectoryInstallationStore:
    """Tests for LocalDirectoryInstallationStore."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store = LocalDirectoryInstallationStore(self.temp_dir)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_round_trip(self):
        """Test that a stored installation is read back unchanged."""
        asyncio.run(self.store.store_installation(TEAM_INSTALL))

        result = asyncio.run(
            self.store.fetch_installation(
                InstallationQuery(team_id="T111", enterprise_id="E111")
            )
        )

        assert result == TEAM_INSTALL

    def test_org_install_round_trip(self):
        """Test that org-wide installs are keyed by enterprise alone."""
        asyncio.run(self.store.store_installation(ORG_INSTALL))

        result = asyncio.run(
            self.store.fetch_installation(
                InstallationQuery(enterprise_id="E222", is_enterprise_install=True)
            )
        )

        assert result == ORG_INSTALL
        assert result.team is None

    def test_fetch_missing(self):
        """Test that a missing file returns None."""
        result = asyncio.run(
            self.store.fetch_installation(InstallationQuery(team_id="T999"))
        )
        assert result is None

    def test_files_are_json(self):
        """Test that records are written as readable JSON."""
        asyncio.run(self.store.store_installation(TEAM_INSTALL))

        files = [f for f in os.listdir(self.temp_dir) if f.endswith(".json")]
        assert len(files) == 1
        with open(os.path.join(self.temp_dir, files[0])) as f:
            data = json.load(f)
        assert data["team"] == {"id": "T111", "name": "Acme"}
        assert data["bot"]["refresh_token"] == "xoxe-1"
        assert data["auth_version"] == "v2"

    def test_creates_missing_directory(self):
        """Test that the base directory is created on demand."""
        nested = os.path.join(self.temp_dir, "nested", "installs")

        LocalDirectoryInstallationStore(nested)

        assert os.path.isdir(nested)
