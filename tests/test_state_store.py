"""Unit tests for the signed state store."""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../src"))

from slack_installer.auth.state_store import SignedStateStore
from slack_installer.models import InstallUrlOptions
from slack_installer.utils.errors import (
    InstallerInitializationError,
    StateVerificationError,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestSignedStateStore:
    """Tests for SignedStateStore."""

    def setup_method(self):
        self.store = SignedStateStore("state-secret", expiration_seconds=600)
        self.options = InstallUrlOptions(
            scopes=["chat:write", "commands"],
            user_scopes="search:read",
            redirect_uri="https://example.com/slack/oauth_redirect",
            team_id="T123",
            metadata='{"plan": "pro"}',
        )

    def test_verify_returns_generated_options(self):
        """Test that a fresh state round-trips the install options."""
        state = asyncio.run(self.store.generate(self.options, NOW))

        assert isinstance(state, str)
        assert asyncio.run(self.store.verify(NOW, state)) == self.options

    def test_verify_accepts_state_at_expiry(self):
        """Test that a state is still valid exactly at its TTL."""
        state = asyncio.run(self.store.generate(self.options, NOW))

        later = NOW + timedelta(seconds=600)
        assert asyncio.run(self.store.verify(later, state)) == self.options

    def test_verify_rejects_expired_state(self):
        """Test that a state is rejected once the TTL has passed."""
        state = asyncio.run(self.store.generate(self.options, NOW))

        with pytest.raises(StateVerificationError):
            asyncio.run(self.store.verify(NOW + timedelta(seconds=601), state))

    def test_naive_datetimes_are_treated_as_utc(self):
        """Test that naive datetimes are interpreted as UTC."""
        naive_now = NOW.replace(tzinfo=None)
        state = asyncio.run(self.store.generate(self.options, naive_now))

        with pytest.raises(StateVerificationError):
            asyncio.run(self.store.verify(NOW + timedelta(seconds=601), state))

    def test_verify_rejects_state_signed_with_other_secret(self):
        """Test that a state from another secret is rejected."""
        other = SignedStateStore("another-secret")
        state = asyncio.run(other.generate(self.options, NOW))

        with pytest.raises(StateVerificationError):
            asyncio.run(self.store.verify(NOW, state))

    def test_verify_rejects_malformed_state(self):
        """Test that garbage is rejected rather than defaulted."""
        with pytest.raises(StateVerificationError):
            asyncio.run(self.store.verify(NOW, "not-a-state"))

    def test_verify_rejects_state_without_install_options(self):
        """Test that a correctly signed token without options is rejected."""
        token = jwt.encode(
            {"exp": int(NOW.timestamp()) + 60}, "state-secret", algorithm="HS256"
        )

        with pytest.raises(StateVerificationError):
            asyncio.run(self.store.verify(NOW, token))

    def test_verify_rejects_state_without_expiry(self):
        """Test that a correctly signed token without expiry is rejected."""
        token = jwt.encode(
            {"install_options": self.options.to_dict()},
            "state-secret",
            algorithm="HS256",
        )

        with pytest.raises(StateVerificationError):
            asyncio.run(self.store.verify(NOW, token))

    def test_verify_rejects_unexpected_option_fields(self):
        """Test that unknown install option fields are not silently dropped."""
        token = jwt.encode(
            {
                "install_options": {"scopes": ["chat:write"], "admin": True},
                "exp": int(NOW.timestamp()) + 60,
            },
            "state-secret",
            algorithm="HS256",
        )

        with pytest.raises(StateVerificationError):
            asyncio.run(self.store.verify(NOW, token))

    def test_requires_secret(self):
        """Test that the store refuses to run without a secret."""
        with pytest.raises(InstallerInitializationError):
            SignedStateStore("")

    def test_requires_positive_ttl(self):
        """Test that the store refuses a non-positive TTL."""
        with pytest.raises(InstallerInitializationError):
            SignedStateStore("secret", expiration_seconds=0)
