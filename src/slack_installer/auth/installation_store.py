"""
Installation Store for the Slack installer.

This module provides a standardized interface for installation storage and
retrieval, with an in-memory implementation and one backed by local JSON files.
"""

import asyncio
import base64
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .oauth_config import get_oauth_config
from ..models import Installation, InstallationQuery

logger = logging.getLogger(__name__)


def installation_key(
    is_enterprise_install: bool,
    enterprise_id: Optional[str],
    team_id: Optional[str],
) -> str:
    """
    Derive the storage key for an installation.

    Org-wide installs are keyed by enterprise alone so that any workspace in
    the organization resolves to the same record.
    """
    if is_enterprise_install:
        return f"{enterprise_id or '-'}:-"
    return f"{enterprise_id or '-'}:{team_id or '-'}"


def key_for_installation(installation: Installation) -> str:
    return installation_key(
        installation.is_enterprise_install,
        installation.enterprise_id,
        installation.team_id,
    )


def key_for_query(query: InstallationQuery) -> str:
    return installation_key(
        query.is_enterprise_install, query.enterprise_id, query.team_id
    )


class InstallationStore(ABC):
    """Abstract base class for installation storage."""

    @abstractmethod
    async def store_installation(self, installation: Installation) -> None:
        """Persist an installation, replacing any record with the same key."""
        pass

    @abstractmethod
    async def fetch_installation(
        self, query: InstallationQuery
    ) -> Optional[Installation]:
        """Fetch the installation matching ``query``, or None."""
        pass


class MemoryInstallationStore(InstallationStore):
    """Installation store that keeps records in process memory."""

    def __init__(self) -> None:
        self._installations: Dict[str, Installation] = {}

    async def store_installation(self, installation: Installation) -> None:
        key = key_for_installation(installation)
        self._installations[key] = installation
        logger.debug(f"Stored installation in memory: {key}")

    async def fetch_installation(
        self, query: InstallationQuery
    ) -> Optional[Installation]:
        key = key_for_query(query)
        installation = self._installations.get(key)
        if installation is None:
            logger.debug(f"No installation in memory for {key}")
        return installation


class LocalDirectoryInstallationStore(InstallationStore):
    """Installation store that uses local JSON files for storage."""

    def __init__(self, base_dir: Optional[str] = None) -> None:
        """
        Initialize the local installation store.

        Args:
            base_dir: Base directory for installation files. If None, uses
                     the configured installations directory
        """
        if base_dir is None:
            base_dir = get_oauth_config().installations_dir

        self.base_dir = base_dir
        self._ensure_dir_exists()
        logger.info(f"LocalDirectoryInstallationStore initialized: {base_dir}")

    def _ensure_dir_exists(self) -> None:
        """Ensure the installations directory exists."""
        if not os.path.exists(self.base_dir):
            os.makedirs(self.base_dir, exist_ok=True)
            logger.info(f"Created installations directory: {self.base_dir}")

    def _key_to_filename(self, key: str) -> str:
        """Convert a storage key to a safe, reversible filename."""
        encoded = base64.urlsafe_b64encode(key.encode("utf-8")).decode("ascii")
        return encoded.rstrip("=")

    def _get_installation_path(self, key: str) -> str:
        self._ensure_dir_exists()
        return os.path.join(self.base_dir, f"{self._key_to_filename(key)}.json")

    def _write(self, key: str, data: dict) -> None:
        path = self._get_installation_path(key)
        fd, temp_path = tempfile.mkstemp(dir=self.base_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(temp_path, path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def _read(self, key: str) -> Optional[dict]:
        path = self._get_installation_path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r") as f:
            return json.load(f)

    async def store_installation(self, installation: Installation) -> None:
        key = key_for_installation(installation)
        await asyncio.to_thread(self._write, key, installation.to_dict())
        logger.info(f"Stored installation {key}")

    async def fetch_installation(
        self, query: InstallationQuery
    ) -> Optional[Installation]:
        key = key_for_query(query)
        data = await asyncio.to_thread(self._read, key)
        if data is None:
            logger.debug(f"No installation file found for {key}")
            return None
        logger.debug(f"Loaded installation {key}")
        return Installation.from_dict(data)
