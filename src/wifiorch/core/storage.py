"""Key-value record stores for persisted engine state.

The engine only ever reads and writes whole records by key, so any
backend that can do ``get``/``set``/``delete`` works.
"""

import copy
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import yaml

from .errors import StorageError

logger = logging.getLogger(__name__)

SAVED_NETWORKS_KEY = "saved-networks"
SETTINGS_KEY = "settings"
LAST_CONNECTED_KEY = "last-connected"
CREDENTIALS_KEY = "credentials"


class KeyValueStore(ABC):
    """Record store interface."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return a copy of the record stored under ``key``."""

    @abstractmethod
    def set(self, key: str, record: Any) -> None:
        """Replace the record stored under ``key``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""


class MemoryStore(KeyValueStore):
    """In-process store, used by tests and ephemeral CLI runs."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, record: Any) -> None:
        self._data[key] = copy.deepcopy(record)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class YamlFileStore(KeyValueStore):
    """Single YAML document on disk.

    Writes go to a temp file that replaces the original, and the file is
    readable by its owner only since it holds encrypted credentials.

    Usage:
        store = YamlFileStore("~/.wifiorch/state.yaml")
        store.set("settings", {"maxRetryAttempts": 5})
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._data: dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(
                "Failed to read state file", details={"path": str(self._path)}, cause=e
            ) from e
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed state file %s", self._path)
            return {}
        return data

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self._path.with_suffix(".tmp")
            fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(self._data, f, default_flow_style=False, sort_keys=False)
            temp_path.replace(self._path)
            logger.debug("Saved state to %s", self._path)
        except OSError as e:
            logger.error("Failed to save state: %s", e)
            raise StorageError(
                "Failed to write state file", details={"path": str(self._path)}, cause=e
            ) from e

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, record: Any) -> None:
        self._data[key] = copy.deepcopy(record)
        self._save()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save()
