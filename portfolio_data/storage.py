"""
Local key/value storage for client-side session records.

The auth service keeps exactly one record here, the extended-session
override. Two backends are provided: an in-memory store for tests and
short-lived processes, and a JSON file store that survives restarts.
"""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Dict, Optional, Union

from .logging_config import get_logger

logger = get_logger(__name__)


class LocalStorage(ABC):
    """String key/value store with localStorage-like semantics."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string for ``key`` or None."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove ``key``. Removing a missing key is a no-op."""


class MemoryStorage(LocalStorage):
    """Process-local storage backed by a dict."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage(LocalStorage):
    """
    Storage persisted as a single JSON object on disk.

    Writes go to a temporary file that is renamed over the target, so a
    crash never leaves a half-written store behind.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = Lock()

    def _read(self) -> Dict[str, str]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Unreadable storage file, ignoring", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read().get(key)
            return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)


def build_storage(path: Optional[str] = None) -> LocalStorage:
    """
    Create the storage backend for the given path.

    Args:
        path: JSON file location, or None for in-memory storage

    Returns:
        A storage backend
    """
    if path:
        return FileStorage(path)
    return MemoryStorage()
