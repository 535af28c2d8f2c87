# File: store.py
"""Persistence collaborators for learnprogress state.

The engine persists one JSON-serializable blob. A store only loads and saves
that blob; sanitizing is done by the caller (ProgressionManager) through
data_builders.ensure_state(), so a store never needs to understand the shape.

Stores:
- MemoryStore: deep-copied in-process blob, used by tests and embedders
- JsonFileStore: one JSON file on disk, written atomically
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import copy
import json
import os
from pathlib import Path
import tempfile
from typing import Any

from . import const


class ProgressionStoreError(Exception):
    """Raised when a strict save cannot be written."""


class ProgressStore(ABC):
    """Load/save contract for the persisted blob."""

    @abstractmethod
    def load(self) -> dict[str, Any] | None:
        """Return the stored blob, or None if nothing is stored."""

    @abstractmethod
    def save(self, data: dict[str, Any]) -> None:
        """Replace the stored blob."""


class MemoryStore(ProgressStore):
    """Keeps the blob in memory.

    Both load() and save() copy, so callers can never mutate what is stored.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] | None = copy.deepcopy(initial)
        self.save_count = 0

    def load(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._data)

    def save(self, data: dict[str, Any]) -> None:
        self._data = copy.deepcopy(data)
        self.save_count += 1


class JsonFileStore(ProgressStore):
    """Stores the blob as a JSON file.

    Writes go to a temp file in the same directory, are fsynced, then
    os.replace()d over the target so a crash never leaves a partial file.
    """

    def __init__(
        self, path: str | os.PathLike[str], storage_key: str = const.STORAGE_KEY
    ) -> None:
        """Initialize the store.

        Args:
            path: Target file, or a directory in which <storage_key>.json is used.
            storage_key: File stem when path is a directory.
        """
        target = Path(path)
        if target.is_dir():
            target = target / f"{storage_key}.json"
        self._path = target

    @property
    def path(self) -> Path:
        """Return the storage file path."""
        return self._path

    def load(self) -> dict[str, Any] | None:
        """Read the blob. Missing, unreadable or non-object files yield None."""
        if not self._path.exists():
            const.LOGGER.info("No existing storage found at %s", self._path)
            return None
        try:
            with self._path.open(encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as err:
            const.LOGGER.error("Failed to read progression state from %s: %s", self._path, err)
            return None
        if not isinstance(data, dict):
            const.LOGGER.error(
                "Ignoring progression state in %s: expected an object, got %s",
                self._path,
                type(data).__name__,
            )
            return None
        return data

    def save(self, data: dict[str, Any], *, strict: bool = False) -> None:
        """Write the blob atomically.

        Args:
            data: JSON-serializable blob
            strict: Raise ProgressionStoreError instead of only logging on failure
        """
        temp_path: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            with os.fdopen(temp_fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self._path)
            temp_path = None
        except (OSError, TypeError, ValueError) as err:
            const.LOGGER.error("Failed to write progression state to %s: %s", self._path, err)
            if strict:
                raise ProgressionStoreError(str(err)) from err
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                os.unlink(temp_path)
