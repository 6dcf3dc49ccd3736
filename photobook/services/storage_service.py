"""
Storage Service - Persistent blob storage and key-value state.

Two kinds of storage back the editor:

* a blob store with two collections, ``imgs`` for image bytes and
  ``spreads`` for spread-record JSON, accessed asynchronously;
* a small key-value state file for the spread metadata index and user
  preferences, read once on start-up and rewritten after every change.

Both come in a memory-only flavour for tests and a file-backed flavour for
real projects. Blob stores can be given a byte quota; exceeding it raises
``QuotaExceededError`` so callers can exercise their fallback paths.
"""

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from ..config import IMAGES_COLLECTION, SPREADS_COLLECTION
from ..errors import QuotaExceededError, StorageError

logger = logging.getLogger(__name__)

BlobValue = Union[str, bytes]

COLLECTIONS = (IMAGES_COLLECTION, SPREADS_COLLECTION)
_KEY_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+$')


def _value_size(value: BlobValue) -> int:
    return len(value.encode('utf-8')) if isinstance(value, str) else len(value)


def _check_location(collection: str, key: str):
    if collection not in COLLECTIONS:
        raise StorageError(f"Unknown collection: '{collection}'", key)
    if not _KEY_PATTERN.match(key) or key in ('.', '..'):
        raise StorageError(f"Invalid storage key: '{key}'", key)


class BlobStore:
    """
    Asynchronous blob store interface.

    ``get`` returns None for a missing key; every method raises
    ``StorageError`` when the backend fails.
    """

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes

    async def put(self, collection: str, key: str, value: BlobValue):
        raise NotImplementedError

    async def get(self, collection: str, key: str) -> Optional[BlobValue]:
        raise NotImplementedError

    async def delete(self, collection: str, key: str) -> bool:
        raise NotImplementedError

    def _check_quota(self, used_bytes: int, key: str):
        if self.quota_bytes is not None and used_bytes > self.quota_bytes:
            raise QuotaExceededError(
                f"Storage quota of {self.quota_bytes} bytes exceeded writing '{key}'", key
            )


class MemoryBlobStore(BlobStore):
    """In-process blob store, mainly for tests."""

    def __init__(self, quota_bytes: Optional[int] = None):
        super().__init__(quota_bytes)
        self._data: Dict[Tuple[str, str], BlobValue] = {}

    def used_bytes(self) -> int:
        return sum(_value_size(value) for value in self._data.values())

    def keys(self, collection: str):
        return sorted(key for coll, key in self._data if coll == collection)

    async def put(self, collection: str, key: str, value: BlobValue):
        _check_location(collection, key)
        previous = self._data.get((collection, key))
        used = self.used_bytes() - (_value_size(previous) if previous is not None else 0)
        self._check_quota(used + _value_size(value), key)
        self._data[(collection, key)] = value

    async def get(self, collection: str, key: str) -> Optional[BlobValue]:
        _check_location(collection, key)
        return self._data.get((collection, key))

    async def delete(self, collection: str, key: str) -> bool:
        _check_location(collection, key)
        return self._data.pop((collection, key), None) is not None


class DirectoryBlobStore(BlobStore):
    """
    Blob store keeping one file per key under ``root/<collection>/``.

    Text values are written with a ``.json`` suffix and binary values with
    ``.bin`` so they come back with the type they were stored with.
    """

    def __init__(self, root: Path, quota_bytes: Optional[int] = None):
        super().__init__(quota_bytes)
        self.root = Path(root)

    def _paths(self, collection: str, key: str) -> Tuple[Path, Path]:
        folder = self.root / collection
        return folder / f"{key}.json", folder / f"{key}.bin"

    def used_bytes(self) -> int:
        if not self.root.exists():
            return 0
        return sum(path.stat().st_size for path in self.root.rglob('*') if path.is_file())

    def _put_sync(self, collection: str, key: str, value: BlobValue):
        text_path, bin_path = self._paths(collection, key)
        existing = sum(p.stat().st_size for p in (text_path, bin_path) if p.exists())
        self._check_quota(self.used_bytes() - existing + _value_size(value), key)

        text_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(value, str):
            text_path.write_text(value, encoding='utf-8')
            bin_path.unlink(missing_ok=True)
        else:
            bin_path.write_bytes(value)
            text_path.unlink(missing_ok=True)

    def _get_sync(self, collection: str, key: str) -> Optional[BlobValue]:
        text_path, bin_path = self._paths(collection, key)
        if text_path.exists():
            return text_path.read_text(encoding='utf-8')
        if bin_path.exists():
            return bin_path.read_bytes()
        return None

    def _delete_sync(self, collection: str, key: str) -> bool:
        deleted = False
        for path in self._paths(collection, key):
            if path.exists():
                path.unlink()
                deleted = True
        return deleted

    async def put(self, collection: str, key: str, value: BlobValue):
        _check_location(collection, key)
        try:
            await asyncio.to_thread(self._put_sync, collection, key, value)
        except OSError as e:
            raise StorageError(f"Failed to write '{key}': {e}", key) from e

    async def get(self, collection: str, key: str) -> Optional[BlobValue]:
        _check_location(collection, key)
        try:
            return await asyncio.to_thread(self._get_sync, collection, key)
        except OSError as e:
            raise StorageError(f"Failed to read '{key}': {e}", key) from e

    async def delete(self, collection: str, key: str) -> bool:
        _check_location(collection, key)
        try:
            return await asyncio.to_thread(self._delete_sync, collection, key)
        except OSError as e:
            raise StorageError(f"Failed to delete '{key}': {e}", key) from e


class KeyValueState:
    """
    Small persisted key-value map.

    Handles loading the state file on start-up, rewriting it after every
    change, and falling back to an empty state when the file is missing or
    corrupted. With no path the state lives in memory only.
    """

    def __init__(self, state_path: Optional[Path] = None):
        """
        Initialize key-value state.

        Args:
            state_path: Optional JSON file backing the state.
                        If None, nothing is written to disk.
        """
        self.state_path = Path(state_path) if state_path is not None else None
        self._values: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        """
        Read the state file.

        Note:
            If the file doesn't exist or is invalid, returns an empty state.
            A corrupted file is logged and otherwise ignored.
        """
        if self.state_path is None or not self.state_path.exists():
            return {}

        try:
            with open(self.state_path, encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("state file must contain a JSON object")
            return data

        except (json.JSONDecodeError, IOError, ValueError) as e:
            logger.warning("Failed to load state from %s: %s; starting empty", self.state_path, e)
            return {}

    def _write(self) -> bool:
        if self.state_path is None:
            return True

        try:
            self.state_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.state_path, 'w', encoding='utf-8') as f:
                json.dump(self._values, f, indent=2)
            return True

        except (IOError, OSError) as e:
            logger.warning("Failed to save state to %s: %s", self.state_path, e)
            return False

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        """
        Store a JSON-serializable value and persist the state.

        Returns:
            True if the state file was written (always True in memory mode)
        """
        self._values[key] = value
        return self._write()

    def remove(self, key: str) -> bool:
        if key not in self._values:
            return False
        del self._values[key]
        return self._write()

    def keys(self):
        return list(self._values)

    def reset_to_defaults(self) -> bool:
        """
        Clear the state and delete its file.

        Returns:
            True if a state file was deleted, False if it didn't exist or couldn't be deleted
        """
        self._values = {}
        if self.state_path is None:
            return False

        try:
            if self.state_path.exists():
                self.state_path.unlink()
                return True
            return False

        except (IOError, OSError) as e:
            logger.warning("Failed to delete state file %s: %s", self.state_path, e)
            return False

    def get_state_path(self) -> Optional[Path]:
        """Path to the state file (may not exist yet)."""
        return self.state_path
