"""
File-backed snapshot storage.

Each key is one JSON file in the data directory. Writes go to a temporary
file that is fsynced and then renamed over the target, so a crash leaves
either the old or the new snapshot, never a torn one. Writes to the same
key are serialized with a per-key lock.
"""

import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finanz.config import StorageSettings, get_settings
from finanz.services.storage.interface import KeyValueStore, StorageError


_VALID_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


class JsonFileStore(KeyValueStore):
    """One file per key under a directory."""

    def __init__(
        self,
        directory: Optional[Union[str, Path]] = None,
        settings: Optional[StorageSettings] = None,
    ):
        self._settings = settings or get_settings().storage
        self._dir = Path(directory) if directory is not None else self._settings.data_dir
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        if not _VALID_KEY.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._dir / f"{key}.json"

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def read(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read '{key}': {e}")

    def _write_atomic(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        with self._lock_for(key):
            try:
                for attempt in Retrying(
                    stop=stop_after_attempt(self._settings.write_attempts),
                    wait=wait_exponential(multiplier=0.05, max=0.5),
                    retry=retry_if_exception_type(OSError),
                    reraise=True,
                ):
                    with attempt:
                        self._write_atomic(path, data)
            except OSError as e:
                raise StorageError(f"Failed to write '{key}': {e}")

    def delete(self, key: str) -> bool:
        path = self._path(key)
        with self._lock_for(key):
            try:
                path.unlink()
                return True
            except FileNotFoundError:
                return False
            except OSError as e:
                raise StorageError(f"Failed to delete '{key}': {e}")
