"""In-memory snapshot storage for tests and previews."""

import threading
from typing import Optional

from finanz.services.storage.interface import KeyValueStore


class InMemoryStore(KeyValueStore):
    """Dict-backed store. Keeps a per-key write counter for inspection."""

    def __init__(self, initial: Optional[dict[str, bytes]] = None):
        self._data: dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()
        self.write_counts: dict[str, int] = {}

    def read(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def write(self, key: str, data: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(data)
            self.write_counts[key] = self.write_counts.get(key, 0) + 1

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)
