"""Snapshot storage backends and codec."""

from finanz.services.storage.interface import (
    CATEGORIES_KEY,
    MONTHLY_BUDGET_KEY,
    SNAPSHOT_KEYS,
    TRANSACTIONS_KEY,
    USER_MODE_KEY,
    WEEKLY_BUDGET_KEY,
    KeyValueStore,
    NotFoundError,
    SerializationError,
    StorageError,
)
from finanz.services.storage.json_file import JsonFileStore
from finanz.services.storage.memory import InMemoryStore

__all__ = [
    "CATEGORIES_KEY",
    "MONTHLY_BUDGET_KEY",
    "SNAPSHOT_KEYS",
    "TRANSACTIONS_KEY",
    "USER_MODE_KEY",
    "WEEKLY_BUDGET_KEY",
    "KeyValueStore",
    "NotFoundError",
    "SerializationError",
    "StorageError",
    "JsonFileStore",
    "InMemoryStore",
]
