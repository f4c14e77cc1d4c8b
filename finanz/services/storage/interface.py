"""
Abstract Storage Interface

Persistence is a key-value store of opaque blobs, one blob per logical
collection. Every write replaces the whole blob; there are no partial
updates. What the blobs contain is the snapshot codec's business
(finanz.services.storage.snapshots), not the store's.

Implementations must serialize writes to the same key so two snapshots of
the same collection can never interleave.
"""

from abc import ABC, abstractmethod
from typing import Optional


# Snapshot keys
TRANSACTIONS_KEY = "transactions"
CATEGORIES_KEY = "customCategories"
USER_MODE_KEY = "userMode"
MONTHLY_BUDGET_KEY = "monthlyBudget"
WEEKLY_BUDGET_KEY = "weeklyBudget"

SNAPSHOT_KEYS = (
    TRANSACTIONS_KEY,
    CATEGORIES_KEY,
    USER_MODE_KEY,
    MONTHLY_BUDGET_KEY,
    WEEKLY_BUDGET_KEY,
)


class KeyValueStore(ABC):
    """
    Abstract interface for snapshot storage.

    Any storage implementation (files, platform key-value store, etc.)
    must implement these methods.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[bytes]:
        """
        Read the blob stored under a key.

        Returns:
            The stored bytes, or None if nothing was stored

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def write(self, key: str, data: bytes) -> None:
        """
        Replace the blob stored under a key.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if something was removed
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class SerializationError(StorageError):
    """Stored data could not be encoded or decoded."""
    pass
