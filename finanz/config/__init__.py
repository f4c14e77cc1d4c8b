"""Configuration package."""

from finanz.config.settings import (
    AppSettings,
    BudgetDefaults,
    ReceiptSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "BudgetDefaults",
    "ReceiptSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
