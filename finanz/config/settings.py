"""
Configuration Management for FinanzApp Core

Uses pydantic-settings for type-safe configuration from environment variables.

All tunables live here: where snapshots are written, default budget limits,
the week-start convention used by period filters, and the receipt parsing
thresholds. Nothing in the core reads os.environ directly.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local snapshot storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINANZ_STORAGE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path.home() / ".finanzapp",
        description="Directory holding one JSON snapshot per key"
    )
    write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a snapshot write is attempted"
    )


class BudgetDefaults(BaseSettings):
    """Budget limits used when nothing has been persisted yet."""

    model_config = SettingsConfigDict(
        env_prefix="FINANZ_BUDGET_",
        extra="ignore"
    )

    monthly: Decimal = Field(default=Decimal("2000"), ge=0)
    weekly: Decimal = Field(default=Decimal("500"), ge=0)


class ReceiptSettings(BaseSettings):
    """Receipt heuristics and OCR dispatch configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINANZ_RECEIPT_",
        extra="ignore"
    )

    merchant_scan_lines: int = Field(
        default=5,
        ge=1,
        description="How many header lines are considered for the merchant"
    )
    merchant_min_length: int = Field(
        default=3,
        ge=0,
        description="A merchant line must be longer than this"
    )
    min_plausible_amount: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
    )
    max_plausible_amount: Decimal = Field(
        default=Decimal("10000"),
        gt=0,
        description="Numbers above this are ignored as amounts (barcodes, phone numbers)"
    )
    b_marker_threshold: int = Field(
        default=2,
        ge=1,
        description="Lines with a standalone 'B' needed to infer the reduced rate"
    )
    ocr_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Text recognition attempts before giving up"
    )
    keywords_file: Optional[Path] = Field(
        default=None,
        description="JSON file overriding the built-in keyword tables"
    )

    @field_validator("keywords_file")
    @classmethod
    def validate_keywords_file(cls, v: Optional[Path]) -> Optional[Path]:
        """Warn if the keywords file doesn't exist (built-in tables are used)."""
        if v is not None and not v.exists():
            import warnings
            warnings.warn(
                f"Receipt keywords file not found at {v}. "
                "Falling back to the built-in keyword tables."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FINANZ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    week_start: int = Field(
        default=0,
        ge=0,
        le=6,
        description="First day of the week for period filters (0 = Monday)"
    )
    audit_history_size: int = Field(
        default=200,
        ge=0,
        description="How many audit events are kept in memory"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def budget(self) -> BudgetDefaults:
        return BudgetDefaults()

    @property
    def receipt(self) -> ReceiptSettings:
        return ReceiptSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()
