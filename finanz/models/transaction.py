"""
Core Data Models for FinanzApp

These models define the schemas for everything the store persists:
transactions, the user mode and budget settings.

A Transaction carries its VAT split (base and VAT amount) as stored fields.
They are computed once when the transaction is built and are never
recomputed on load, so VAT totals stay stable across releases.

Snapshots written by earlier mobile releases are accepted as well: their
field names (btwRate, amountExclBTW, btwAmount), their Spanish type labels
and their dates encoded as seconds since 2001-01-01.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from finanz.models.money import split_vat, to_decimal, validate_vat_rate


# Reference date of the legacy snapshot format
LEGACY_REFERENCE_DATE = datetime(2001, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            legacy = {"ingreso": cls.INCOME, "gasto": cls.EXPENSE}
            if lowered in legacy:
                return legacy[lowered]
            for member in cls:
                if member.value == lowered:
                    return member
        return None

    @property
    def label(self) -> str:
        return "Income" if self is TransactionType.INCOME else "Expense"


class UserMode(str, Enum):
    """
    Feature tier selected by the user.

    ZZP (self-employed) unlocks the VAT tooling. PRO is reserved and
    currently behaves like BASIC.
    """
    BASIC = "basic"
    ZZP = "zzp"
    PRO = "pro"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            legacy = {
                "básico": cls.BASIC,
                "basico": cls.BASIC,
                "zzp / autónomo": cls.ZZP,
                "zzp / autonomo": cls.ZZP,
            }
            lowered = value.strip().lower()
            if lowered in legacy:
                return legacy[lowered]
            for member in cls:
                if member.value == lowered:
                    return member
        return None

    @property
    def has_vat_tools(self) -> bool:
        return self is UserMode.ZZP

    @property
    def description(self) -> str:
        return {
            UserMode.BASIC: "Simple personal finance tracking",
            UserMode.ZZP: "Includes BTW tools for the self-employed",
            UserMode.PRO: "All features (coming soon)",
        }[self]


class FilterPeriod(str, Enum):
    """Named date range applied to the transaction list."""
    ALL = "all"
    WEEK = "week"
    MONTH = "month"
    LAST30 = "last30"

    @property
    def label(self) -> str:
        return {
            FilterPeriod.ALL: "All",
            FilterPeriod.WEEK: "This week",
            FilterPeriod.MONTH: "This month",
            FilterPeriod.LAST30: "Last 30 days",
        }[self]


# =============================================================================
# TRANSACTION
# =============================================================================

def _normalize_datetime(value: Any) -> Any:
    """Legacy numeric dates and aware datetimes become naive local time."""
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = LEGACY_REFERENCE_DATE + timedelta(seconds=float(value))
        if isinstance(value, datetime) and value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
    except (OverflowError, ValueError):
        raise ValueError(f"Invalid date: {value!r}")
    return value


class Transaction(BaseModel):
    """
    A single income or expense entry.

    Immutable: edits produce a new instance with the same id via
    with_changes(), which the store then swaps in by id.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        frozen=True,
    )

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Gross amount (VAT included)"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category display name"
    )
    category_id: Optional[UUID] = Field(
        default=None,
        validation_alias=AliasChoices("category_id", "categoryID"),
        description="Stable category reference; None for legacy name-only data"
    )
    type: TransactionType
    note: str = Field(default="", max_length=1000)
    date: datetime = Field(default_factory=datetime.now)

    vat_rate: Optional[Decimal] = Field(
        default=None,
        validation_alias=AliasChoices("vat_rate", "btwRate"),
        description="0, 0.09 or 0.21; None means not applicable"
    )
    amount_excl_vat: Optional[Decimal] = Field(
        default=None,
        validation_alias=AliasChoices("amount_excl_vat", "amountExclBTW"),
    )
    vat_amount: Optional[Decimal] = Field(
        default=None,
        validation_alias=AliasChoices("vat_amount", "btwAmount"),
    )

    @model_validator(mode="before")
    @classmethod
    def fill_vat_breakdown(cls, data: Any) -> Any:
        """Compute base and VAT when they were not supplied."""
        if not isinstance(data, dict):
            return data

        def pick(*keys: str) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        amount = pick("amount")
        base = pick("amount_excl_vat", "amountExclBTW")
        vat = pick("vat_amount", "btwAmount")
        if amount is None or (base is not None and vat is not None):
            return data

        try:
            gross = to_decimal(amount)
            rate = validate_vat_rate(pick("vat_rate", "btwRate"))
        except ValueError:
            # Field validation reports the bad value
            return data

        breakdown = split_vat(gross, rate)
        data = dict(data)
        for key in ("amountExclBTW", "btwAmount"):
            data.pop(key, None)
        data["amount_excl_vat"] = breakdown.base
        data["vat_amount"] = breakdown.vat
        return data

    @field_validator("amount", "amount_excl_vat", "vat_amount", mode="before")
    @classmethod
    def coerce_decimal(cls, v: Any) -> Any:
        if v is None:
            return v
        return to_decimal(v)

    @field_validator("vat_rate", mode="before")
    @classmethod
    def check_vat_rate(cls, v: Any) -> Optional[Decimal]:
        return validate_vat_rate(v)

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return TransactionType(v)
        return v

    @field_validator("note", mode="before")
    @classmethod
    def none_note(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return _normalize_datetime(v)

    @field_validator("date")
    @classmethod
    def naive_date(cls, v: datetime) -> datetime:
        return _normalize_datetime(v)

    @property
    def is_income(self) -> bool:
        return self.type is TransactionType.INCOME

    @property
    def is_expense(self) -> bool:
        return self.type is TransactionType.EXPENSE

    @property
    def base_amount(self) -> Decimal:
        """Amount excluding VAT (the gross amount when no VAT applies)."""
        return self.amount_excl_vat if self.amount_excl_vat is not None else self.amount

    @property
    def vat(self) -> Decimal:
        return self.vat_amount if self.vat_amount is not None else Decimal("0")

    def with_changes(self, **changes: Any) -> "Transaction":
        """
        Return an edited copy with the same id.

        The VAT split is recomputed when amount or rate change.
        """
        if "id" in changes:
            raise ValueError("Transaction id cannot be changed")
        data = self.model_dump()
        data.update(changes)
        if "amount" in changes or "vat_rate" in changes:
            data.pop("amount_excl_vat", None)
            data.pop("vat_amount", None)
        return Transaction.model_validate(data)


# =============================================================================
# SETTINGS MODELS
# =============================================================================

class BudgetSettings(BaseModel):
    """Monthly and weekly spending limits."""

    monthly: Decimal = Field(default=Decimal("2000"), ge=0)
    weekly: Decimal = Field(default=Decimal("500"), ge=0)

    @field_validator("monthly", "weekly", mode="before")
    @classmethod
    def coerce_decimal(cls, v: Any) -> Any:
        return to_decimal(v)
