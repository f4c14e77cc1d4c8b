"""
Totals over the transaction list.

Every function works on the full list it is given, optionally narrowed to a
period first. Sums keep full Decimal precision; rounding is left to the
caller.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from finanz.analytics.periods import filter_by_period
from finanz.models.money import ZERO
from finanz.models.transaction import FilterPeriod, Transaction, TransactionType


def _in_period(
    transactions: Iterable[Transaction],
    period: FilterPeriod,
    now: Optional[datetime],
    week_start: int,
) -> list[Transaction]:
    return filter_by_period(transactions, period, now, week_start)


def sum_by_type(
    transactions: Iterable[Transaction],
    transaction_type: TransactionType,
    period: FilterPeriod = FilterPeriod.ALL,
    now: Optional[datetime] = None,
    week_start: int = 0,
) -> Decimal:
    return sum(
        (t.amount for t in _in_period(transactions, period, now, week_start)
         if t.type is transaction_type),
        ZERO,
    )


def total_income(
    transactions: Iterable[Transaction],
    period: FilterPeriod = FilterPeriod.ALL,
    now: Optional[datetime] = None,
    week_start: int = 0,
) -> Decimal:
    return sum_by_type(transactions, TransactionType.INCOME, period, now, week_start)


def total_expense(
    transactions: Iterable[Transaction],
    period: FilterPeriod = FilterPeriod.ALL,
    now: Optional[datetime] = None,
    week_start: int = 0,
) -> Decimal:
    return sum_by_type(transactions, TransactionType.EXPENSE, period, now, week_start)


def net_balance(
    transactions: Iterable[Transaction],
    period: FilterPeriod = FilterPeriod.ALL,
    now: Optional[datetime] = None,
    week_start: int = 0,
) -> Decimal:
    """Income minus expense."""
    selected = _in_period(transactions, period, now, week_start)
    return total_income(selected) - total_expense(selected)


def category_breakdown(
    transactions: Iterable[Transaction],
    period: FilterPeriod = FilterPeriod.ALL,
    now: Optional[datetime] = None,
    week_start: int = 0,
) -> dict[str, Decimal]:
    """
    Expense totals per category name.

    The returned dict is ordered by total descending; equal totals are
    ordered by category name ascending.
    """
    totals: dict[str, Decimal] = {}
    for t in _in_period(transactions, period, now, week_start):
        if t.is_expense:
            totals[t.category] = totals.get(t.category, ZERO) + t.amount
    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return dict(ordered)


# =============================================================================
# VAT
# =============================================================================

class VatSummary(BaseModel):
    """VAT collected on income, paid on expenses, and the balance owed."""
    model_config = ConfigDict(frozen=True)

    collected: Decimal
    paid: Decimal

    @property
    def net(self) -> Decimal:
        """Positive when VAT is owed to the tax office."""
        return self.collected - self.paid


def vat_summary(
    transactions: Iterable[Transaction],
    period: FilterPeriod = FilterPeriod.ALL,
    now: Optional[datetime] = None,
    week_start: int = 0,
) -> VatSummary:
    """Sum the stored VAT amounts by direction."""
    collected = ZERO
    paid = ZERO
    for t in _in_period(transactions, period, now, week_start):
        if t.is_income:
            collected += t.vat
        else:
            paid += t.vat
    return VatSummary(collected=collected, paid=paid)


class ReserveStatus(str, Enum):
    ON_TRACK = "on_track"
    GOOD = "good"
    BEHIND = "behind"


class VatReservePlan(BaseModel):
    """How far the money set aside covers the VAT due at the next filing."""
    model_config = ConfigDict(frozen=True)

    owed: Decimal
    reserved: Decimal
    shortage: Decimal
    progress: float
    daily_saving: Decimal
    status: ReserveStatus


def vat_reserve_plan(
    owed: Decimal,
    reserved: Decimal,
    days_until: int,
) -> VatReservePlan:
    """
    Compare the reserved amount with the VAT owed.

    shortage = max(0, owed - reserved); the daily saving spreads the
    shortage over the days left (at least one).
    """
    shortage = max(ZERO, owed - reserved)
    if owed > 0:
        progress = min(1.0, max(0.0, float(reserved / owed)))
    else:
        progress = 0.0

    if progress >= 0.9:
        status = ReserveStatus.ON_TRACK
    elif progress >= 0.7:
        status = ReserveStatus.GOOD
    else:
        status = ReserveStatus.BEHIND

    return VatReservePlan(
        owed=owed,
        reserved=reserved,
        shortage=shortage,
        progress=progress,
        daily_saving=shortage / max(1, days_until),
        status=status,
    )
