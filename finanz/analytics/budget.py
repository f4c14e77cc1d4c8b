"""
Budget math for the weekly and monthly limits.
"""

import calendar
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict

from finanz.models.money import ZERO
from finanz.models.transaction import FilterPeriod


class BudgetPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def filter_period(self) -> FilterPeriod:
        """The transaction filter whose expenses count against this budget."""
        return FilterPeriod.WEEK if self is BudgetPeriod.WEEKLY else FilterPeriod.MONTH


class BudgetLevel(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"
    EXCEEDED = "exceeded"


class BudgetStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    period: BudgetPeriod
    limit: Decimal
    spent: Decimal
    remaining: Decimal
    progress: float
    days_remaining: int
    suggested_daily: Decimal
    level: BudgetLevel


def period_end(budget_period: BudgetPeriod, today: date, week_start: int = 0) -> date:
    """Last calendar day of the current week or month."""
    if budget_period is BudgetPeriod.WEEKLY:
        offset = (today.weekday() - week_start) % 7
        return today - timedelta(days=offset) + timedelta(days=6)
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=last_day)


def days_remaining(budget_period: BudgetPeriod, now: datetime, week_start: int = 0) -> int:
    """Days left in the period, today included."""
    today = now.date()
    return (period_end(budget_period, today, week_start) - today).days + 1


def budget_progress(limit: Decimal, spent: Decimal) -> float:
    """spent / limit clamped to [0, 1]; a zero limit has no progress."""
    if limit <= 0:
        return 0.0
    return min(1.0, max(0.0, float(spent / limit)))


def budget_status(
    limit: Decimal,
    spent: Decimal,
    budget_period: BudgetPeriod,
    now: datetime,
    week_start: int = 0,
) -> BudgetStatus:
    """
    Remaining budget, progress and a suggested daily spend.

    suggested_daily = remaining / days left in the period (0 when no days
    are left).
    """
    remaining = limit - spent
    progress = budget_progress(limit, spent)
    days = days_remaining(budget_period, now, week_start)
    suggested = remaining / days if days > 0 else ZERO

    if remaining < 0:
        level = BudgetLevel.EXCEEDED
    elif progress < 0.7:
        level = BudgetLevel.OK
    elif progress < 0.9:
        level = BudgetLevel.WARNING
    else:
        level = BudgetLevel.CRITICAL

    return BudgetStatus(
        period=budget_period,
        limit=limit,
        spent=spent,
        remaining=remaining,
        progress=progress,
        days_remaining=max(0, days),
        suggested_daily=suggested,
        level=level,
    )
