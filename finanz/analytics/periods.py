"""
Period filtering.

Boundaries are inclusive: a transaction dated exactly at the start of the
period is part of it. There is no upper bound, so future-dated entries are
included in every period.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from finanz.models.transaction import FilterPeriod, Transaction


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def period_start(
    period: FilterPeriod,
    now: datetime,
    week_start: int = 0,
) -> Optional[datetime]:
    """
    First instant of a period, or None for FilterPeriod.ALL.

    week:   midnight of the most recent `week_start` weekday (0 = Monday)
    month:  midnight on the first of the month
    last30: exactly 30 days before `now`
    """
    if period is FilterPeriod.ALL:
        return None
    if period is FilterPeriod.WEEK:
        offset = (now.weekday() - week_start) % 7
        return start_of_day(now.date() - timedelta(days=offset))
    if period is FilterPeriod.MONTH:
        return start_of_day(now.date().replace(day=1))
    if period is FilterPeriod.LAST30:
        return now - timedelta(days=30)
    raise ValueError(f"Unknown period: {period}")


def filter_by_period(
    transactions: Iterable[Transaction],
    period: FilterPeriod,
    now: Optional[datetime] = None,
    week_start: int = 0,
) -> list[Transaction]:
    """Transactions dated on or after the start of the period."""
    start = period_start(period, now or datetime.now(), week_start)
    if start is None:
        return list(transactions)
    return [t for t in transactions if t.date >= start]


def filter_between(
    transactions: Iterable[Transaction],
    first_day: date,
    last_day: date,
) -> list[Transaction]:
    """Transactions dated within [first_day, last_day], whole days."""
    return [t for t in transactions if first_day <= t.date.date() <= last_day]
