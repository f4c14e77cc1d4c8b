"""
Dutch quarterly VAT (BTW) filing deadlines.

A quarter's return is due on the last day of the month after the quarter:
January 31, April 30, July 31 and October 31.

The next deadline is the first one strictly after today's date. On a
deadline day itself the following quarter's deadline is returned.
"""

import calendar
from datetime import date, datetime
from typing import Optional, Union

FILING_MONTHS = (1, 4, 7, 10)


def _as_date(now: Union[date, datetime]) -> date:
    return now.date() if isinstance(now, datetime) else now


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def filing_deadlines(year: int) -> list[date]:
    """All four filing deadlines falling in a calendar year."""
    return [_month_end(year, month) for month in FILING_MONTHS]


def next_vat_deadline(now: Union[date, datetime]) -> date:
    """Smallest filing deadline strictly after `now` (date only)."""
    today = _as_date(now)
    for deadline in filing_deadlines(today.year):
        if deadline > today:
            return deadline
    # past October 31
    return _month_end(today.year + 1, FILING_MONTHS[0])


def days_until_deadline(
    now: Union[date, datetime],
    deadline: Optional[date] = None,
) -> int:
    """Whole days from today to the deadline, time of day ignored."""
    today = _as_date(now)
    deadline = deadline or next_vat_deadline(today)
    return (deadline - today).days


def reporting_quarter(deadline: date) -> tuple[date, date]:
    """
    First and last day of the quarter filed at a deadline.

    April 30 files January-March; January 31 files October-December of the
    previous year.
    """
    if deadline.month not in FILING_MONTHS:
        raise ValueError(f"Not a filing month: {deadline.month}")
    if deadline.month == 1:
        return date(deadline.year - 1, 10, 1), date(deadline.year - 1, 12, 31)
    first_month = deadline.month - 3
    return date(deadline.year, first_month, 1), _month_end(deadline.year, deadline.month - 1)
