"""
Aggregation Engine

Pure functions over a list of transactions: period filters, totals,
category breakdowns, budget math and VAT deadlines.
"""

from finanz.analytics.budget import (
    BudgetLevel,
    BudgetPeriod,
    BudgetStatus,
    budget_progress,
    budget_status,
    days_remaining,
    period_end,
)
from finanz.analytics.deadlines import (
    FILING_MONTHS,
    days_until_deadline,
    filing_deadlines,
    next_vat_deadline,
    reporting_quarter,
)
from finanz.analytics.periods import filter_between, filter_by_period, period_start
from finanz.analytics.summaries import (
    ReserveStatus,
    VatReservePlan,
    VatSummary,
    category_breakdown,
    net_balance,
    sum_by_type,
    total_expense,
    total_income,
    vat_reserve_plan,
    vat_summary,
)

__all__ = [
    "BudgetLevel",
    "BudgetPeriod",
    "BudgetStatus",
    "budget_progress",
    "budget_status",
    "days_remaining",
    "period_end",
    "FILING_MONTHS",
    "days_until_deadline",
    "filing_deadlines",
    "next_vat_deadline",
    "reporting_quarter",
    "filter_between",
    "filter_by_period",
    "period_start",
    "ReserveStatus",
    "VatReservePlan",
    "VatSummary",
    "category_breakdown",
    "net_balance",
    "sum_by_type",
    "total_expense",
    "total_income",
    "vat_reserve_plan",
    "vat_summary",
]
