"""
Data Models Package

All data flowing through the core conforms to these schemas.
"""

from finanz.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finanz.models.category import (
    DEFAULT_CATEGORIES,
    FALLBACK_EMOJI,
    Category,
    CategoryBook,
    CategoryError,
)
from finanz.models.money import (
    ALLOWED_VAT_RATES,
    VAT_REDUCED,
    VAT_STANDARD,
    VAT_ZERO,
    VatBreakdown,
    format_money,
    format_rate,
    round_money,
    split_vat,
    validate_vat_rate,
)
from finanz.models.receipt import ParsedReceipt
from finanz.models.transaction import (
    BudgetSettings,
    FilterPeriod,
    Transaction,
    TransactionType,
    UserMode,
)

__all__ = [
    # Money
    "ALLOWED_VAT_RATES",
    "VAT_REDUCED",
    "VAT_STANDARD",
    "VAT_ZERO",
    "VatBreakdown",
    "format_money",
    "format_rate",
    "round_money",
    "split_vat",
    "validate_vat_rate",
    # Transactions and settings
    "BudgetSettings",
    "FilterPeriod",
    "Transaction",
    "TransactionType",
    "UserMode",
    # Categories
    "DEFAULT_CATEGORIES",
    "FALLBACK_EMOJI",
    "Category",
    "CategoryBook",
    "CategoryError",
    # Receipts
    "ParsedReceipt",
    # Audit
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
