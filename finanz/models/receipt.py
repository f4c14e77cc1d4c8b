"""
Receipt scan result.

CRITICAL: This is PROPOSED data, NOT verified. It only pre-fills a new
transaction draft and is never persisted.

All fields are optional because text recognition might miss any of them.
An absent vat_rate means "not detected", which is not the same as a
confirmed zero rate.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ParsedReceipt(BaseModel):
    """Structured guess extracted from recognized receipt text."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[Decimal] = Field(
        default=None,
        description="Amount due, usually the receipt total"
    )
    date: Optional[datetime] = Field(
        default=None,
        description="Receipt date"
    )
    date_is_placeholder: bool = Field(
        default=False,
        description="True when no date was found and the scan time was used"
    )
    merchant: Optional[str] = Field(default=None, max_length=200)
    vat_rate: Optional[Decimal] = Field(
        default=None,
        description="Detected VAT rate; None when undetected"
    )
    suggested_category: Optional[str] = None
    raw_text: str = Field(
        default="",
        description="Recognized text, one line per row"
    )

    @property
    def is_empty(self) -> bool:
        """Nothing to pre-fill."""
        return (
            self.amount is None
            and self.date is None
            and self.merchant is None
            and self.vat_rate is None
            and self.suggested_category is None
        )
