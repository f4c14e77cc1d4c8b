"""
Keyword tables used by the receipt heuristics.

The tables are data, not code: total-line keywords, known merchant names,
keyword-to-category hints, currency tokens and date formats can all be
replaced by pointing FINANZ_RECEIPT_KEYWORDS_FILE at a JSON document with
the same shape as ReceiptKeywords. Dict order is significant: the first
matching entry wins.
"""

from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from finanz.config import ReceiptSettings, get_settings

logger = structlog.get_logger(__name__)


class AmountTier(BaseModel):
    """
    One priority level of the total-line search.

    A line matches when its lower-cased, space-free text contains any
    `include` keyword and none of the `exclude` keywords.
    """

    include: list[str] = Field(..., min_length=1)
    exclude: list[str] = Field(default_factory=list)

    def matches(self, compact_line: str) -> bool:
        if any(word in compact_line for word in self.exclude):
            return False
        return any(word in compact_line for word in self.include)


class ReceiptKeywords(BaseModel):
    """Editable keyword configuration for receipt parsing."""

    amount_tiers: list[AmountTier] = Field(
        default_factory=lambda: [
            # amount due ("te betalen" / "a pagar")
            AmountTier(include=["tebetalen", "apagar"]),
            AmountTier(include=["totaal"], exclude=["subtotaal"]),
            AmountTier(include=["total"], exclude=["subtotal"]),
        ]
    )
    currency_tokens: list[str] = Field(
        default_factory=lambda: ["€", "EUR", "$"]
    )
    merchants: dict[str, str] = Field(
        default_factory=lambda: {
            "albert heijn": "Albert Heijn",
            "jumbo": "Jumbo",
            "lidl": "Lidl",
            "aldi": "Aldi",
            "dirk": "Dirk",
            "plus": "PLUS",
            "spar": "Spar",
            "coop": "Coop",
            "hema": "HEMA",
            "kruidvat": "Kruidvat",
            "etos": "Etos",
            "action": "Action",
            "mercadona": "Mercadona",
            "carrefour": "Carrefour",
        },
        description="Lower-case substring -> merchant display name"
    )
    category_keywords: dict[str, list[str]] = Field(
        default_factory=lambda: {
            "Groceries": [
                "albert heijn", "jumbo", "lidl", "aldi", "plus",
                "supermarkt", "supermercado", "grocery",
            ],
            "Transport": [
                "ns", "train", "taxi", "uber", "ov", "benzine",
                "shell", "parking", "parkeren",
            ],
            "Healthcare": [
                "apotheek", "pharmacy", "farmacia", "dokter",
                "hospital", "ziekenhuis", "tandarts",
            ],
            "Entertainment": [
                "cinema", "bioscoop", "netflix", "spotify", "museum",
            ],
            "Clothing": ["h&m", "zara", "fashion", "kleding"],
            "Travel": ["hotel", "booking", "airbnb", "airline", "vliegtuig"],
        },
        description="Category name -> keywords matched as whole words"
    )
    date_formats: list[str] = Field(
        default_factory=lambda: ["%d-%m-%Y", "%d/%m/%Y", "%d-%m-%y", "%d/%m/%y"]
    )

    @classmethod
    def from_file(cls, path: Path) -> "ReceiptKeywords":
        return cls.model_validate_json(path.read_text(encoding="utf-8"))


def load_keywords(settings: Optional[ReceiptSettings] = None) -> ReceiptKeywords:
    """
    Keyword tables from the configured file, or the built-in ones.

    A missing or malformed file falls back to the built-in tables.
    """
    settings = settings or get_settings().receipt
    path = settings.keywords_file
    if path is None:
        return ReceiptKeywords()
    try:
        return ReceiptKeywords.from_file(path)
    except (OSError, ValidationError) as e:
        logger.warning(
            "receipt_keywords_load_failed",
            path=str(path),
            error=str(e),
        )
        return ReceiptKeywords()
