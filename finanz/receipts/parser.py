"""
Receipt Text Heuristics

Turns the lines produced by a text-recognition engine into a ParsedReceipt:
amount, date, merchant, VAT rate and a category hint.

Everything here is a guess. Extractors return None when they find nothing
and never raise; an unreadable receipt simply pre-fills nothing.

Amount search order (lines scanned bottom-up, totals sit at the bottom):
1. "te betalen" / "a pagar" lines
2. "totaal" lines, excluding "subtotaal"
3. "total" lines, excluding "subtotal"
4. the largest plausible number on the whole receipt
The first tier that yields a number wins.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence

from finanz.config import ReceiptSettings, get_settings
from finanz.models.money import VAT_REDUCED, VAT_STANDARD
from finanz.models.receipt import ParsedReceipt
from finanz.receipts.keywords import ReceiptKeywords, load_keywords


_NUMBER_TOKEN = re.compile(r"\d[\d.,]*")
_AMOUNT = re.compile(r"\d+(?:\.\d{1,2})?")
_DATE_TOKEN = re.compile(r"(?<!\d)\d{1,2}[-/]\d{1,2}[-/]\d{2,4}(?!\d)")
_B_MARKER = re.compile(r"(?:^|\s)B(?:\s|$)")
_STANDARD_RATE = re.compile(r"(?<![\d.,])21\s?%")
_REDUCED_RATE = re.compile(r"(?<![\d.,])9\s?%")


def normalize_number(token: str) -> str:
    """
    Normalize European and US digit grouping to a dot decimal.

    "7,77" -> "7.77", "1.234,56" -> "1234.56", "1,234.56" -> "1234.56".
    """
    token = token.rstrip(".,")
    if "," in token and "." in token:
        if token.rfind(",") > token.rfind("."):
            return token.replace(".", "").replace(",", ".")
        return token.replace(",", "")
    if "," in token:
        return token.replace(",", ".")
    return token


def _compact(line: str) -> str:
    return line.lower().replace(" ", "")


class ReceiptParser:
    """
    Heuristic receipt parser.

    Keyword tables and thresholds are injected so other locales can be
    supported without touching the parsing logic.
    """

    def __init__(
        self,
        keywords: Optional[ReceiptKeywords] = None,
        settings: Optional[ReceiptSettings] = None,
    ):
        self._settings = settings or get_settings().receipt
        self._keywords = keywords or load_keywords(self._settings)

    @property
    def keywords(self) -> ReceiptKeywords:
        return self._keywords

    # -------------------------------------------------------------------------
    # Numbers
    # -------------------------------------------------------------------------

    def _strip_currency(self, line: str) -> str:
        for token in self._keywords.currency_tokens:
            line = re.sub(re.escape(token), " ", line, flags=re.IGNORECASE)
        return line

    def numbers_in_line(self, line: str) -> list[Decimal]:
        """All numbers on a line, in reading order."""
        numbers = []
        for token in _NUMBER_TOKEN.findall(self._strip_currency(line)):
            match = _AMOUNT.match(normalize_number(token))
            if not match:
                continue
            try:
                numbers.append(Decimal(match.group()))
            except InvalidOperation:
                continue
        return numbers

    def parse_amount_from_line(self, line: str) -> Optional[Decimal]:
        """Last number on the line; amounts trail their labels."""
        numbers = self.numbers_in_line(line)
        return numbers[-1] if numbers else None

    def _is_plausible(self, value: Decimal) -> bool:
        return (
            self._settings.min_plausible_amount
            <= value
            <= self._settings.max_plausible_amount
        )

    def _last_plausible(self, line: str) -> Optional[Decimal]:
        for value in reversed(self.numbers_in_line(line)):
            if self._is_plausible(value):
                return value
        return None

    # -------------------------------------------------------------------------
    # Extractors
    # -------------------------------------------------------------------------

    def extract_amount(self, lines: Sequence[str]) -> Optional[Decimal]:
        for tier in self._keywords.amount_tiers:
            for line in reversed(lines):
                if not tier.matches(_compact(line)):
                    continue
                value = self._last_plausible(line)
                if value is not None:
                    return value

        candidates = [
            value
            for line in lines
            if not _DATE_TOKEN.search(line)
            for value in self.numbers_in_line(line)
            if self._is_plausible(value)
        ]
        return max(candidates) if candidates else None

    def extract_merchant(self, lines: Sequence[str]) -> Optional[str]:
        """
        Merchant name from the receipt header.

        A known merchant anywhere in the header wins over the generic rule
        (first line long enough and free of digits).
        """
        header = [line.strip() for line in lines[: self._settings.merchant_scan_lines]]

        for line in header:
            lowered = line.lower()
            for needle, display_name in self._keywords.merchants.items():
                if needle in lowered:
                    return display_name

        for line in header:
            if (
                len(line) > self._settings.merchant_min_length
                and not any(ch.isdigit() for ch in line)
            ):
                return line
        return None

    def extract_date(self, lines: Sequence[str]) -> Optional[datetime]:
        """First date found, trying each configured format on each line."""
        for line in lines:
            tokens = _DATE_TOKEN.findall(line)
            if not tokens:
                continue
            for fmt in self._keywords.date_formats:
                for token in tokens:
                    try:
                        return datetime.strptime(token, fmt)
                    except ValueError:
                        continue
        return None

    def detect_vat_rate(self, lines: Sequence[str]) -> Optional[Decimal]:
        """
        Guess the VAT rate.

        Dutch receipts flag reduced-rate items with a trailing "B"; enough of
        those means 9%. Otherwise look for an explicit "21%" or "9%".
        Returns None when nothing points to a rate.
        """
        markers = sum(1 for line in lines if _B_MARKER.search(line.strip()))
        if markers >= self._settings.b_marker_threshold:
            return VAT_REDUCED

        text = "\n".join(lines)
        if _STANDARD_RATE.search(text):
            return VAT_STANDARD
        if _REDUCED_RATE.search(text):
            return VAT_REDUCED
        return None

    def suggest_category(self, lines: Sequence[str]) -> Optional[str]:
        text = " ".join(lines).lower()
        for category, words in self._keywords.category_keywords.items():
            for word in words:
                if re.search(rf"(?<!\w){re.escape(word.lower())}(?!\w)", text):
                    return category
        return None

    # -------------------------------------------------------------------------
    # Full parse
    # -------------------------------------------------------------------------

    def parse(
        self,
        lines: Iterable[str],
        now: Optional[datetime] = None,
    ) -> ParsedReceipt:
        """
        Build a ParsedReceipt from recognized lines.

        No text at all yields an empty receipt. Otherwise the date is always
        set: when none is printed, the scan time is used and flagged.
        """
        raw_lines = [line for line in lines if line is not None]
        raw_text = "\n".join(raw_lines)
        cleaned = [line.strip() for line in raw_lines if line and line.strip()]
        if not cleaned:
            return ParsedReceipt(raw_text=raw_text)

        parsed_date = self.extract_date(cleaned)
        merchant = self.extract_merchant(cleaned)

        return ParsedReceipt(
            amount=self.extract_amount(cleaned),
            date=parsed_date or (now or datetime.now()),
            date_is_placeholder=parsed_date is None,
            merchant=merchant[:200] if merchant else None,
            vat_rate=self.detect_vat_rate(cleaned),
            suggested_category=self.suggest_category(cleaned),
            raw_text=raw_text,
        )


def parse_receipt(
    lines: Iterable[str],
    now: Optional[datetime] = None,
    keywords: Optional[ReceiptKeywords] = None,
    settings: Optional[ReceiptSettings] = None,
) -> ParsedReceipt:
    """Parse recognized receipt lines with the configured keyword tables."""
    return ReceiptParser(keywords=keywords, settings=settings).parse(lines, now=now)
