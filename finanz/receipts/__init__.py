"""Receipt text heuristics and scanning."""

from finanz.receipts.keywords import AmountTier, ReceiptKeywords, load_keywords
from finanz.receipts.parser import ReceiptParser, normalize_number, parse_receipt
from finanz.receipts.scanner import (
    CallableRecognizer,
    ReceiptScanner,
    RecognitionError,
    ScanHandle,
    TextRecognizer,
)

__all__ = [
    "AmountTier",
    "ReceiptKeywords",
    "load_keywords",
    "ReceiptParser",
    "normalize_number",
    "parse_receipt",
    "CallableRecognizer",
    "ReceiptScanner",
    "RecognitionError",
    "ScanHandle",
    "TextRecognizer",
]
