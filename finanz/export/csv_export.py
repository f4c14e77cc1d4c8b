"""
CSV serialization of the transaction list.

One row per transaction, newest first. Numbers are bare decimals with two
places; the three VAT columns stay blank when no rate applies. Commas inside
notes are replaced with semicolons so spreadsheet imports that split on
commas keep the columns aligned.
"""

import csv
import io
from typing import Iterable

from finanz.models.money import format_money, format_rate
from finanz.models.transaction import Transaction


CSV_HEADER = [
    "Date",
    "Category",
    "Type",
    "Amount",
    "VAT Rate",
    "Amount Excl VAT",
    "VAT Amount",
    "Note",
]

DATE_FORMAT = "%Y-%m-%d"


def _clean_note(note: str) -> str:
    return note.replace(",", ";").replace("\r", " ").replace("\n", " ")


def transaction_to_row(transaction: Transaction) -> list[str]:
    """Render one transaction as CSV cells."""
    if transaction.vat_rate is None:
        rate = base = vat = ""
    else:
        rate = format_rate(transaction.vat_rate)
        base = format_money(transaction.base_amount)
        vat = format_money(transaction.vat)

    return [
        transaction.date.strftime(DATE_FORMAT),
        transaction.category,
        transaction.type.label,
        format_money(transaction.amount),
        rate,
        base,
        vat,
        _clean_note(transaction.note),
    ]


def transactions_to_csv(transactions: Iterable[Transaction]) -> str:
    """Serialize transactions to CSV text, header included. Performs no I/O."""
    ordered = sorted(transactions, key=lambda t: t.date, reverse=True)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for transaction in ordered:
        writer.writerow(transaction_to_row(transaction))
    return buffer.getvalue()
