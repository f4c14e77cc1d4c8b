"""Export formats."""

from finanz.export.csv_export import CSV_HEADER, transaction_to_row, transactions_to_csv

__all__ = ["CSV_HEADER", "transaction_to_row", "transactions_to_csv"]
