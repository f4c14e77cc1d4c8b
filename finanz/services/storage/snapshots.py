"""
Snapshot codec.

Converts the in-memory collections to and from the JSON blobs kept under
each storage key. Amounts are written as decimal strings so no precision is
lost; the decoders also accept the numbers and field names written by
earlier mobile releases.

Decoders raise SerializationError when a blob is unusable as a whole. A
single malformed entry inside an otherwise valid list is skipped and
reported, so one bad row does not wipe the collection.
"""

import json
from decimal import Decimal
from typing import Any, Callable, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from finanz.models.category import Category
from finanz.models.money import to_decimal
from finanz.models.transaction import Transaction, UserMode
from finanz.services.storage.interface import SerializationError


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _load_json(data: bytes) -> Any:
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SerializationError(f"Invalid JSON: {e}")


def _dump_json(value: Any) -> bytes:
    return json.dumps(value, ensure_ascii=False, indent=2).encode("utf-8")


def _decode_list(
    data: bytes,
    parse: Callable[[Any], ModelT],
    what: str,
) -> list[ModelT]:
    raw = _load_json(data)
    if not isinstance(raw, list):
        raise SerializationError(f"Expected a list of {what}, got {type(raw).__name__}")

    items: list[ModelT] = []
    for index, entry in enumerate(raw):
        try:
            items.append(parse(entry))
        except (ValidationError, ValueError, TypeError, ArithmeticError) as e:
            logger.warning(
                "snapshot_entry_skipped",
                collection=what,
                index=index,
                error=str(e),
            )
    return items


# =============================================================================
# TRANSACTIONS
# =============================================================================

def encode_transactions(transactions: list[Transaction]) -> bytes:
    return _dump_json([t.model_dump(mode="json") for t in transactions])


def decode_transactions(data: bytes) -> list[Transaction]:
    return _decode_list(data, Transaction.model_validate, "transactions")


# =============================================================================
# CATEGORIES
# =============================================================================

def encode_categories(categories: list[Category]) -> bytes:
    return _dump_json([c.model_dump(mode="json") for c in categories])


def decode_categories(data: bytes) -> list[Category]:
    return _decode_list(data, Category.model_validate, "categories")


# =============================================================================
# SCALARS
# =============================================================================

def encode_user_mode(mode: UserMode) -> bytes:
    return _dump_json(mode.value)


def decode_user_mode(data: bytes) -> UserMode:
    raw = _load_json(data)
    if not isinstance(raw, str):
        raise SerializationError(f"Expected a user mode string, got {raw!r}")
    try:
        return UserMode(raw)
    except ValueError:
        raise SerializationError(f"Unknown user mode: {raw!r}")


def encode_amount(amount: Decimal) -> bytes:
    return _dump_json(str(amount))


def decode_amount(data: bytes) -> Decimal:
    raw = _load_json(data)
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        raise SerializationError(f"Expected an amount, got {raw!r}")
    try:
        amount = to_decimal(raw)
    except ValueError as e:
        raise SerializationError(str(e))
    if not amount.is_finite() or amount < 0:
        raise SerializationError(f"Invalid budget amount: {raw!r}")
    return amount

