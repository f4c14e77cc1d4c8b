"""
Money and VAT (BTW) arithmetic.

All amounts are Decimal. A gross amount is split into its VAT base and VAT
part exactly once, when a transaction is created, and the parts are stored
alongside it. Rounding to cents happens only when values are displayed or
exported.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple, Optional, Union

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Dutch BTW rates: zero, reduced, standard
VAT_ZERO = Decimal("0")
VAT_REDUCED = Decimal("0.09")
VAT_STANDARD = Decimal("0.21")

ALLOWED_VAT_RATES = (VAT_ZERO, VAT_REDUCED, VAT_STANDARD)


class VatBreakdown(NamedTuple):
    """Gross amount split into base (excl. VAT) and VAT."""
    base: Decimal
    vat: Decimal


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Convert a number to Decimal without binary float artifacts.

    Floats go through their shortest repr, so 45.5 becomes Decimal("45.5")
    and not Decimal("45.5000000000000000277..."). Infinity and NaN are
    rejected.
    """
    if isinstance(value, bool):
        raise ValueError("Booleans are not amounts")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def validate_vat_rate(rate: Optional[Union[Decimal, int, float, str]]) -> Optional[Decimal]:
    """
    Normalize a VAT rate and ensure it is one of the allowed rates.

    Returns None for "not applicable". Raises ValueError otherwise.
    """
    if rate is None:
        return None
    value = to_decimal(rate)
    for allowed in ALLOWED_VAT_RATES:
        if value == allowed:
            return allowed
    raise ValueError(
        f"Unsupported VAT rate: {rate}. Allowed: 0, 0.09, 0.21"
    )


def split_vat(gross: Decimal, rate: Optional[Decimal]) -> VatBreakdown:
    """
    Decompose a gross amount into base and VAT.

    base = gross / (1 + rate), vat = gross - base. A missing or zero rate
    yields base = gross and vat = 0.
    """
    if rate is None or rate <= 0:
        return VatBreakdown(base=gross, vat=ZERO)
    base = gross / (Decimal(1) + rate)
    return VatBreakdown(base=base, vat=gross - base)


def round_money(value: Decimal) -> Decimal:
    """Round to cents for presentation."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """Bare two-decimal rendering, e.g. '45.50'."""
    return f"{round_money(value):.2f}"


def format_rate(rate: Optional[Decimal]) -> str:
    """Render a VAT rate as an integer percentage ('21%'), blank when absent."""
    if rate is None:
        return ""
    percent = (rate * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{percent}%"
