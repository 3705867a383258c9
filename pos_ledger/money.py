"""
Minor-unit helpers.

Every amount inside the ledger is an integer number of cents. Decimal
dollar values only exist at the API boundary.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_cents(value) -> int:
    """
    Convert a dollar amount (float, int, str or Decimal) to integer cents,
    rounding half-up to the nearest cent.

    Raises:
        ValueError: if the value is not a finite number
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    """Cents → two-decimal dollar float for JSON responses."""
    return float((Decimal(cents) * CENT).quantize(CENT))


def format_cents(cents: int) -> str:
    """Cents → display string, e.g. -1250 → '-$12.50'."""
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) // 100:,}.{abs(cents) % 100:02d}"


def percent_of(cents: int, rate) -> int:
    """Half-up rounded share of an amount, e.g. a tip or tax rate."""
    share = Decimal(cents) * Decimal(str(rate))
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
