"""
Line-item and totals calculator.

Pure functions over cents. Items can be ORM rows or anything exposing
`type` and `total_cents`.

  subtotal = sum of non-discount line totals
  discount = sum of |discount line totals|
  total    = max(subtotal - discount + tax + tip, 0)
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from pos_ledger.exceptions import ValidationError
from pos_ledger.models import ITEM_TYPES
from pos_ledger.money import percent_of, to_cents


DISCOUNT = "discount"

TIP_PRESETS = (0.15, 0.20, 0.25)


@dataclass(frozen=True)
class LineItem:
    description: str
    type: str
    quantity: int
    unit_price_cents: int
    total_cents: int


@dataclass(frozen=True)
class Totals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    tip_cents: int
    total_cents: int


def line_total(unit_price_cents: int, quantity: int) -> int:
    return unit_price_cents * quantity


def build_item(description: str, unit_price_cents: int, item_type: str, quantity: int = 1) -> LineItem:
    """
    Normalize a new line.

    Discount lines are always quantity 1 with a negative price, whatever
    sign the caller used. Other lines need quantity >= 1 and a price >= 0.
    """
    description = (description or "").strip()
    if not description:
        raise ValidationError("Item description cannot be empty")
    if item_type not in ITEM_TYPES:
        raise ValidationError(f"Unknown item type: {item_type}")

    if item_type == DISCOUNT:
        price = -abs(unit_price_cents)
        if price == 0:
            raise ValidationError("Discount amount must be greater than zero")
        return LineItem(description, DISCOUNT, 1, price, line_total(price, 1))

    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    if unit_price_cents < 0:
        raise ValidationError("Unit price cannot be negative")
    return LineItem(
        description, item_type, quantity, unit_price_cents, line_total(unit_price_cents, quantity)
    )


def compute_subtotal(items: Iterable) -> int:
    return sum(i.total_cents for i in items if i.type != DISCOUNT)


def compute_discount(items: Iterable) -> int:
    return abs(sum(i.total_cents for i in items if i.type == DISCOUNT))


def compute_tax(subtotal_cents: int, discount_cents: int, rate: float) -> int:
    taxable = max(subtotal_cents - discount_cents, 0)
    return percent_of(taxable, rate)


def compute_total(subtotal_cents: int, discount_cents: int, tax_cents: int, tip_cents: int) -> int:
    return max(subtotal_cents - discount_cents + tax_cents + tip_cents, 0)


def compute_totals(items: Iterable, tax_rate: float = 0.0, tip_cents: int = 0) -> Totals:
    items = list(items)
    subtotal = compute_subtotal(items)
    discount = compute_discount(items)
    tax = compute_tax(subtotal, discount, tax_rate)
    return Totals(
        subtotal_cents=subtotal,
        discount_cents=discount,
        tax_cents=tax,
        tip_cents=tip_cents,
        total_cents=compute_total(subtotal, discount, tax, tip_cents),
    )


# ---------------------------------------------------------------------------
# Tips
# ---------------------------------------------------------------------------

def preset_tip(base_cents: int, percentage: float) -> int:
    """Tip for one of the preset percentages, rounded to the cent."""
    if percentage not in TIP_PRESETS:
        raise ValidationError(f"Unsupported tip preset: {percentage}")
    return percent_of(base_cents, percentage)


def parse_custom_tip(raw: Optional[str]) -> int:
    """Custom tip entry. Unparsable input counts as no tip."""
    try:
        cents = to_cents(raw)
    except (TypeError, ValueError):
        return 0
    if cents < 0:
        raise ValidationError("Tip cannot be negative")
    return cents


def resolve_tip(kind: str, base_cents: int, percentage: float = None, custom: Optional[str] = None) -> int:
    """
    kind: "none" | "preset" | "custom"
    """
    if kind == "none":
        return 0
    if kind == "preset":
        return preset_tip(base_cents, percentage)
    if kind == "custom":
        return parse_custom_tip(custom)
    raise ValidationError(f"Unknown tip kind: {kind}")
