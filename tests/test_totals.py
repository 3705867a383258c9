"""
Pure unit tests for pos_ledger/services/totals.py and pos_ledger/money.py.

No database required; every function under test is pure.
"""
import pytest

from pos_ledger.exceptions import ValidationError
from pos_ledger.money import format_cents, from_cents, percent_of, to_cents
from pos_ledger.services.totals import (
    TIP_PRESETS,
    LineItem,
    build_item,
    compute_discount,
    compute_subtotal,
    compute_tax,
    compute_total,
    compute_totals,
    parse_custom_tip,
    preset_tip,
    resolve_tip,
)


def line(item_type, unit_cents, quantity=1):
    return LineItem("x", item_type, quantity, unit_cents, unit_cents * quantity)


# ---------------------------------------------------------------------------
# money helpers
# ---------------------------------------------------------------------------
class TestMoney:
    def test_to_cents_rounds_half_up(self):
        assert to_cents(33.335) == 3334
        assert to_cents("19.99") == 1999
        assert to_cents(0) == 0

    def test_to_cents_avoids_binary_float_drift(self):
        # 0.1 + 0.2 == 0.30000000000000004 as a float
        assert to_cents(0.1 + 0.2) == 30

    def test_to_cents_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_cents("abc")
        with pytest.raises(ValueError):
            to_cents(float("nan"))

    def test_from_cents(self):
        assert from_cents(3334) == 33.34
        assert from_cents(-500) == -5.0

    def test_format_cents(self):
        assert format_cents(123456) == "$1,234.56"
        assert format_cents(-2000) == "-$20.00"
        assert format_cents(5) == "$0.05"

    def test_percent_of_half_up(self):
        # 12345 * 0.15 = 1851.75 -> 1852
        assert percent_of(12345, 0.15) == 1852


# ---------------------------------------------------------------------------
# build_item()
# ---------------------------------------------------------------------------
class TestBuildItem:
    def test_total_is_price_times_quantity(self):
        item = build_item("Wax", 2500, "addon", quantity=3)
        assert item.total_cents == 7500
        assert item.unit_price_cents * item.quantity == item.total_cents

    def test_discount_is_negative_with_quantity_one(self):
        item = build_item("Promo", 2000, "discount", quantity=5)
        assert item.unit_price_cents == -2000
        assert item.quantity == 1
        assert item.total_cents == -2000

    def test_discount_sign_of_input_is_irrelevant(self):
        assert build_item("Promo", -2000, "discount").total_cents == -2000

    def test_zero_discount_rejected(self):
        with pytest.raises(ValidationError):
            build_item("Promo", 0, "discount")

    def test_quantity_below_one_rejected(self):
        with pytest.raises(ValidationError, match="Quantity"):
            build_item("Wax", 2500, "addon", quantity=0)

    def test_negative_price_rejected_for_non_discount(self):
        with pytest.raises(ValidationError, match="negative"):
            build_item("Wax", -1, "product")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError, match="Unknown item type"):
            build_item("Wax", 100, "gift_card")

    def test_blank_description_rejected(self):
        with pytest.raises(ValidationError, match="description"):
            build_item("   ", 100, "service")

    def test_description_is_stripped(self):
        assert build_item("  Interior Detail ", 100, "service").description == "Interior Detail"


# ---------------------------------------------------------------------------
# Subtotal / discount / total
# ---------------------------------------------------------------------------
class TestTotals:
    def test_subtotal_excludes_discounts(self):
        items = [line("service", 15000), line("addon", 2500, 2), line("discount", -3000)]
        assert compute_subtotal(items) == 20000

    def test_discount_is_absolute_sum(self):
        items = [line("service", 15000), line("discount", -3000), line("discount", -500)]
        assert compute_discount(items) == 3500

    def test_total_formula(self):
        assert compute_total(20000, 3500, 0, 2000) == 20000 - 3500 + 0 + 2000

    def test_total_never_negative(self):
        assert compute_total(1000, 5000, 0, 0) == 0

    def test_compute_totals_bundle(self):
        items = [line("service", 15000), line("discount", -5000)]
        result = compute_totals(items, tax_rate=0.1, tip_cents=1500)
        assert result.subtotal_cents == 15000
        assert result.discount_cents == 5000
        assert result.tax_cents == 1000  # 10% of the discounted 100.00
        assert result.tip_cents == 1500
        assert result.total_cents == 15000 - 5000 + 1000 + 1500

    def test_zero_tax_rate(self):
        assert compute_tax(15000, 0, 0.0) == 0

    def test_tax_never_on_negative_base(self):
        assert compute_tax(1000, 5000, 0.1) == 0

    def test_empty_items(self):
        result = compute_totals([])
        assert result.total_cents == 0


# ---------------------------------------------------------------------------
# Tips
# ---------------------------------------------------------------------------
class TestTips:
    @pytest.mark.parametrize("percentage,expected", [(0.15, 2250), (0.20, 3000), (0.25, 3750)])
    def test_presets(self, percentage, expected):
        assert preset_tip(15000, percentage) == expected

    def test_preset_rounds_to_cent(self):
        # 99.99 * 0.15 = 14.9985 -> 15.00
        assert preset_tip(9999, 0.15) == 1500

    def test_presets_constant(self):
        assert TIP_PRESETS == (0.15, 0.20, 0.25)

    def test_unsupported_preset_rejected(self):
        with pytest.raises(ValidationError, match="preset"):
            preset_tip(10000, 0.5)

    def test_custom_tip_parsed(self):
        assert parse_custom_tip("12.50") == 1250

    @pytest.mark.parametrize("raw", ["", "abc", None, "$5"])
    def test_unparsable_custom_tip_is_zero(self, raw):
        assert parse_custom_tip(raw) == 0

    def test_negative_custom_tip_rejected(self):
        with pytest.raises(ValidationError, match="negative"):
            parse_custom_tip("-5")

    def test_resolve_none(self):
        assert resolve_tip("none", 10000) == 0

    def test_resolve_unknown_kind(self):
        with pytest.raises(ValidationError):
            resolve_tip("generous", 10000)
