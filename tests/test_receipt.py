"""
Tests for pos_ledger/services/receipt.py.

Receipts read stored totals only, so they must match the transaction
figures exactly.
"""
import pytest

from pos_ledger.exceptions import InvalidStateError
from pos_ledger.services.receipt import format_receipt_text, mask_card, render_receipt
from tests.conftest import make_txn


class TestRenderReceipt:
    def test_figures_match_transaction(self, db):
        txn = make_txn(
            db, "txn_r1",
            items=(("Full Detail", 20000, "service", 1), ("Tire Shine", 1500, "addon", 2),
                   ("Loyalty", -2500, "discount", 1)),
            payments=(("cash", 10000, None), ("card", 13500, "pi_123")),
            tip_cents=3000,
            payment_mode="split",
        )

        receipt = render_receipt(txn, business_name="Mobile Detailing Co.")

        assert receipt.subtotal_cents == txn.subtotal_cents == 23000
        assert receipt.discount_cents == txn.discount_cents == 2500
        assert receipt.tax_cents == txn.tax_cents == 0
        assert receipt.tip_cents == txn.tip_cents == 3000
        assert receipt.total_cents == txn.total_cents == 23500
        assert receipt.receipt_number == txn.receipt_number
        assert [line.description for line in receipt.lines] == ["Full Detail", "Tire Shine", "Loyalty"]
        assert [p.card for p in receipt.payments] == [None, "**** 4242"]

    def test_open_transaction_has_no_receipt(self, db):
        txn = make_txn(db, "txn_open", status="open")
        with pytest.raises(InvalidStateError):
            render_receipt(txn)

    def test_refunds_shown_per_payment(self, db):
        txn = make_txn(db, "txn_r2", status="partially_refunded")
        txn.payments[0].refunded_cents = 2500
        db.commit()

        receipt = render_receipt(txn)
        assert receipt.status == "partially_refunded"
        assert receipt.payments[0].refunded_cents == 2500


class TestMaskCard:
    def test_masks_suffix(self):
        assert mask_card("4242") == "**** 4242"

    def test_no_suffix(self):
        assert mask_card(None) is None
        assert mask_card("") is None


class TestReceiptText:
    def test_layout(self, db):
        txn = make_txn(
            db, "txn_r3",
            items=(("Full Detail", 15000, "service", 1), ("Tire Shine", 1500, "addon", 2)),
            payments=(("card", 19800, "pi_123"),),
            tip_cents=1800,
        )
        txn.payments[0].refunded_cents = 1500
        db.commit()

        text = format_receipt_text(render_receipt(txn, business_name="Mobile Detailing Co."))
        lines = text.splitlines()

        assert lines[0].strip() == "Mobile Detailing Co."
        assert lines[1] == f"Receipt #: {txn.receipt_number}"
        assert lines[2] == "Date: 2024-01-15 10:05"
        assert all(len(line) <= 40 for line in lines)
        assert "Tire Shine x2" in text
        assert lines[-1].startswith("  Refunded") and lines[-1].endswith("-$15.00")
        assert any(l.startswith("Card (**** 4242)") and l.endswith("$198.00") for l in lines)
        assert any(l.startswith("Tip") and l.endswith("$18.00") for l in lines)
        assert any(l.startswith("Total") and l.endswith("$198.00") for l in lines)
        assert not any(l.startswith("Discount") for l in lines)
        assert not any(l.startswith("Tax") for l in lines)

    def test_discount_row_is_negative(self, db):
        txn = make_txn(db, "txn_r4")
        txn.discount_cents = 1000
        txn.total_cents = 9000
        db.commit()

        text = format_receipt_text(render_receipt(txn))
        assert any(l.startswith("Discount") and l.endswith("-$10.00") for l in text.splitlines())
