"""
Receipt rendering.

Pure formatting of a finalized transaction. Every monetary figure is read
from the stored transaction; nothing is recomputed here.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pos_ledger import models
from pos_ledger.exceptions import InvalidStateError
from pos_ledger.money import format_cents


RECEIPT_WIDTH = 40


@dataclass(frozen=True)
class ReceiptLine:
    description: str
    type: str
    quantity: int
    unit_price_cents: int
    total_cents: int


@dataclass(frozen=True)
class ReceiptPayment:
    method: str
    amount_cents: int
    card: Optional[str] = None
    refunded_cents: int = 0


@dataclass(frozen=True)
class Receipt:
    business_name: str
    receipt_number: str
    transaction_id: str
    status: str
    issued_at: Optional[datetime]
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    tip_cents: int
    total_cents: int
    lines: List[ReceiptLine] = field(default_factory=list)
    payments: List[ReceiptPayment] = field(default_factory=list)


def mask_card(last4: Optional[str]) -> Optional[str]:
    if not last4:
        return None
    return f"**** {last4}"


def render_receipt(txn: models.Transaction, business_name: str = "") -> Receipt:
    if txn.status == "open" or not txn.receipt_number:
        raise InvalidStateError(f"Transaction {txn.id} has not been finalized")

    return Receipt(
        business_name=business_name,
        receipt_number=txn.receipt_number,
        transaction_id=txn.id,
        status=txn.status,
        issued_at=txn.finalized_at,
        subtotal_cents=txn.subtotal_cents,
        discount_cents=txn.discount_cents,
        tax_cents=txn.tax_cents,
        tip_cents=txn.tip_cents,
        total_cents=txn.total_cents,
        lines=[
            ReceiptLine(
                description=i.description,
                type=i.type,
                quantity=i.quantity,
                unit_price_cents=i.unit_price_cents,
                total_cents=i.total_cents,
            )
            for i in txn.items
        ],
        payments=[
            ReceiptPayment(
                method=p.method,
                amount_cents=p.amount_cents,
                card=mask_card(p.card_last4),
                refunded_cents=p.refunded_cents,
            )
            for p in txn.payments
        ],
    )


def _row(label: str, value: str) -> str:
    gap = max(RECEIPT_WIDTH - len(label) - len(value), 1)
    return f"{label}{' ' * gap}{value}"


def format_receipt_text(receipt: Receipt) -> str:
    """Fixed-width plain text suitable for a thermal printer or email body."""
    out = []
    if receipt.business_name:
        out.append(receipt.business_name.center(RECEIPT_WIDTH).rstrip())
    out.append(f"Receipt #: {receipt.receipt_number}")
    if receipt.issued_at:
        out.append(f"Date: {receipt.issued_at:%Y-%m-%d %H:%M}")
    out.append("-" * RECEIPT_WIDTH)

    for line in receipt.lines:
        label = line.description if line.quantity == 1 else f"{line.description} x{line.quantity}"
        out.append(_row(label, format_cents(line.total_cents)))

    out.append("-" * RECEIPT_WIDTH)
    out.append(_row("Subtotal", format_cents(receipt.subtotal_cents)))
    if receipt.discount_cents:
        out.append(_row("Discount", format_cents(-receipt.discount_cents)))
    if receipt.tax_cents:
        out.append(_row("Tax", format_cents(receipt.tax_cents)))
    if receipt.tip_cents:
        out.append(_row("Tip", format_cents(receipt.tip_cents)))
    out.append(_row("Total", format_cents(receipt.total_cents)))
    out.append("-" * RECEIPT_WIDTH)

    for payment in receipt.payments:
        label = payment.method.capitalize()
        if payment.card:
            label = f"{label} ({payment.card})"
        out.append(_row(label, format_cents(payment.amount_cents)))
        if payment.refunded_cents:
            out.append(_row("  Refunded", format_cents(-payment.refunded_cents)))

    return "\n".join(out) + "\n"
