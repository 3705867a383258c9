"""
Transaction lifecycle service.

  open -> (items, tip, payments edited) -> finalize -> completed
       -> refunds -> partially_refunded -> fully_refunded

Items, tip and payments can only change while the transaction is open.
Every write goes through _commit(), which bumps the row version so a
concurrent writer fails with ConflictError instead of overwriting.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pos_ledger import models
from pos_ledger.access import SessionContext
from pos_ledger.config import get_settings
from pos_ledger.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from pos_ledger.money import format_cents
from pos_ledger.services import allocation, totals
from pos_ledger.services.allocation import PaymentAllocation

logger = logging.getLogger(__name__)


REVENUE_STATUSES = ("completed", "partially_refunded")


# ---------------------------------------------------------------------------
# Status rules
# ---------------------------------------------------------------------------

def derive_transaction_status(current: str, total_cents: int, refunded_cents: int) -> str:
    """Transaction status as a function of how much has been refunded."""
    if current == "open":
        return current
    if refunded_cents > 0 and refunded_cents >= total_cents:
        return "fully_refunded"
    if refunded_cents > 0:
        return "partially_refunded"
    return current


def derive_payment_status(current: str, amount_cents: int, refunded_cents: int) -> str:
    if refunded_cents >= amount_cents:
        return "refunded"
    return current


def generate_receipt_number(at: datetime) -> str:
    return f"RCP-{at:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


# ---------------------------------------------------------------------------
# Loading & committing
# ---------------------------------------------------------------------------

def get_transaction(transaction_id: str, db: Session) -> models.Transaction:
    txn = db.query(models.Transaction).filter(
        models.Transaction.id == transaction_id
    ).first()

    if txn is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return txn


def get_by_receipt_number(receipt_number: str, db: Session) -> models.Transaction:
    txn = db.query(models.Transaction).filter(
        models.Transaction.receipt_number == receipt_number.strip().upper()
    ).first()

    if txn is None:
        raise NotFoundError(f"Receipt {receipt_number} not found")
    return txn


def check_version(txn: models.Transaction, expected_version: Optional[int]) -> None:
    if expected_version is not None and txn.version != expected_version:
        raise ConflictError(
            f"Transaction {txn.id} is at version {txn.version}, "
            f"expected {expected_version}; reload and retry"
        )


def _load_open(transaction_id: str, db: Session, expected_version: Optional[int]) -> models.Transaction:
    txn = get_transaction(transaction_id, db)
    check_version(txn, expected_version)
    if txn.status != "open":
        raise InvalidStateError(f"Transaction {transaction_id} is {txn.status}; items and payments are frozen")
    return txn


def _commit(txn: models.Transaction, db: Session) -> models.Transaction:
    # Touch the parent row so child-only edits still bump the version
    txn.updated_at = models.utcnow()
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError(f"Transaction {txn.id} was modified concurrently; reload and retry")
    db.refresh(txn)
    return txn


def _recalculate(txn: models.Transaction) -> None:
    """Store fresh totals; a single-mode payment always tracks the total."""
    result = totals.compute_totals(txn.items, get_settings().sales_tax_rate, txn.tip_cents)
    txn.subtotal_cents = result.subtotal_cents
    txn.discount_cents = result.discount_cents
    txn.tax_cents = result.tax_cents
    txn.total_cents = result.total_cents

    if txn.payment_mode == allocation.SINGLE and txn.payments:
        txn.payments[0].amount_cents = txn.total_cents


# ---------------------------------------------------------------------------
# Open transactions
# ---------------------------------------------------------------------------

def open_transaction(
    ctx: SessionContext,
    db: Session,
    transaction_type: str = "walk_in_sale",
    booking_id: Optional[str] = None,
    client_id: Optional[str] = None,
    assigned_employee_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> models.Transaction:
    if transaction_type not in models.TRANSACTION_TYPES:
        raise ValidationError(f"Unknown transaction type: {transaction_type}")
    if transaction_type == "booking_checkout" and not booking_id:
        raise ValidationError("Booking checkout requires a booking_id")

    txn = models.Transaction(
        type=transaction_type,
        booking_id=booking_id,
        client_id=client_id,
        employee_id=ctx.user_id,
        assigned_employee_id=assigned_employee_id,
        notes=notes,
        status="open",
        payment_mode=allocation.SINGLE,
    )
    db.add(txn)
    db.commit()
    db.refresh(txn)
    logger.info(f"Opened {transaction_type} transaction {txn.id} by {ctx.user_id}")
    return txn


def add_item(
    transaction_id: str,
    db: Session,
    description: str,
    unit_price_cents: int,
    item_type: str = "service",
    quantity: int = 1,
    expected_version: Optional[int] = None,
) -> models.TransactionItem:
    txn = _load_open(transaction_id, db, expected_version)
    line = totals.build_item(description, unit_price_cents, item_type, quantity)

    position = max((i.position for i in txn.items), default=-1) + 1
    item = models.TransactionItem(
        position=position,
        description=line.description,
        type=line.type,
        quantity=line.quantity,
        unit_price_cents=line.unit_price_cents,
        total_cents=line.total_cents,
    )
    txn.items.append(item)
    _recalculate(txn)
    _commit(txn, db)
    db.refresh(item)
    return item


def _find_item(txn: models.Transaction, item_id: str) -> models.TransactionItem:
    for item in txn.items:
        if item.id == item_id:
            return item
    raise NotFoundError(f"Item {item_id} not found on transaction {txn.id}")


def remove_item(
    transaction_id: str,
    item_id: str,
    db: Session,
    expected_version: Optional[int] = None,
) -> models.Transaction:
    txn = _load_open(transaction_id, db, expected_version)
    txn.items.remove(_find_item(txn, item_id))
    _recalculate(txn)
    return _commit(txn, db)


def update_quantity(
    transaction_id: str,
    item_id: str,
    quantity: int,
    db: Session,
    expected_version: Optional[int] = None,
) -> models.Transaction:
    """Change a line's quantity. Anything below 1 is ignored."""
    txn = _load_open(transaction_id, db, expected_version)
    item = _find_item(txn, item_id)

    if quantity < 1:
        return txn
    if item.type == totals.DISCOUNT:
        raise ValidationError("Discount lines are always quantity 1")

    item.quantity = quantity
    item.total_cents = totals.line_total(item.unit_price_cents, quantity)
    _recalculate(txn)
    return _commit(txn, db)


def set_tip(
    transaction_id: str,
    db: Session,
    kind: str,
    percentage: Optional[float] = None,
    custom: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> models.Transaction:
    """Presets apply to the post-discount subtotal."""
    txn = _load_open(transaction_id, db, expected_version)
    _recalculate(txn)
    base = max(txn.subtotal_cents - txn.discount_cents, 0)
    txn.tip_cents = totals.resolve_tip(kind, base, percentage, custom)
    _recalculate(txn)
    return _commit(txn, db)


def set_payments(
    transaction_id: str,
    db: Session,
    mode: str,
    allocations: Sequence[PaymentAllocation],
    expected_version: Optional[int] = None,
) -> models.Transaction:
    """Replace the payment allocations of an open transaction."""
    txn = _load_open(transaction_id, db, expected_version)
    _recalculate(txn)
    allocated = allocation.allocate(mode, allocations, txn.total_cents)

    txn.payment_mode = mode
    txn.payments.clear()
    for position, a in enumerate(allocated):
        txn.payments.append(models.TransactionPayment(
            position=position,
            method=a.method,
            amount_cents=a.amount_cents,
            card_last4=a.card_last4,
            card_brand=a.card_brand,
            provider_ref=a.provider_ref,
            status="pending",
            refunded_cents=0,
        ))
    return _commit(txn, db)


def split_payments_evenly(
    transaction_id: str,
    db: Session,
    expected_version: Optional[int] = None,
) -> models.Transaction:
    txn = _load_open(transaction_id, db, expected_version)
    if not txn.payments:
        raise ValidationError("No payments to split")
    _recalculate(txn)
    current = [PaymentAllocation(p.method, p.amount_cents) for p in txn.payments]
    split = allocation.split_evenly(current, txn.total_cents)
    if any(a.amount_cents <= 0 for a in split):
        raise ValidationError("Total is too small to split across that many payments")
    for payment, a in zip(txn.payments, split):
        payment.amount_cents = a.amount_cents
    return _commit(txn, db)


def compute_totals(txn: models.Transaction) -> totals.Totals:
    """Stored totals of a transaction. Read only."""
    return totals.Totals(
        subtotal_cents=txn.subtotal_cents,
        discount_cents=txn.discount_cents,
        tax_cents=txn.tax_cents,
        tip_cents=txn.tip_cents,
        total_cents=txn.total_cents,
    )


# ---------------------------------------------------------------------------
# Finalization
# ---------------------------------------------------------------------------

def finalize_transaction(
    transaction_id: str,
    db: Session,
    expected_version: Optional[int] = None,
) -> models.Transaction:
    """
    Persist an open transaction as a completed sale.

    Raises:
        NotFoundError: unknown transaction
        InvalidStateError: already finalized
        ConflictError: version mismatch
        ValidationError: no items, payments not balanced, card payment
            without a processor reference
    """
    txn = _load_open(transaction_id, db, expected_version)
    _recalculate(txn)

    if not txn.items:
        raise ValidationError("Cannot finalize a transaction with no items")

    amounts = [p.amount_cents for p in txn.payments]
    if not allocation.is_balanced(txn.total_cents, amounts):
        left = allocation.remaining(txn.total_cents, amounts)
        raise ValidationError(f"Payments do not balance the total (remaining: {format_cents(left)})")

    for payment in txn.payments:
        if payment.amount_cents <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        if payment.method == "card" and not payment.provider_ref:
            raise ValidationError("Card payment has no confirmed payment intent")

    now = models.utcnow()
    for payment in txn.payments:
        payment.status = "completed"
        payment.processed_at = now

    txn.receipt_number = generate_receipt_number(now)
    txn.status = "completed"
    txn.finalized_at = now

    if txn.tip_cents > 0 and txn.assigned_employee_id:
        db.add(models.TipAllocation(
            transaction_id=txn.id,
            employee_id=txn.assigned_employee_id,
            amount_cents=txn.tip_cents,
            status="pending",
        ))

    _commit(txn, db)
    logger.info(
        f"Finalized {txn.id} as {txn.receipt_number}: total {format_cents(txn.total_cents)} "
        f"over {len(txn.payments)} payment(s)"
    )
    return txn


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

def list_transactions(
    db: Session,
    status: Optional[str] = None,
    transaction_type: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
) -> List[models.Transaction]:
    query = db.query(models.Transaction)

    if status:
        query = query.filter(models.Transaction.status == status)
    if transaction_type:
        query = query.filter(models.Transaction.type == transaction_type)
    if start:
        query = query.filter(models.Transaction.created_at >= start)
    if end:
        query = query.filter(models.Transaction.created_at <= end)

    return query.order_by(models.Transaction.created_at.desc()).limit(limit).all()


@dataclass(frozen=True)
class RevenueSummary:
    transaction_count: int
    revenue_cents: int
    tips_cents: int
    refunded_cents: int


def revenue_summary(transactions: Sequence[models.Transaction]) -> RevenueSummary:
    """Revenue and tips over sales that still hold money; refunds over all."""
    earning = [t for t in transactions if t.status in REVENUE_STATUSES]
    return RevenueSummary(
        transaction_count=len(earning),
        revenue_cents=sum(t.total_cents for t in earning),
        tips_cents=sum(t.tip_cents for t in earning),
        refunded_cents=sum(t.refunded_cents for t in transactions),
    )
