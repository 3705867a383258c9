"""
Refund processor.

Orchestrates:
1. Serialize refunds per transaction (one in flight at a time)
2. Replay an already-recorded idempotency key without touching the processor
3. Validate payment eligibility, reason and amount against fresh state
4. For card payments, get the processor's confirmation first
5. Record refund + payment refunded amount + transaction status in one commit

If the processor rejects nothing is written. A processor timeout also
writes nothing but hands back the idempotency key, since the call may
still go through. If the write fails after the
processor moved money, PersistenceError carries the processor's refund id
and the idempotency key; retrying with that key repeats the processor call
safely (processors dedupe on it) and completes the local write.
"""
import asyncio
import logging
import weakref
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pos_ledger import models
from pos_ledger.config import get_settings
from pos_ledger.exceptions import (
    ConflictError,
    GatewayError,
    InvalidStateError,
    PersistenceError,
    ValidationError,
)
from pos_ledger.money import format_cents
from pos_ledger.processors.stripe import StripeProcessor
from pos_ledger.services.ledger import (
    check_version,
    derive_payment_status,
    derive_transaction_status,
    get_transaction,
)
from pos_ledger.services.normalizer import normalize_refund

logger = logging.getLogger(__name__)


# Payment methods whose refunds go through an external processor.
# Cash, Venmo and Zelle are returned by hand and recorded immediately.
PROCESSOR_MAP = {
    "card": StripeProcessor(),
}

REFUND_TYPES = ("full", "partial")

# Held only while a refund on the transaction is running or waiting
_transaction_locks = weakref.WeakValueDictionary()


def _lock_for(transaction_id: str) -> asyncio.Lock:
    lock = _transaction_locks.get(transaction_id)
    if lock is None:
        lock = asyncio.Lock()
        _transaction_locks[transaction_id] = lock
    return lock


def eligible_payments(txn: models.Transaction) -> List[models.TransactionPayment]:
    """Completed payments that still have money left to refund."""
    return [
        p for p in txn.payments
        if p.status == "completed" and p.refunded_cents < p.amount_cents
    ]


def list_refunds(transaction_id: str, db: Session) -> List[models.Refund]:
    get_transaction(transaction_id, db)
    return db.query(models.Refund).filter(
        models.Refund.transaction_id == transaction_id
    ).order_by(models.Refund.created_at).all()


def _find_by_idempotency_key(key: str, db: Session) -> Optional[models.Refund]:
    return db.query(models.Refund).filter(models.Refund.idempotency_key == key).first()


def _resolve_amount(payment: models.TransactionPayment, refund_type: str, amount_cents: Optional[int]) -> int:
    refundable = payment.refundable_cents
    if refund_type == "full":
        return refundable
    if amount_cents is None or amount_cents <= 0 or amount_cents > refundable:
        raise ValidationError(
            f"Refund amount must be between $0.01 and {format_cents(refundable)}"
        )
    return amount_cents


async def _call_processor(
    payment: models.TransactionPayment,
    amount_cents: int,
    idempotency_key: str,
    reason: str,
):
    processor = PROCESSOR_MAP.get(payment.method)
    if processor is None:
        raise GatewayError(f"No processor configured for {payment.method} refunds")
    if not payment.provider_ref:
        raise ValidationError(f"Card payment {payment.id} has no processor reference to refund")

    timeout = get_settings().gateway_timeout_seconds
    try:
        raw_response = await asyncio.wait_for(
            processor.refund_payment(payment.provider_ref, amount_cents, idempotency_key, reason),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        # The processor call may still complete; only a retry with the same key is safe
        logger.error(
            f"POSSIBLE RECONCILIATION GAP: {processor.processor_name} refund for payment {payment.id} "
            f"timed out after {timeout:g}s (idempotency key {idempotency_key})"
        )
        raise GatewayError(
            f"{processor.processor_name} refund timed out after {timeout:g}s; "
            f"retry with idempotency key {idempotency_key}",
            idempotency_key=idempotency_key,
        )

    return normalize_refund(processor.processor_name, raw_response)


async def create_refund(
    transaction_id: str,
    payment_id: str,
    db: Session,
    refund_type: str,
    reason: str,
    processed_by: str,
    amount_cents: Optional[int] = None,
    expected_version: Optional[int] = None,
    idempotency_key: Optional[str] = None,
) -> models.Refund:
    """
    Refund money against one payment of a finalized transaction.

    For refund_type="full" the amount is whatever is left on the payment;
    amount_cents is ignored.

    Raises:
        NotFoundError: unknown transaction
        InvalidStateError: transaction still open
        ConflictError: version mismatch
        ValidationError: ineligible payment, empty reason, bad amount
        GatewayError: processor rejected, failed or timed out (nothing recorded)
        PersistenceError: store write failed (after the processor, if any)
    """
    async with _lock_for(transaction_id):
        # Another request may have committed while we waited for the lock
        db.expire_all()

        if idempotency_key:
            existing = _find_by_idempotency_key(idempotency_key, db)
            if existing is not None:
                if existing.transaction_id != transaction_id or existing.payment_id != payment_id:
                    raise ValidationError("Idempotency key already used for a different payment")
                logger.info(f"Refund {existing.id} replayed for idempotency key {idempotency_key}")
                return existing

        txn = get_transaction(transaction_id, db)
        check_version(txn, expected_version)
        if txn.status == "open":
            raise InvalidStateError(f"Transaction {transaction_id} has not been finalized")

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Please provide a reason for the refund")
        if refund_type not in REFUND_TYPES:
            raise ValidationError(f"Unknown refund type: {refund_type}")

        payment = next((p for p in eligible_payments(txn) if p.id == payment_id), None)
        if payment is None:
            raise ValidationError(f"Payment {payment_id} is not eligible for a refund")

        amount = _resolve_amount(payment, refund_type, amount_cents)
        refund_id = models.generate_id("ref")
        key = idempotency_key or refund_id

        refund_status = "completed"
        gateway_refund_id = None
        if payment.method in PROCESSOR_MAP:
            normalized = await _call_processor(payment, amount, key, reason)
            refund_status = normalized.refund_status
            gateway_refund_id = normalized.gateway_refund_id

        refund = models.Refund(
            id=refund_id,
            transaction_id=txn.id,
            payment_id=payment.id,
            amount_cents=amount,
            type=refund_type,
            reason=reason,
            status=refund_status,
            gateway_refund_id=gateway_refund_id,
            idempotency_key=key,
            processed_by=processed_by,
        )

        try:
            db.add(refund)
            payment.refunded_cents += amount
            payment.status = derive_payment_status(payment.status, payment.amount_cents, payment.refunded_cents)
            txn.status = derive_transaction_status(txn.status, txn.total_cents, txn.refunded_cents)
            txn.updated_at = models.utcnow()
            db.commit()
        except StaleDataError as e:
            db.rollback()
            if gateway_refund_id is None:
                raise ConflictError(f"Transaction {transaction_id} was modified concurrently; reload and retry")
            _report_gap(transaction_id, amount, gateway_refund_id, key, e)
            raise PersistenceError(
                f"Refund {gateway_refund_id} was issued but could not be recorded: transaction changed concurrently",
                gateway_refund_id=gateway_refund_id,
                idempotency_key=key,
            ) from e
        except SQLAlchemyError as e:
            db.rollback()
            if gateway_refund_id is not None:
                _report_gap(transaction_id, amount, gateway_refund_id, key, e)
            raise PersistenceError(
                f"Refund could not be recorded: {e}",
                gateway_refund_id=gateway_refund_id,
                idempotency_key=key,
            ) from e

        db.refresh(refund)
        logger.info(
            f"Refund {refund.id} ({refund_type}, {format_cents(amount)}) on payment {payment.id}; "
            f"transaction {txn.id} now {txn.status}"
        )
        return refund


def _report_gap(transaction_id: str, amount_cents: int, gateway_refund_id: str, key: str, error: Exception) -> None:
    logger.critical(
        f"RECONCILIATION REQUIRED: processor refund {gateway_refund_id} "
        f"({format_cents(amount_cents)}) for transaction {transaction_id} is not recorded locally "
        f"(idempotency key {key}): {error}"
    )
