from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from pos_ledger.access import SessionContext
from pos_ledger.database import get_db
from pos_ledger.dependencies import require_access
from pos_ledger.exceptions import LedgerError
from pos_ledger.money import to_cents
from pos_ledger.routers.errors import http_error
from pos_ledger.schemas.requests import CreateRefundRequest
from pos_ledger.schemas.responses import PaymentResponse, RefundList, RefundResponse
from pos_ledger.services import ledger, refunds

router = APIRouter()

refund_access = require_access("pos/refunds")


@router.get("/{transaction_id}/refunds", response_model=RefundList)
def list_refunds(
    transaction_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(refund_access),
):
    """Refund history plus the payments that can still be refunded."""
    try:
        records = refunds.list_refunds(transaction_id, db)
        txn = ledger.get_transaction(transaction_id, db)
    except LedgerError as e:
        raise http_error(e)

    return RefundList(
        transaction_id=txn.id,
        transaction_status=txn.status,
        refunds=[RefundResponse.from_model(r) for r in records],
        eligible_payments=[PaymentResponse.from_model(p) for p in refunds.eligible_payments(txn)],
    )


@router.post("/{transaction_id}/refunds", response_model=RefundResponse, status_code=201)
async def create_refund(
    transaction_id: str,
    request: CreateRefundRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(refund_access),
):
    """
    Refund one payment of a finalized transaction.

    - Card payments are refunded through the payment processor first;
      nothing is recorded if the processor fails (502)
    - Cash / Venmo / Zelle refunds are recorded immediately
    - 500 with reconciliation_required=true if the processor refunded but
      the ledger could not record it; retry with the returned idempotency_key
    """
    amount_cents = None
    if request.amount is not None:
        try:
            amount_cents = to_cents(request.amount)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    try:
        refund = await refunds.create_refund(
            transaction_id,
            request.payment_id,
            db,
            refund_type=request.type,
            reason=request.reason,
            processed_by=ctx.user_id,
            amount_cents=amount_cents,
            expected_version=request.expected_version,
            idempotency_key=request.idempotency_key,
        )
        txn = ledger.get_transaction(transaction_id, db)
    except LedgerError as e:
        raise http_error(e)

    return RefundResponse.from_model(refund, transaction_status=txn.status)
