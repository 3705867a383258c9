from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from pos_ledger.access import SessionContext
from pos_ledger.config import get_settings
from pos_ledger.database import get_db
from pos_ledger.dependencies import require_access
from pos_ledger.exceptions import LedgerError
from pos_ledger.money import from_cents, to_cents
from pos_ledger.routers.errors import http_error
from pos_ledger.schemas.requests import (
    AddItemRequest,
    OpenTransactionRequest,
    SetPaymentsRequest,
    SetTipRequest,
    UpdateQuantityRequest,
    VersionedRequest,
)
from pos_ledger.schemas.responses import (
    ReceiptResponse,
    SummaryResponse,
    TotalsResponse,
    TransactionList,
    TransactionResponse,
)
from pos_ledger.services import ledger
from pos_ledger.services.allocation import PaymentAllocation
from pos_ledger.services.receipt import format_receipt_text, render_receipt

router = APIRouter()

pos_access = require_access("pos/transactions")


def _cents(amount: float) -> int:
    try:
        return to_cents(amount)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("", response_model=TransactionResponse, status_code=201)
def open_transaction(
    request: OpenTransactionRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    """Start an open transaction; items and payments are added next."""
    try:
        txn = ledger.open_transaction(
            ctx,
            db,
            transaction_type=request.type,
            booking_id=request.booking_id,
            client_id=request.client_id,
            assigned_employee_id=request.assigned_employee_id,
            notes=request.notes,
        )
    except LedgerError as e:
        raise http_error(e)
    return TransactionResponse.from_model(txn)


@router.get("", response_model=TransactionList)
def list_transactions(
    status: Optional[str] = Query(default=None),
    type: Optional[str] = Query(default=None),
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    txns = ledger.list_transactions(db, status=status, transaction_type=type, start=start, end=end, limit=limit)
    return TransactionList(
        count=len(txns),
        transactions=[TransactionResponse.from_model(t) for t in txns],
    )


@router.get("/summary", response_model=SummaryResponse)
def summary(
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    """
    Revenue and tips over completed and partially refunded sales in the
    window, plus everything refunded.
    """
    txns = ledger.list_transactions(db, start=start, end=end, limit=10000)
    result = ledger.revenue_summary(txns)
    return SummaryResponse(
        transaction_count=result.transaction_count,
        total_revenue=from_cents(result.revenue_cents),
        total_tips=from_cents(result.tips_cents),
        total_refunded=from_cents(result.refunded_cents),
    )


@router.get("/by-receipt/{receipt_number}", response_model=TransactionResponse)
def get_by_receipt(
    receipt_number: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    try:
        txn = ledger.get_by_receipt_number(receipt_number, db)
    except LedgerError as e:
        raise http_error(e)
    return TransactionResponse.from_model(txn)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    try:
        txn = ledger.get_transaction(transaction_id, db)
    except LedgerError as e:
        raise http_error(e)
    return TransactionResponse.from_model(txn)


@router.get("/{transaction_id}/totals", response_model=TotalsResponse)
def get_totals(
    transaction_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    """Stored totals plus how much of the total the payments cover."""
    try:
        txn = ledger.get_transaction(transaction_id, db)
    except LedgerError as e:
        raise http_error(e)
    paid = sum(p.amount_cents for p in txn.payments)
    return TotalsResponse.build(ledger.compute_totals(txn), paid)


@router.post("/{transaction_id}/items", response_model=TransactionResponse, status_code=201)
def add_item(
    transaction_id: str,
    request: AddItemRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    try:
        ledger.add_item(
            transaction_id,
            db,
            description=request.description,
            unit_price_cents=_cents(request.unit_price),
            item_type=request.type,
            quantity=request.quantity,
            expected_version=request.expected_version,
        )
        txn = ledger.get_transaction(transaction_id, db)
    except LedgerError as e:
        raise http_error(e)
    return TransactionResponse.from_model(txn)


@router.patch("/{transaction_id}/items/{item_id}", response_model=TransactionResponse)
def update_quantity(
    transaction_id: str,
    item_id: str,
    request: UpdateQuantityRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    """Quantities below 1 are ignored and the transaction comes back unchanged."""
    try:
        txn = ledger.update_quantity(
            transaction_id, item_id, request.quantity, db,
            expected_version=request.expected_version,
        )
    except LedgerError as e:
        raise http_error(e)
    return TransactionResponse.from_model(txn)


@router.delete("/{transaction_id}/items/{item_id}", response_model=TransactionResponse)
def remove_item(
    transaction_id: str,
    item_id: str,
    expected_version: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    try:
        txn = ledger.remove_item(transaction_id, item_id, db, expected_version=expected_version)
    except LedgerError as e:
        raise http_error(e)
    return TransactionResponse.from_model(txn)


@router.put("/{transaction_id}/tip", response_model=TransactionResponse)
def set_tip(
    transaction_id: str,
    request: SetTipRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    """
    - kind="none": no tip
    - kind="preset": percentage of 0.15 / 0.20 / 0.25 of the discounted subtotal
    - kind="custom": free text amount; unparsable text means no tip
    """
    try:
        txn = ledger.set_tip(
            transaction_id,
            db,
            kind=request.kind,
            percentage=request.percentage,
            custom=request.custom,
            expected_version=request.expected_version,
        )
    except LedgerError as e:
        raise http_error(e)
    return TransactionResponse.from_model(txn)


@router.put("/{transaction_id}/payments", response_model=TransactionResponse)
def set_payments(
    transaction_id: str,
    request: SetPaymentsRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    """
    Replace the payment allocations.

    In single mode only the first payment is kept and its amount is the
    transaction total. In split mode amounts are taken as given.
    """
    allocations = [
        PaymentAllocation(
            method=p.method,
            amount_cents=_cents(p.amount),
            card_last4=p.card_last4,
            card_brand=p.card_brand,
            provider_ref=p.provider_ref,
        )
        for p in request.payments
    ]
    try:
        txn = ledger.set_payments(
            transaction_id, db,
            mode=request.mode,
            allocations=allocations,
            expected_version=request.expected_version,
        )
    except LedgerError as e:
        raise http_error(e)
    return TransactionResponse.from_model(txn)


@router.post("/{transaction_id}/payments/split-evenly", response_model=TransactionResponse)
def split_evenly(
    transaction_id: str,
    request: VersionedRequest = VersionedRequest(),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    try:
        txn = ledger.split_payments_evenly(transaction_id, db, expected_version=request.expected_version)
    except LedgerError as e:
        raise http_error(e)
    return TransactionResponse.from_model(txn)


@router.post("/{transaction_id}/finalize", response_model=TransactionResponse)
def finalize(
    transaction_id: str,
    request: VersionedRequest = VersionedRequest(),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    """
    Complete the sale once payments balance the total.

    - 422 if payments do not balance, there are no items, or a card
      payment has no processor reference
    - 409 if the transaction is already finalized or the version is stale
    """
    try:
        txn = ledger.finalize_transaction(transaction_id, db, expected_version=request.expected_version)
    except LedgerError as e:
        raise http_error(e)
    return TransactionResponse.from_model(txn)


@router.get("/{transaction_id}/receipt")
def get_receipt(
    transaction_id: str,
    format: str = Query(default="json", pattern="^(json|text)$"),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(pos_access),
):
    try:
        txn = ledger.get_transaction(transaction_id, db)
        receipt = render_receipt(txn, business_name=get_settings().receipt_business_name)
    except LedgerError as e:
        raise http_error(e)

    if format == "text":
        return PlainTextResponse(format_receipt_text(receipt))
    return ReceiptResponse.from_receipt(receipt)
