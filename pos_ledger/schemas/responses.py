from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from pos_ledger import models
from pos_ledger.money import from_cents
from pos_ledger.services.receipt import Receipt
from pos_ledger.services.totals import Totals


class ItemResponse(BaseModel):
    id: str
    description: str
    type: str
    quantity: int
    unit_price: float
    total: float

    @classmethod
    def from_model(cls, item: models.TransactionItem) -> "ItemResponse":
        return cls(
            id=item.id,
            description=item.description,
            type=item.type,
            quantity=item.quantity,
            unit_price=from_cents(item.unit_price_cents),
            total=from_cents(item.total_cents),
        )


class PaymentResponse(BaseModel):
    id: str
    method: str
    amount: float
    status: str
    card_last4: Optional[str] = None
    card_brand: Optional[str] = None
    provider_ref: Optional[str] = None
    refunded_amount: float
    processed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, payment: models.TransactionPayment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            method=payment.method,
            amount=from_cents(payment.amount_cents),
            status=payment.status,
            card_last4=payment.card_last4,
            card_brand=payment.card_brand,
            provider_ref=payment.provider_ref,
            refunded_amount=from_cents(payment.refunded_cents),
            processed_at=payment.processed_at,
        )


class TotalsResponse(BaseModel):
    subtotal: float
    discount: float
    tax: float
    tip: float
    total: float
    paid: float
    remaining: float
    balanced: bool

    @classmethod
    def build(cls, totals: Totals, paid_cents: int) -> "TotalsResponse":
        return cls(
            subtotal=from_cents(totals.subtotal_cents),
            discount=from_cents(totals.discount_cents),
            tax=from_cents(totals.tax_cents),
            tip=from_cents(totals.tip_cents),
            total=from_cents(totals.total_cents),
            paid=from_cents(paid_cents),
            remaining=from_cents(totals.total_cents - paid_cents),
            balanced=totals.total_cents == paid_cents,
        )


class TransactionResponse(BaseModel):
    id: str
    receipt_number: Optional[str] = None
    type: str
    status: str
    version: int
    booking_id: Optional[str] = None
    client_id: Optional[str] = None
    employee_id: str
    assigned_employee_id: Optional[str] = None
    notes: Optional[str] = None
    payment_mode: str
    items: List[ItemResponse]
    payments: List[PaymentResponse]
    subtotal: float
    discount: float
    tax: float
    tip: float
    total: float
    refunded_amount: float
    created_at: datetime
    updated_at: datetime
    finalized_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, txn: models.Transaction) -> "TransactionResponse":
        return cls(
            id=txn.id,
            receipt_number=txn.receipt_number,
            type=txn.type,
            status=txn.status,
            version=txn.version,
            booking_id=txn.booking_id,
            client_id=txn.client_id,
            employee_id=txn.employee_id,
            assigned_employee_id=txn.assigned_employee_id,
            notes=txn.notes,
            payment_mode=txn.payment_mode,
            items=[ItemResponse.from_model(i) for i in txn.items],
            payments=[PaymentResponse.from_model(p) for p in txn.payments],
            subtotal=from_cents(txn.subtotal_cents),
            discount=from_cents(txn.discount_cents),
            tax=from_cents(txn.tax_cents),
            tip=from_cents(txn.tip_cents),
            total=from_cents(txn.total_cents),
            refunded_amount=from_cents(txn.refunded_cents),
            created_at=txn.created_at,
            updated_at=txn.updated_at,
            finalized_at=txn.finalized_at,
        )


class TransactionList(BaseModel):
    count: int
    transactions: List[TransactionResponse]


class SummaryResponse(BaseModel):
    transaction_count: int
    total_revenue: float
    total_tips: float
    total_refunded: float


class RefundResponse(BaseModel):
    id: str
    transaction_id: str
    payment_id: str
    amount: float
    type: str
    reason: str
    status: str
    gateway_refund_id: Optional[str] = None
    idempotency_key: Optional[str] = None
    processed_by: str
    created_at: datetime
    transaction_status: Optional[str] = None

    @classmethod
    def from_model(cls, refund: models.Refund, transaction_status: str = None) -> "RefundResponse":
        return cls(
            id=refund.id,
            transaction_id=refund.transaction_id,
            payment_id=refund.payment_id,
            amount=from_cents(refund.amount_cents),
            type=refund.type,
            reason=refund.reason,
            status=refund.status,
            gateway_refund_id=refund.gateway_refund_id,
            idempotency_key=refund.idempotency_key,
            processed_by=refund.processed_by,
            created_at=refund.created_at,
            transaction_status=transaction_status,
        )


class RefundList(BaseModel):
    transaction_id: str
    transaction_status: str
    refunds: List[RefundResponse]
    eligible_payments: List[PaymentResponse]


class ReceiptLineResponse(BaseModel):
    description: str
    type: str
    quantity: int
    unit_price: float
    total: float


class ReceiptPaymentResponse(BaseModel):
    method: str
    amount: float
    card: Optional[str] = None
    refunded_amount: float


class ReceiptResponse(BaseModel):
    business_name: str
    receipt_number: str
    transaction_id: str
    status: str
    issued_at: Optional[datetime] = None
    items: List[ReceiptLineResponse]
    subtotal: float
    discount: float
    tax: float
    tip: float
    total: float
    payments: List[ReceiptPaymentResponse]

    @classmethod
    def from_receipt(cls, receipt: Receipt) -> "ReceiptResponse":
        return cls(
            business_name=receipt.business_name,
            receipt_number=receipt.receipt_number,
            transaction_id=receipt.transaction_id,
            status=receipt.status,
            issued_at=receipt.issued_at,
            items=[
                ReceiptLineResponse(
                    description=line.description,
                    type=line.type,
                    quantity=line.quantity,
                    unit_price=from_cents(line.unit_price_cents),
                    total=from_cents(line.total_cents),
                )
                for line in receipt.lines
            ],
            subtotal=from_cents(receipt.subtotal_cents),
            discount=from_cents(receipt.discount_cents),
            tax=from_cents(receipt.tax_cents),
            tip=from_cents(receipt.tip_cents),
            total=from_cents(receipt.total_cents),
            payments=[
                ReceiptPaymentResponse(
                    method=p.method,
                    amount=from_cents(p.amount_cents),
                    card=p.card,
                    refunded_amount=from_cents(p.refunded_cents),
                )
                for p in receipt.payments
            ],
        )
