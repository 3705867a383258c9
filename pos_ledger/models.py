from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from pos_ledger.database import Base


def generate_id(prefix: str = "txn"):
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


ITEM_TYPES = ("service", "addon", "product", "discount")
PAYMENT_METHODS = ("card", "cash", "venmo", "zelle")
TRANSACTION_TYPES = ("booking_checkout", "walk_in_sale")
TRANSACTION_STATUSES = ("open", "completed", "partially_refunded", "fully_refunded")


class Transaction(Base):
    """A point-of-sale transaction: items, totals, payments and refunds."""

    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=lambda: generate_id("txn"))
    receipt_number = Column(String, nullable=True, unique=True, index=True)
    type = Column(String, nullable=False, default="walk_in_sale")
    booking_id = Column(String, nullable=True, index=True)
    client_id = Column(String, nullable=True, index=True)
    employee_id = Column(String, nullable=False)
    assigned_employee_id = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    subtotal_cents = Column(Integer, nullable=False, default=0)
    discount_cents = Column(Integer, nullable=False, default=0)
    tax_cents = Column(Integer, nullable=False, default=0)
    tip_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)

    status = Column(String, nullable=False, default="open", index=True)
    payment_mode = Column(String, nullable=False, default="single")
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    finalized_at = Column(DateTime, nullable=True)

    items = relationship(
        "TransactionItem",
        order_by="TransactionItem.position",
        cascade="all, delete-orphan",
        back_populates="transaction",
    )
    payments = relationship(
        "TransactionPayment",
        order_by="TransactionPayment.position",
        cascade="all, delete-orphan",
        back_populates="transaction",
    )
    refunds = relationship(
        "Refund",
        order_by="Refund.created_at",
        back_populates="transaction",
    )

    # Every flush bumps `version` and checks the previous value in the
    # UPDATE's WHERE clause; a concurrent writer gets StaleDataError.
    __mapper_args__ = {"version_id_col": version}

    @property
    def refunded_cents(self) -> int:
        return sum(p.refunded_cents for p in self.payments)


class TransactionItem(Base):
    __tablename__ = "transaction_items"

    id = Column(String, primary_key=True, default=lambda: generate_id("item"))
    transaction_id = Column(String, ForeignKey("transactions.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String, nullable=False)
    type = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price_cents = Column(Integer, nullable=False)
    total_cents = Column(Integer, nullable=False)

    transaction = relationship("Transaction", back_populates="items")


class TransactionPayment(Base):
    __tablename__ = "transaction_payments"

    id = Column(String, primary_key=True, default=lambda: generate_id("pay"))
    transaction_id = Column(String, ForeignKey("transactions.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    method = Column(String, nullable=False)
    amount_cents = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending")
    card_last4 = Column(String(4), nullable=True)
    card_brand = Column(String, nullable=True)
    provider_ref = Column(String, nullable=True)  # Stripe payment intent id
    refunded_cents = Column(Integer, nullable=False, default=0)
    processed_at = Column(DateTime, nullable=True)

    transaction = relationship("Transaction", back_populates="payments")

    @property
    def refundable_cents(self) -> int:
        return self.amount_cents - self.refunded_cents


class Refund(Base):
    """Append-only record of money returned against one payment."""

    __tablename__ = "refunds"

    id = Column(String, primary_key=True, default=lambda: generate_id("ref"))
    transaction_id = Column(String, ForeignKey("transactions.id"), nullable=False, index=True)
    payment_id = Column(String, ForeignKey("transaction_payments.id"), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    type = Column(String, nullable=False)  # "full" | "partial"
    reason = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="completed")
    gateway_refund_id = Column(String, nullable=True)
    idempotency_key = Column(String, nullable=True, unique=True)
    processed_by = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    transaction = relationship("Transaction", back_populates="refunds")


class TipAllocation(Base):
    __tablename__ = "tip_allocations"

    id = Column(String, primary_key=True, default=lambda: generate_id("tip"))
    transaction_id = Column(String, ForeignKey("transactions.id"), nullable=False, index=True)
    employee_id = Column(String, nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, default=utcnow)
