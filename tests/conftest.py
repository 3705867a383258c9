"""
Fixtures and builders shared by the ledger test modules.

Every test runs against a fresh in-memory SQLite schema; processors are
never called for real.
"""
import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from typing import Optional, Sequence, Tuple
from unittest.mock import AsyncMock

from pos_ledger.database import Base, get_db
from pos_ledger import models


# One sqlite3 connection for the whole run; an in-memory database only
# lives as long as its connection.
TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=TEST_ENGINE)

ADMIN_HEADERS = {"X-User-Id": "emp_admin", "X-User-Role": "admin"}
DESK_HEADERS = {"X-User-Id": "emp_desk", "X-User-Role": "office_desk"}
TECH_HEADERS = {"X-User-Id": "emp_tech", "X-User-Role": "detailing_tech"}


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)
    yield
    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db(reset_db):
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    """
    TestClient bound to the test session, sending admin session headers
    by default. Not entered as a context manager, so the lifespan hook
    (logging setup, on-disk table creation) never runs.
    """
    from pos_ledger.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app, headers=ADMIN_HEADERS)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Builders: plain functions, imported directly by the test modules
# ---------------------------------------------------------------------------
ItemSpec = Tuple[str, int, str, int]            # description, unit cents, type, quantity
PaymentSpec = Tuple[str, int, Optional[str]]    # method, amount cents, provider_ref


def make_txn(
    db,
    txn_id: str,
    items: Sequence[ItemSpec] = (("Full Detail", 10000, "service", 1),),
    payments: Sequence[PaymentSpec] = (("cash", 10000, None),),
    tip_cents: int = 0,
    status: str = "completed",
    payment_mode: str = "single",
    receipt_number: Optional[str] = None,
    assigned_employee_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> models.Transaction:
    """
    Insert a transaction straight into the store. Totals are derived from
    the items the same way the ledger stores them; payments are recorded
    as given, so tests can build unbalanced fixtures on purpose.
    """
    txn = models.Transaction(
        id=txn_id,
        type="walk_in_sale",
        employee_id="emp_admin",
        assigned_employee_id=assigned_employee_id,
        status=status,
        payment_mode=payment_mode,
        tip_cents=tip_cents,
        receipt_number=receipt_number or (None if status == "open" else f"RCP-20240115-{txn_id[-6:].upper()}"),
        created_at=created_at or datetime(2024, 1, 15, 10, 0, 0),
        finalized_at=None if status == "open" else datetime(2024, 1, 15, 10, 5, 0),
    )
    for position, (description, unit_cents, item_type, quantity) in enumerate(items):
        txn.items.append(models.TransactionItem(
            id=f"{txn_id}_item{position}",
            position=position,
            description=description,
            type=item_type,
            quantity=quantity,
            unit_price_cents=unit_cents,
            total_cents=unit_cents * quantity,
        ))

    subtotal = sum(i.total_cents for i in txn.items if i.type != "discount")
    discount = abs(sum(i.total_cents for i in txn.items if i.type == "discount"))
    txn.subtotal_cents = subtotal
    txn.discount_cents = discount
    txn.tax_cents = 0
    txn.total_cents = max(subtotal - discount + tip_cents, 0)

    for position, (method, amount_cents, provider_ref) in enumerate(payments):
        txn.payments.append(models.TransactionPayment(
            id=f"{txn_id}_pay{position}",
            position=position,
            method=method,
            amount_cents=amount_cents,
            provider_ref=provider_ref,
            card_last4="4242" if method == "card" else None,
            status="pending" if status == "open" else "completed",
            refunded_cents=0,
        ))

    db.add(txn)
    db.commit()
    db.refresh(txn)
    return txn


def mock_processor(raw_response, name: str = "stripe"):
    """Return an AsyncMock that simulates a processor returning raw_response."""
    m = AsyncMock()
    m.processor_name = name
    m.refund_payment = AsyncMock(return_value=raw_response)
    return m


def stripe_refund(refund_id: str = "re_123", status: str = "succeeded", amount: int = 0):
    return {
        "id": refund_id,
        "status": status,
        "amount": amount,
        "payment_intent": "pi_123",
        "currency": "usd",
    }
