from typing import List, Literal, Optional

from pydantic import BaseModel, field_validator


class OpenTransactionRequest(BaseModel):
    type: Literal["booking_checkout", "walk_in_sale"] = "walk_in_sale"
    booking_id: Optional[str] = None
    client_id: Optional[str] = None
    assigned_employee_id: Optional[str] = None
    notes: Optional[str] = None


class AddItemRequest(BaseModel):
    description: str
    unit_price: float
    type: Literal["service", "addon", "product", "discount"] = "service"
    quantity: int = 1
    expected_version: Optional[int] = None


class UpdateQuantityRequest(BaseModel):
    quantity: int
    expected_version: Optional[int] = None


class SetTipRequest(BaseModel):
    kind: Literal["none", "preset", "custom"]
    percentage: Optional[float] = None  # 0.15 / 0.20 / 0.25 for presets
    custom: Optional[str] = None        # raw text entry for custom tips
    expected_version: Optional[int] = None


class PaymentIn(BaseModel):
    method: Literal["card", "cash", "venmo", "zelle"]
    amount: float = 0.0  # ignored in single mode
    card_last4: Optional[str] = None
    card_brand: Optional[str] = None
    provider_ref: Optional[str] = None


class SetPaymentsRequest(BaseModel):
    mode: Literal["single", "split"] = "single"
    payments: List[PaymentIn]
    expected_version: Optional[int] = None

    @field_validator("payments")
    @classmethod
    def validate_payments(cls, v):
        if not v:
            raise ValueError("payments cannot be empty")
        if len(v) > 10:
            raise ValueError("Maximum 10 payments per transaction")
        return v


class VersionedRequest(BaseModel):
    expected_version: Optional[int] = None


class CreateRefundRequest(BaseModel):
    payment_id: str
    type: Literal["full", "partial"] = "full"
    amount: Optional[float] = None  # required for partial refunds
    reason: str
    expected_version: Optional[int] = None
    idempotency_key: Optional[str] = None
