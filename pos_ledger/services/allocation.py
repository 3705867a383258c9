"""
Payment allocator.

Two modes:
  single - exactly one payment, its amount forced to the transaction total
  split  - N >= 1 payments with caller-assigned amounts

A transaction may only be finalized once its allocations are balanced,
i.e. they sum to the total exactly (amounts are integer cents).
"""
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from pos_ledger.exceptions import ValidationError
from pos_ledger.models import PAYMENT_METHODS


SINGLE = "single"
SPLIT = "split"
PAYMENT_MODES = (SINGLE, SPLIT)


@dataclass(frozen=True)
class PaymentAllocation:
    method: str
    amount_cents: int = 0
    card_last4: Optional[str] = None
    card_brand: Optional[str] = None
    provider_ref: Optional[str] = None


def auto_distribute(total_cents: int, n: int) -> List[int]:
    """
    Split a total into n parts. The first n-1 get floor(total / n); the
    last one absorbs the remainder so the parts always sum to the total.

    auto_distribute(10000, 3) -> [3333, 3333, 3334]
    """
    if n < 1:
        raise ValidationError("At least one payment is required")
    per_payment = total_cents // n
    return [per_payment] * (n - 1) + [total_cents - per_payment * (n - 1)]


def remaining(total_cents: int, amounts: Sequence[int]) -> int:
    return total_cents - sum(amounts)


def is_balanced(total_cents: int, amounts: Sequence[int]) -> bool:
    return remaining(total_cents, amounts) == 0


def collapse_to_single(allocations: Sequence[PaymentAllocation], total_cents: int) -> List[PaymentAllocation]:
    """Leaving split mode keeps only the first payment, covering the full total."""
    if not allocations:
        return []
    return [replace(allocations[0], amount_cents=total_cents)]


def split_evenly(allocations: Sequence[PaymentAllocation], total_cents: int) -> List[PaymentAllocation]:
    amounts = auto_distribute(total_cents, len(allocations))
    return [replace(a, amount_cents=amt) for a, amt in zip(allocations, amounts)]


def _validate(allocation: PaymentAllocation) -> None:
    if allocation.method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {allocation.method}")
    if allocation.amount_cents <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    if allocation.card_last4 is not None:
        if allocation.method != "card":
            raise ValidationError("Only card payments carry a card suffix")
        if len(allocation.card_last4) != 4 or not allocation.card_last4.isdigit():
            raise ValidationError("card_last4 must be exactly 4 digits")


def allocate(mode: str, allocations: Sequence[PaymentAllocation], total_cents: int) -> List[PaymentAllocation]:
    """
    Apply the mode rules to a caller's allocation list.

    Raises:
        ValidationError: unknown mode/method, empty list, non-positive amount
    """
    if mode not in PAYMENT_MODES:
        raise ValidationError(f"Unknown payment mode: {mode}")
    if not allocations:
        raise ValidationError("At least one payment is required")

    if mode == SINGLE:
        allocations = collapse_to_single(allocations, total_cents)

    for allocation in allocations:
        _validate(allocation)
    return list(allocations)
