"""
Normalizes raw processor refund responses to the ledger's refund status.

Processors use their own status vocabularies. The ledger only needs to
know whether the processor accepted the refund (money is moving and the
refund is recorded) or rejected it (nothing is recorded).
"""
from typing import Dict, Any, Optional

from pos_ledger.exceptions import GatewayError


# Processor status -> ledger refund status; None means rejected
NORMALIZED_REFUND_STATES = {
    # Stripe
    "succeeded": "completed",
    "pending": "pending",
    "requires_action": "pending",
    "failed": None,
    "canceled": None,
}

STATUS_FIELD_MAP = {
    "stripe": "status",
}

REFERENCE_FIELD_MAP = {
    "stripe": "id",
}


class NormalizedRefund:
    def __init__(
        self,
        refund_status: str,
        gateway_refund_id: Optional[str],
        raw_response: Dict[str, Any],
    ):
        self.refund_status = refund_status
        self.gateway_refund_id = gateway_refund_id
        self.raw_response = raw_response


def normalize_refund(processor_name: str, raw_response: Dict[str, Any]) -> NormalizedRefund:
    """
    Map a processor's raw refund response to a NormalizedRefund.

    Raises:
        ValueError: unknown processor
        GatewayError: the processor reports the refund as failed, canceled,
            or with a status we do not recognize
    """
    status_field = STATUS_FIELD_MAP.get(processor_name)
    if not status_field:
        raise ValueError(f"Unknown processor: {processor_name}")

    raw_status = raw_response.get(status_field, "")
    refund_status = NORMALIZED_REFUND_STATES.get(raw_status)
    if refund_status is None:
        raise GatewayError(f"{processor_name} refund not accepted (status: {raw_status or 'missing'})")

    return NormalizedRefund(
        refund_status=refund_status,
        gateway_refund_id=raw_response.get(REFERENCE_FIELD_MAP[processor_name]),
        raw_response=raw_response,
    )
