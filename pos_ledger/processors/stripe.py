"""
Stripe refunds for card payments.
"""
import asyncio
import logging
from typing import Dict, Any, Optional

import stripe

from pos_ledger.config import get_settings
from pos_ledger.exceptions import GatewayError
from pos_ledger.processors.base import BaseProcessor

logger = logging.getLogger(__name__)


class StripeProcessor(BaseProcessor):
    """
    Stripe gateway.
    Refund target: payment intent id (stored as provider_ref)
    Status values: succeeded / pending / requires_action / failed / canceled
    Amounts: integer minor units
    """

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key

    @property
    def processor_name(self) -> str:
        return "stripe"

    def _client(self) -> stripe.StripeClient:
        api_key = self._api_key or get_settings().stripe_secret_key
        if not api_key:
            raise GatewayError("Stripe is not configured (missing STRIPE_SECRET_KEY)")
        return stripe.StripeClient(api_key)

    async def refund_payment(
        self,
        provider_ref: str,
        amount_cents: int,
        idempotency_key: str,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        client = self._client()
        params = {
            "payment_intent": provider_ref,
            "amount": amount_cents,
            "reason": "requested_by_customer",
            "metadata": {"ledger_refund_id": idempotency_key, "note": (reason or "")[:500]},
        }

        try:
            # stripe-python is synchronous; keep the event loop free
            refund = await asyncio.to_thread(
                client.refunds.create,
                params=params,
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            logger.warning(f"Stripe refund failed for {provider_ref}: {e.user_message or e}")
            raise GatewayError(f"Stripe refund failed: {e.user_message or str(e)}")

        logger.info(f"Stripe refund {refund.id} for {provider_ref}: {refund.status}")
        return {
            "id": refund.id,
            "status": refund.status,
            "amount": refund.amount,
            "payment_intent": provider_ref,
            "currency": refund.currency,
        }
