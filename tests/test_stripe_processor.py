"""
Tests for pos_ledger/processors/stripe.py with the Stripe client mocked.
"""
import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import stripe

from pos_ledger.exceptions import GatewayError
from pos_ledger.processors import stripe as stripe_module
from pos_ledger.processors.stripe import StripeProcessor


def fake_client(refund=None, error=None):
    client = MagicMock()
    if error is not None:
        client.refunds.create.side_effect = error
    else:
        client.refunds.create.return_value = refund
    return client


class TestStripeProcessor:
    async def test_refund_payload(self):
        refund = SimpleNamespace(id="re_1", status="succeeded", amount=2500, currency="usd")
        client = fake_client(refund)

        with patch.object(stripe_module.stripe, "StripeClient", return_value=client) as ctor:
            result = await StripeProcessor(api_key="sk_test_123").refund_payment(
                "pi_123", 2500, "key_1", "Scratched bumper"
            )

        ctor.assert_called_once_with("sk_test_123")
        kwargs = client.refunds.create.call_args.kwargs
        assert kwargs["params"]["payment_intent"] == "pi_123"
        assert kwargs["params"]["amount"] == 2500
        assert kwargs["params"]["metadata"]["ledger_refund_id"] == "key_1"
        assert kwargs["options"] == {"idempotency_key": "key_1"}
        assert result == {
            "id": "re_1",
            "status": "succeeded",
            "amount": 2500,
            "payment_intent": "pi_123",
            "currency": "usd",
        }

    async def test_stripe_error_becomes_gateway_error(self):
        client = fake_client(error=stripe.StripeError("charge already refunded"))

        with patch.object(stripe_module.stripe, "StripeClient", return_value=client):
            with pytest.raises(GatewayError, match="charge already refunded"):
                await StripeProcessor(api_key="sk_test_123").refund_payment("pi_123", 100, "key_1")

    async def test_missing_key(self):
        with patch.object(stripe_module, "get_settings") as settings:
            settings.return_value.stripe_secret_key = ""
            with pytest.raises(GatewayError, match="not configured"):
                await StripeProcessor().refund_payment("pi_123", 100, "key_1")

    def test_processor_name(self):
        assert StripeProcessor().processor_name == "stripe"
