from abc import ABC, abstractmethod
from typing import Dict, Any, Optional


class BaseProcessor(ABC):
    """Abstract base for external payment processors that can return money."""

    @abstractmethod
    async def refund_payment(
        self,
        provider_ref: str,
        amount_cents: int,
        idempotency_key: str,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Ask the processor to refund `amount_cents` of the payment identified
        by provider_ref. The idempotency key makes a retried call safe.
        Returns the processor's raw response dict.
        Raises GatewayError when the processor rejects or cannot be reached.
        """
        pass

    @property
    @abstractmethod
    def processor_name(self) -> str:
        pass
