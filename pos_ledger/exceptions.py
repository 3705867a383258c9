"""Error taxonomy for the transaction ledger."""


class LedgerError(Exception):
    """Base exception for all ledger errors."""


class ValidationError(LedgerError):
    """Raised when caller input breaks a ledger rule (bad amount, empty reason...)."""


class NotFoundError(LedgerError):
    """Raised when a referenced transaction, item or payment does not exist."""


class InvalidStateError(LedgerError):
    """Raised when a transaction is in the wrong lifecycle state for the operation."""


class ConflictError(LedgerError):
    """Raised when the stored version differs from the one the caller read."""


class GatewayError(LedgerError):
    """
    Raised when the external payment processor rejects or times out.

    idempotency_key is set when the processor may still act on the call;
    retrying with it cannot refund twice.
    """

    def __init__(self, message: str, idempotency_key: str = None):
        super().__init__(message)
        self.idempotency_key = idempotency_key


class PersistenceError(LedgerError):
    """
    Raised when the store write fails after the payment processor already
    moved money. The processor reference is kept so the gap can be
    reconciled by hand.
    """

    def __init__(self, message: str, gateway_refund_id: str = None, idempotency_key: str = None):
        super().__init__(message)
        self.gateway_refund_id = gateway_refund_id
        self.idempotency_key = idempotency_key
