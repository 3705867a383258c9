from fastapi import HTTPException

from pos_ledger.exceptions import (
    ConflictError,
    GatewayError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)


STATUS_CODES = {
    ValidationError: 422,
    NotFoundError: 404,
    InvalidStateError: 409,
    ConflictError: 409,
    GatewayError: 502,
    PersistenceError: 500,
}


def http_error(e: LedgerError) -> HTTPException:
    """Translate a ledger error to an HTTPException, keeping its message verbatim."""
    status_code = next(
        (code for cls, code in STATUS_CODES.items() if isinstance(e, cls)),
        500,
    )
    if isinstance(e, GatewayError):
        message = f"Payment processor error: {str(e)}"
        if e.idempotency_key:
            return HTTPException(status_code=status_code, detail={
                "error": message,
                "idempotency_key": e.idempotency_key,
            })
        return HTTPException(status_code=status_code, detail=message)
    if isinstance(e, PersistenceError):
        return HTTPException(status_code=status_code, detail={
            "error": str(e),
            "reconciliation_required": e.gateway_refund_id is not None,
            "gateway_refund_id": e.gateway_refund_id,
            "idempotency_key": e.idempotency_key,
        })
    return HTTPException(status_code=status_code, detail=str(e))
