"""
Request-scoped session context for FastAPI.

Identity is established upstream; requests carry the caller as
X-User-Id / X-User-Role headers and every handler receives an explicit
SessionContext instead of reading ambient auth state.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from pos_ledger.access import ROLES, SessionContext, can_access


def get_session_context(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> SessionContext:
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session headers",
        )
    if x_user_role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {x_user_role}",
        )
    return SessionContext(user_id=x_user_id, role=x_user_role)


def require_access(resource: str):
    """Dependency factory: 403 unless the caller's role can reach `resource`."""

    def guard(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
        if not can_access(ctx.role, resource):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{ctx.role}' cannot access {resource}",
            )
        return ctx

    return guard
