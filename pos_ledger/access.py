"""
Role-based access to ledger resources.

Callers pass an explicit SessionContext; route guards reduce to the pure
function can_access(role, resource).
"""
from dataclasses import dataclass
from typing import Optional


ROLES = ("admin", "office_desk", "sales_rep", "detailing_tech", "affiliate", "client")

ROLE_PERMISSIONS = {
    "admin": ("pos",),
    "office_desk": ("pos",),
    "sales_rep": (),
    "detailing_tech": (),
    "affiliate": (),
    "client": (),
}


@dataclass(frozen=True)
class SessionContext:
    user_id: str
    role: str


def can_access(role: Optional[str], resource: str) -> bool:
    """A role reaches a resource it is granted or any sub-resource of one."""
    if not role:
        return False
    allowed = ROLE_PERMISSIONS.get(role, ())
    return any(resource == path or resource.startswith(path + "/") for path in allowed)
