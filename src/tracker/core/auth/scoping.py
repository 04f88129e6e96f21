"""Role and scope predicates over an authenticated principal.

The plain predicates return booleans; the ``ensure_*`` variants raise
so route handlers and services can call them as guards.
"""

from typing import Any

from tracker.core.auth.schemas import Principal
from tracker.core.errors import ForbiddenError, NotFoundError
from tracker.modules.users.models import Role


def require_internal(principal: Principal) -> bool:
    """Whether the principal belongs to the tenant's own staff."""
    return principal.is_internal


def require_client_admin(principal: Principal) -> bool:
    """Whether the principal administers its client organisation."""
    return principal.client_id is not None and principal.role == Role.COMPANY_ADMIN


def is_administrator(principal: Principal, platform_operator: bool = False) -> bool:
    """Whether the principal bypasses tenant-local access rules.

    Args:
        principal: The caller
        platform_operator: Whether the caller's tenant is the platform operator
    """
    return principal.role == Role.ADMIN or platform_operator


def can_access_ticket(principal: Principal, ticket: Any) -> bool:
    """Whether a principal may see a ticket already known to be in its tenant.

    Internal staff see every ticket. A client's company admin sees the
    tickets filed for that client; any other client user sees only the
    tickets they filed.
    """
    if principal.is_internal:
        return True
    if require_client_admin(principal):
        return ticket.client_id == principal.client_id
    return ticket.created_by is not None and ticket.created_by == principal.user_id


def ensure_internal(principal: Principal) -> Principal:
    if not require_internal(principal):
        raise ForbiddenError(
            "Internal access required",
            error_code="internal_only",
            details={"required": "internal"},
        )
    return principal


def ensure_ticket_access(principal: Principal, ticket: Any) -> Any:
    # Tickets outside the caller's client boundary are reported as missing
    if not can_access_ticket(principal, ticket):
        raise NotFoundError("Ticket not found", resource="ticket", resource_id=ticket.id)
    return ticket


def ensure_administrator(principal: Principal, platform_operator: bool = False) -> Principal:
    if not is_administrator(principal, platform_operator):
        raise ForbiddenError("Administrator access required", error_code="admin_only")
    return principal
