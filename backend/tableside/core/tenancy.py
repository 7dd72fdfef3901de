"""Tenant context and role checks.

Identity is issued elsewhere; a valid bearer token carries ``sub`` (user id),
``tenant_id`` (restaurant account) and ``role``. Every core operation receives
the resulting :class:`TenantContext` explicitly.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from tableside.core.security import decode_access_token


class UserRole(str, Enum):
    """Staff roles within a tenant."""

    OWNER = "owner"
    MANAGER = "manager"
    WAITER = "waiter"
    KITCHEN = "kitchen"
    DRIVER = "driver"


# Owners and managers may act in every view
SUPERVISOR_ROLES = {UserRole.OWNER, UserRole.MANAGER}


@dataclass(frozen=True)
class TenantContext:
    """Who is acting, and for which restaurant."""

    tenant_id: str
    user_id: str
    role: UserRole
    name: str = ""


def context_from_payload(payload: Optional[dict]) -> Optional[TenantContext]:
    """Build a context from a decoded token, or None when claims are missing."""
    if not payload:
        return None
    user_id = payload.get("sub")
    tenant_id = payload.get("tenant_id")
    role = payload.get("role")
    if not user_id or not tenant_id or not role:
        return None
    try:
        user_role = UserRole(role)
    except ValueError:
        return None
    return TenantContext(
        tenant_id=str(tenant_id),
        user_id=str(user_id),
        role=user_role,
        name=payload.get("name", "") or "",
    )


async def get_tenant_context(request: Request) -> TenantContext:
    """Get the tenant context from the bearer token.

    Checks in order:
    1. Authorization: Bearer <token> header
    2. access_token cookie
    """
    payload = None

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None:
        cookie_token = request.cookies.get("access_token")
        if cookie_token:
            payload = decode_access_token(cookie_token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    ctx = context_from_payload(payload)
    if ctx is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )
    return ctx


def require_role(*allowed: UserRole):
    """Dependency allowing the given roles plus owners and managers."""
    permitted = set(allowed) | SUPERVISOR_ROLES

    async def role_checker(
        ctx: Annotated[TenantContext, Depends(get_tenant_context)]
    ) -> TenantContext:
        if ctx.role not in permitted:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{ctx.role.value}' may not perform this action",
            )
        return ctx

    return role_checker


# Common role dependencies
CurrentTenant = Annotated[TenantContext, Depends(get_tenant_context)]
RequireWaiter = Annotated[TenantContext, Depends(require_role(UserRole.WAITER))]
RequireKitchen = Annotated[TenantContext, Depends(require_role(UserRole.KITCHEN))]
RequireFloorStaff = Annotated[
    TenantContext, Depends(require_role(UserRole.WAITER, UserRole.KITCHEN))
]
RequireDriver = Annotated[TenantContext, Depends(require_role(UserRole.DRIVER))]
RequireManager = Annotated[TenantContext, Depends(require_role())]
