"""
Role-Based Access Control (RBAC) dependencies.

Roles come from the bearer token; suppliers additionally carry the vendor
they answer for.
"""
from enum import Enum
from typing import Iterable
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPAuthorizationCredentials

from vendoreval.core.security import decode_token, security


class Role(str, Enum):
    ADMIN = "admin"
    EVALUATOR = "evaluator"
    SUPPLIER = "supplier"


def _user_context(claims: dict) -> dict:
    try:
        role = Role(claims["role"])
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown role: {claims['role']}",
        )

    return {**claims, "user_id": claims["sub"], "role": role}


async def get_current_user_context(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """Get current user context including role and vendor_id."""
    return _user_context(decode_token(credentials.credentials))


class RBACChecker:
    """Dependency for checking role-based access."""

    def __init__(self, allowed_roles: Iterable[Role]):
        self.allowed_roles = frozenset(allowed_roles)

    async def __call__(
        self,
        credentials: HTTPAuthorizationCredentials = Depends(security)
    ) -> dict:
        context = _user_context(decode_token(credentials.credentials))

        if context["role"] not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions. Required: "
                + ", ".join(sorted(r.value for r in self.allowed_roles)),
            )

        return context


async def require_supplier(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """Supplier with a vendor bound to the token."""
    context = _user_context(decode_token(credentials.credentials))

    if context["role"] != Role.SUPPLIER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only suppliers can answer evaluations",
        )
    if not context["vendor_id"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is not linked to a vendor",
        )

    return context


require_admin = RBACChecker([Role.ADMIN])
require_reviewer = RBACChecker([Role.ADMIN, Role.EVALUATOR])
