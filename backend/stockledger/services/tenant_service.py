"""
Multi-Tenant Service: Tenant Resolution and Access Checks

WHY: Centralize tenant logic for reuse across ledger services. Every
operation is scoped to a merchant, and cross-tenant access must be
explicitly denied. Isolation is enforced here, in the service layer, not
by the storage layer.

SECURITY INVARIANTS:
1. Every ledger operation resolves a tenant id from the caller first
2. Records loaded by id are checked with has_access() before use
3. Queries over ledger rows filter by the resolved tenant id
4. Platform owners may act for any merchant, but must name which one

USAGE:
    from stockledger.services.tenant_service import Caller, tenant_id_for

    caller = Caller(user_id=7, merchant_id=3)
    merchant_id = tenant_id_for(caller)
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import AccessDeniedError
from ..models import UserRole


@dataclass(frozen=True)
class Caller:
    """Identity of whoever invokes a ledger operation (resolved by the auth layer)."""

    user_id: int
    merchant_id: int | None = None
    role: UserRole = UserRole.MERCHANT_STAFF
    # Platform owners pick the tenant they are acting for
    acting_merchant_id: int | None = None

    @property
    def is_platform_owner(self) -> bool:
        return self.role == UserRole.PLATFORM_OWNER


def tenant_id_for(caller: Caller) -> int:
    """
    Resolve the merchant id a caller operates on.

    Raises AccessDeniedError if no tenant can be resolved.
    """
    if caller is None or caller.user_id is None:
        raise AccessDeniedError("User ID is required")

    if caller.is_platform_owner and caller.acting_merchant_id is not None:
        return caller.acting_merchant_id

    if caller.merchant_id is None:
        raise AccessDeniedError("Merchant ID is required")
    return caller.merchant_id


def has_access(caller: Caller, merchant_id: int) -> bool:
    """Platform owners see every tenant; merchant users only their own."""
    if caller is None:
        return False
    if caller.is_platform_owner:
        return True
    return caller.merchant_id is not None and caller.merchant_id == merchant_id


def require_access(caller: Caller, merchant_id: int, *, what: str = "record") -> None:
    if not has_access(caller, merchant_id):
        raise AccessDeniedError(
            "Access denied",
            details={"resource": what, "merchant_id": merchant_id},
        )
