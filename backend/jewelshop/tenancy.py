# Overview: Per-request tenant identity passed explicitly into repositories and services.

"""
Tenant Context

WHY: Every repository is constructed from a TenantContext value rather than
reading request globals. Tests (and CLI commands) build contexts directly
for any shop without a request in flight.

RULES:
- shop_id is None only for SUPER_ADMIN sessions
- require_shop() fails closed with NoShopContext before any query runs
- SUPER_ADMIN may act inside a shop via for_shop(), which returns a new
  context; the original is never mutated
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .errors import NoShopContext
from .models.auth import ROLE_SUPER_ADMIN


@dataclass(frozen=True)
class TenantContext:
    shop_id: int | None
    user_id: int | None
    role: str

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN

    def require_shop(self) -> int:
        if self.shop_id is None:
            raise NoShopContext()
        return self.shop_id

    def for_shop(self, shop_id: int) -> "TenantContext":
        """Platform operator acting inside one shop."""
        if not self.is_super_admin:
            raise NoShopContext("Only platform administrators can switch shop context")
        return replace(self, shop_id=shop_id)

    @classmethod
    def from_user(cls, user, shop_id: int | None = None) -> "TenantContext":
        return cls(
            shop_id=shop_id if shop_id is not None else user.shop_id,
            user_id=user.id,
            role=user.role,
        )

    @classmethod
    def system(cls, shop_id: int) -> "TenantContext":
        """Context for maintenance jobs run outside a request (CLI)."""
        return cls(shop_id=shop_id, user_id=None, role=ROLE_SUPER_ADMIN)
