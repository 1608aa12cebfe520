# Overview: Rate master repository; one active rate per metal and purity.

from __future__ import annotations

from ..extensions import db
from ..models import RateMaster
from ..services.concurrency import lock_for_update
from .base import ShopScopedRepository


class RateMasterRepository(ShopScopedRepository):
    model = RateMaster
    entity_name = "Rate"
    filterable_fields = ("metal_type", "purity", "rate_source", "is_active")

    def ordering(self):
        return (RateMaster.effective_date.desc(), RateMaster.id.desc())

    def get_current_rate(self, metal_type: str, purity: str) -> RateMaster | None:
        return (
            self.query()
            .filter(
                RateMaster.metal_type == metal_type,
                RateMaster.purity == purity,
                RateMaster.is_active.is_(True),
            )
            .order_by(RateMaster.effective_date.desc(), RateMaster.id.desc())
            .first()
        )

    def current_rates(self) -> list[RateMaster]:
        return (
            self.query()
            .filter(RateMaster.is_active.is_(True))
            .order_by(RateMaster.metal_type.asc(), RateMaster.purity.asc())
            .all()
        )

    def history(self, metal_type: str, purity: str, limit: int = 50) -> list[RateMaster]:
        return (
            self.query()
            .filter(RateMaster.metal_type == metal_type, RateMaster.purity == purity)
            .order_by(RateMaster.effective_date.desc(), RateMaster.id.desc())
            .limit(limit)
            .all()
        )

    def deactivate_current(self, metal_type: str, purity: str) -> list[RateMaster]:
        """Deactivate the active row(s) for the pair. Flushed before any insert."""
        rows = lock_for_update(
            self.query().filter(
                RateMaster.metal_type == metal_type,
                RateMaster.purity == purity,
                RateMaster.is_active.is_(True),
            )
        ).all()
        for row in rows:
            row.is_active = False
        db.session.flush()
        return rows
