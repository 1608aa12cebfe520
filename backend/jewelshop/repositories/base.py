# Overview: Shop-scoped repository base; every tenant read and write goes through here.

"""
Shop-Scoped Repository

MULTI-TENANT INVARIANTS:
- A repository can only be constructed from a TenantContext with a shop.
  Construction fails with NoShopContext before any query is built.
- with_shop_context() adds shop_id = <caller's shop> to every query and
  excludes soft-deleted rows.
- verify_ownership() collapses "missing", "soft-deleted", and "owned by
  another shop" into one NotFoundOrForeignTenant error so callers
  cannot discover which ids belong to another tenant.
- create() stamps shop_id from the context; payloads cannot choose it.

Child tables without their own shop_id (order lines, installments) are
reached only through their owning aggregate.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Integer, or_

from ..extensions import db
from ..errors import NotFoundOrForeignTenant, ValidationError
from ..responses import Page, PageRequest
from ..services.concurrency import lock_for_update
from ..tenancy import TenantContext
from jewelshop.time_utils import utcnow


def _coerce_filter(column, value):
    """Query-string values arrive as text; match the column's type."""
    if not isinstance(value, str):
        return value
    if isinstance(column.type, Boolean):
        return value.strip().lower() in ("1", "true", "yes")
    if isinstance(column.type, Integer):
        try:
            return int(value)
        except ValueError:
            raise ValidationError(f"{column.key} must be an integer")
    return value


class ShopScopedRepository:
    model = None
    entity_name = "Record"

    # Columns that list() accepts as exact-match filters
    filterable_fields: tuple[str, ...] = ()
    # Columns matched case-insensitively by the "search" filter
    search_fields: tuple[str, ...] = ()

    def __init__(self, context: TenantContext):
        self.context = context
        self.shop_id = context.require_shop()

    # ------------------------------------------------------------------
    # Scoping
    # ------------------------------------------------------------------

    def with_shop_context(self, query):
        query = query.filter(self.model.shop_id == self.shop_id)
        if hasattr(self.model, "deleted_at"):
            query = query.filter(self.model.deleted_at.is_(None))
        return query

    def query(self):
        return self.with_shop_context(db.session.query(self.model))

    def verify_ownership(self, entity_id, *, for_update: bool = False):
        query = self.query().filter(self.model.id == entity_id)
        if for_update:
            query = lock_for_update(query)
        obj = query.first()
        if obj is None:
            raise NotFoundOrForeignTenant(self.entity_name, entity_id)
        return obj

    def get(self, entity_id):
        return self.verify_ownership(entity_id)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def apply_filters(self, query, filters: dict):
        for field in self.filterable_fields:
            value = filters.get(field)
            if value is not None and value != "":
                column = getattr(self.model, field)
                query = query.filter(column == _coerce_filter(column, value))

        search = (filters.get("search") or "").strip()
        if search and self.search_fields:
            pattern = f"%{search}%"
            query = query.filter(or_(*[
                getattr(self.model, field).ilike(pattern) for field in self.search_fields
            ]))
        return query

    def ordering(self):
        return (self.model.id.desc(),)

    def list(self, filters: dict | None = None, page_request: PageRequest | None = None) -> Page:
        page_request = page_request or PageRequest(page=1, page_size=20)
        query = self.apply_filters(self.query(), filters or {})
        total = query.count()
        items = (
            query.order_by(*self.ordering())
            .offset(page_request.offset)
            .limit(page_request.page_size)
            .all()
        )
        return Page(items=items, total_count=total, request=page_request)

    def count(self, filters: dict | None = None) -> int:
        return self.apply_filters(self.query(), filters or {}).count()

    # ------------------------------------------------------------------
    # Writes (flush only; the caller's unit of work commits)
    # ------------------------------------------------------------------

    def create(self, **fields):
        fields.pop("shop_id", None)
        obj = self.model(shop_id=self.shop_id, **fields)
        db.session.add(obj)
        db.session.flush()
        return obj

    def update(self, entity_id, **fields):
        obj = self.verify_ownership(entity_id, for_update=True)
        fields.pop("shop_id", None)
        for key, value in fields.items():
            setattr(obj, key, value)
        db.session.flush()
        return obj

    def soft_delete(self, entity_id):
        obj = self.verify_ownership(entity_id, for_update=True)
        obj.deleted_at = utcnow()
        db.session.flush()
        return obj
