# Overview: Stock ledger repository; single source of truth for physical-unit status.

"""
Stock Ledger

Each StockItem moves along a fixed graph:

    AVAILABLE -> RESERVED -> SOLD
    AVAILABLE -> SOLD
    RESERVED  -> AVAILABLE   (order cancelled)

reserve / release / mark_as_sold each touch exactly one row and only
flush. They must be called from inside the unit of work that also writes
the owning order line, so a unit is never held without a line.

The ledger sees one row at a time. Callers check availability of every unit
they claim before writing anything; the status check here is the final
guard and also catches a unit claimed by a concurrent transaction.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidStateTransition, StockUnavailable
from ..models import Product, StockItem
from ..models.inventory import (
    STOCK_AVAILABLE,
    STOCK_RESERVED,
    STOCK_SOLD,
    STOCK_STATUSES,
    STOCK_TRANSITIONS,
)
from ..services import audit_service
from ..services.concurrency import lock_for_update
from .base import ShopScopedRepository
from jewelshop.time_utils import utcnow

AUDIT_MODULE = "STOCK"


class StockItemRepository(ShopScopedRepository):
    model = StockItem
    entity_name = "Stock item"
    filterable_fields = ("status", "product_id", "purchase_order_id")
    search_fields = ("tag_id", "barcode", "huid")

    def apply_filters(self, query, filters: dict):
        query = super().apply_filters(query, filters)
        metal_type = filters.get("metal_type")
        if metal_type:
            query = query.join(Product, Product.id == StockItem.product_id).filter(
                Product.metal_type == metal_type
            )
        return query

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_tag_id(self, tag_id: str, *, for_update: bool = False) -> StockItem | None:
        query = self.query().filter(StockItem.tag_id == tag_id)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def find_by_barcode(self, barcode: str) -> StockItem | None:
        return self.query().filter(StockItem.barcode == barcode).first()

    def find_available_by_product(self, product_id: int, limit: int | None = None) -> list[StockItem]:
        """
        AVAILABLE units of a product, oldest purchase first (FIFO).

        Ties on purchase_date fall back to id so allocation is deterministic.
        """
        query = (
            self.query()
            .filter(StockItem.product_id == product_id, StockItem.status == STOCK_AVAILABLE)
            .order_by(StockItem.purchase_date.asc(), StockItem.id.asc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def existing_identifiers(self, tag_ids: list[str], barcodes: list[str]) -> set[str]:
        """
        Tag ids / barcodes already taken by any shop.

        Identifiers are globally unique, so this check is deliberately not
        shop-scoped; it returns only the colliding strings, never rows.
        """
        taken: set[str] = set()
        if tag_ids:
            taken.update(
                row[0] for row in db.session.query(StockItem.tag_id).filter(StockItem.tag_id.in_(tag_ids))
            )
        if barcodes:
            taken.update(
                row[0] for row in db.session.query(StockItem.barcode).filter(StockItem.barcode.in_(barcodes))
            )
        return taken

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, item: StockItem, to_status: str) -> None:
        if to_status not in STOCK_TRANSITIONS[item.status]:
            if to_status == STOCK_AVAILABLE:
                raise InvalidStateTransition("stock item", item.status, STOCK_RESERVED, "release")
            raise StockUnavailable(item.tag_id, item.status)
        old_status = item.status
        item.status = to_status
        audit_service.log_status_change(self.context, AUDIT_MODULE, item, old_status, to_status)

    def reserve(self, item_id: int, sales_order_line_id: int | None = None) -> StockItem:
        item = self.verify_ownership(item_id, for_update=True)
        self._transition(item, STOCK_RESERVED)
        item.sales_order_line_id = sales_order_line_id
        db.session.flush()
        return item

    def release(self, item_id: int) -> StockItem:
        item = self.verify_ownership(item_id, for_update=True)
        self._transition(item, STOCK_AVAILABLE)
        item.sales_order_line_id = None
        db.session.flush()
        return item

    def mark_as_sold(self, item_id: int, sales_order_line_id: int) -> StockItem:
        item = self.verify_ownership(item_id, for_update=True)
        # A reserved unit can only be sold through the line that reserved it
        if (
            item.status == STOCK_RESERVED
            and item.sales_order_line_id is not None
            and item.sales_order_line_id != sales_order_line_id
        ):
            raise StockUnavailable(item.tag_id, item.status)
        self._transition(item, STOCK_SOLD)
        item.sales_order_line_id = sales_order_line_id
        item.sale_date = utcnow()
        db.session.flush()
        return item

    # ------------------------------------------------------------------
    # Valuation / summaries
    # ------------------------------------------------------------------

    def get_inventory_value(self) -> int:
        """Sum of purchase cost over AVAILABLE + RESERVED units, in paise."""
        total = (
            self.query()
            .with_entities(func.coalesce(func.sum(StockItem.purchase_cost_paise), 0))
            .filter(StockItem.status.in_([STOCK_AVAILABLE, STOCK_RESERVED]))
            .scalar()
        )
        return int(total or 0)

    def status_counts(self, product_id: int | None = None) -> dict[str, int]:
        query = self.query().with_entities(StockItem.status, func.count(StockItem.id))
        if product_id is not None:
            query = query.filter(StockItem.product_id == product_id)
        counts = {status: 0 for status in sorted(STOCK_STATUSES)}
        for status, count in query.group_by(StockItem.status).all():
            counts[status] = count
        return counts

    def summary_by_product(self) -> list[dict]:
        rows = (
            self.query()
            .join(Product, Product.id == StockItem.product_id)
            .with_entities(
                StockItem.product_id,
                Product.name,
                StockItem.status,
                func.count(StockItem.id),
                func.coalesce(func.sum(StockItem.purchase_cost_paise), 0),
            )
            .group_by(StockItem.product_id, Product.name, StockItem.status)
            .order_by(StockItem.product_id.asc())
            .all()
        )
        by_product: dict[int, dict] = {}
        for product_id, name, status, count, cost in rows:
            entry = by_product.setdefault(product_id, {
                "product_id": product_id,
                "product_name": name,
                "counts": {s: 0 for s in sorted(STOCK_STATUSES)},
                "in_stock_cost_paise": 0,
            })
            entry["counts"][status] = count
            if status != STOCK_SOLD:
                entry["in_stock_cost_paise"] += int(cost)
        return list(by_product.values())
