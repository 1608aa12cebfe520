# Overview: Repositories for purchase and sales order aggregates.

from __future__ import annotations

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import PurchaseOrder, PurchaseOrderItem, SalesOrder
from ..models.finance import PAYMENT_PAID, PAYMENT_PARTIAL, PAYMENT_PENDING
from ..models.purchasing import PO_TERMINAL
from jewelshop.time_utils import parse_iso_datetime
from .base import ShopScopedRepository


def _payment_status_filter(query, paid_col, due_col, status: str | None):
    # payment_status is never stored; translate it into the same rule the
    # model property applies.
    if status == PAYMENT_PAID:
        return query.filter(paid_col >= due_col)
    if status == PAYMENT_PARTIAL:
        return query.filter(paid_col > 0, paid_col < due_col)
    if status == PAYMENT_PENDING:
        return query.filter(paid_col <= 0, paid_col < due_col)
    return query


def date_range_filter(query, column, filters: dict):
    try:
        start = parse_iso_datetime(filters.get("start_date"))
        end = parse_iso_datetime(filters.get("end_date"))
    except ValueError:
        raise ValidationError("start_date and end_date must be ISO-8601 datetimes")
    if start:
        query = query.filter(column >= start)
    if end:
        query = query.filter(column <= end)
    return query


class PurchaseOrderRepository(ShopScopedRepository):
    model = PurchaseOrder
    entity_name = "Purchase order"
    filterable_fields = ("status", "supplier_id")
    search_fields = ("po_number", "notes")

    def apply_filters(self, query, filters: dict):
        query = super().apply_filters(query, filters)
        query = _payment_status_filter(
            query,
            PurchaseOrder.paid_amount_paise,
            PurchaseOrder.total_amount_paise,
            filters.get("payment_status"),
        )
        return date_range_filter(query, PurchaseOrder.order_date, filters)

    def items_to_receive(self, purchase_order_id: int) -> list[PurchaseOrderItem]:
        po = self.verify_ownership(purchase_order_id)
        return [item for item in po.items if item.pending_quantity > 0]

    def pending_orders(self) -> list[PurchaseOrder]:
        """Orders still expecting stock (not delivered, closed, or cancelled)."""
        return (
            self.query()
            .join(PurchaseOrderItem, PurchaseOrderItem.purchase_order_id == PurchaseOrder.id)
            .filter(
                PurchaseOrder.status.notin_(PO_TERMINAL),
                PurchaseOrderItem.received_quantity < PurchaseOrderItem.quantity,
            )
            .distinct()
            .order_by(PurchaseOrder.order_date.asc(), PurchaseOrder.id.asc())
            .all()
        )

    def summary(self) -> dict:
        counts = dict(
            self.query()
            .with_entities(PurchaseOrder.status, func.count(PurchaseOrder.id))
            .group_by(PurchaseOrder.status)
            .all()
        )
        outstanding = (
            self.query()
            .with_entities(
                func.coalesce(
                    func.sum(PurchaseOrder.total_amount_paise - PurchaseOrder.paid_amount_paise), 0
                )
            )
            .filter(
                PurchaseOrder.status != "CANCELLED",
                PurchaseOrder.paid_amount_paise < PurchaseOrder.total_amount_paise,
            )
            .scalar()
        )
        return {
            "counts_by_status": counts,
            "total_orders": sum(counts.values()),
            "outstanding_payable_paise": int(outstanding or 0),
        }


class SalesOrderRepository(ShopScopedRepository):
    model = SalesOrder
    entity_name = "Sales order"
    filterable_fields = ("status", "customer_id", "order_type")
    search_fields = ("invoice_number", "notes")

    def apply_filters(self, query, filters: dict):
        query = super().apply_filters(query, filters)
        query = _payment_status_filter(
            query,
            SalesOrder.paid_amount_paise,
            SalesOrder.final_amount_paise,
            filters.get("payment_status"),
        )
        return date_range_filter(query, SalesOrder.order_date, filters)

    def find_by_invoice_number(self, invoice_number: str) -> SalesOrder | None:
        return self.query().filter(SalesOrder.invoice_number == invoice_number).first()

    def invoice_number_taken(self, invoice_number: str) -> bool:
        # Includes soft-deleted orders: the unique constraint still covers them.
        return (
            db.session.query(SalesOrder).filter(
                SalesOrder.shop_id == self.shop_id,
                SalesOrder.invoice_number == invoice_number,
            ).first()
            is not None
        )
