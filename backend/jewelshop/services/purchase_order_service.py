# Overview: Service-layer operations for purchase orders; receipt, payment, and closure.

"""
Purchase Order Workflow

LIFECYCLE:
1. PENDING:   Created with lines (product, quantity, unit price)
2. CONFIRMED: Supplier acknowledged
3. PARTIAL:   Some but not all units received
4. DELIVERED: Every line fully received
5. CLOSED:    Delivered and fully paid (terminal)
   CANCELLED: Abandoned before anything was received (terminal)

RECEIPT (one transaction):
- quantity_to_receive <= pending quantity per line, else OverReceipt
- mint unique tag ids / barcodes, bulk-create AVAILABLE StockItems that
  carry purchase cost only
- bump received_quantity, then recompute status from all lines

PAYMENT (one transaction):
- amount <= remaining balance, else OverPayment
- PurchasePayment row + paid amount + paired EXPENSE Transaction; the two
  never exist without each other

CLOSE: only when every line is received and paid >= total; otherwise
CannotClose names each unmet condition.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from ..extensions import db
from ..errors import (
    CannotClose,
    ConflictError,
    DiscountExceedsTotal,
    InvalidStateTransition,
    OverPayment,
    OverReceipt,
    ValidationError,
)
from ..models import PurchaseOrder, PurchaseOrderItem, PurchasePayment, Transaction
from ..models.finance import PAYMENT_METHODS, TXN_EXPENSE
from ..models.purchasing import (
    PO_CANCELLED,
    PO_CLOSED,
    PO_CONFIRMED,
    PO_DELIVERED,
    PO_PARTIAL,
    PO_PENDING,
    PO_TERMINAL,
)
from ..repositories.catalog import ProductRepository, SupplierRepository
from ..repositories.orders import PurchaseOrderRepository
from ..repositories.stock import StockItemRepository
from ..tenancy import TenantContext
from ..validation import require_object_list
from . import audit_service
from .concurrency import unit_of_work
from .identifier_service import generate_po_number
from .stock_service import UnitToCreate, create_units
from jewelshop.time_utils import parse_iso_date, parse_iso_datetime, utcnow


logger = logging.getLogger(__name__)

AUDIT_MODULE = "PURCHASE_ORDERS"

PO_NUMBER_ATTEMPTS = 5


# ----------------------------------------------------------------------
# Pure helpers
# ----------------------------------------------------------------------

def all_received(items) -> bool:
    return bool(items) and all(item.received_quantity >= item.quantity for item in items)


def any_received(items) -> bool:
    return any(item.received_quantity > 0 for item in items)


def derive_receipt_status(items, current_status: str) -> str:
    """
    Status implied by line receipt state.

    all received => DELIVERED; some received => PARTIAL; nothing received
    keeps the current pre-receipt status (PENDING / CONFIRMED).
    """
    if current_status in PO_TERMINAL:
        return current_status
    if all_received(items):
        return PO_DELIVERED
    if any_received(items):
        return PO_PARTIAL
    return current_status


def close_blockers(po: PurchaseOrder) -> list[str]:
    unmet = []
    if not all_received(po.items):
        pending = sum(item.pending_quantity for item in po.items)
        unmet.append(f"{pending} unreceived items")
    if po.paid_amount_paise < po.total_amount_paise:
        unmet.append(f"unpaid balance of {po.total_amount_paise - po.paid_amount_paise}")
    return unmet


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return value


def _non_negative_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer")
    return value


def _require_open(po: PurchaseOrder, action: str) -> None:
    if po.status in PO_TERMINAL:
        open_states = sorted({PO_PENDING, PO_CONFIRMED, PO_PARTIAL, PO_DELIVERED})
        raise InvalidStateTransition("purchase order", po.status, open_states, action)


# ----------------------------------------------------------------------
# Create / confirm / cancel
# ----------------------------------------------------------------------

def create_purchase_order(
    context: TenantContext,
    *,
    supplier_id: int,
    items: list[dict],
    discount_paise: int = 0,
    expected_delivery_date=None,
    order_date=None,
    notes: str | None = None,
) -> PurchaseOrder:
    repo = PurchaseOrderRepository(context)
    suppliers = SupplierRepository(context)
    products = ProductRepository(context)

    require_object_list(items, "items", "At least one item is required")
    discount_paise = _non_negative_int(discount_paise, "discount_paise")

    try:
        expected = parse_iso_date(expected_delivery_date)
        ordered_at = parse_iso_datetime(order_date) if isinstance(order_date, str) else order_date
    except ValueError:
        raise ValidationError("Invalid date format")

    def _op():
        supplier = suppliers.verify_ownership(supplier_id)

        lines = []
        for idx, raw in enumerate(items):
            product = products.verify_ownership(raw.get("product_id"))
            quantity = _positive_int(raw.get("quantity"), f"items[{idx}].quantity")
            unit_price = _non_negative_int(raw.get("unit_price_paise"), f"items[{idx}].unit_price_paise")
            lines.append((product, quantity, unit_price))

        subtotal = sum(q * p for _, q, p in lines)
        total = subtotal - discount_paise
        if total < 0:
            raise DiscountExceedsTotal(discount_paise, subtotal)

        po_number = None
        for _ in range(PO_NUMBER_ATTEMPTS):
            candidate = generate_po_number()
            if not db.session.query(PurchaseOrder.id).filter_by(
                shop_id=repo.shop_id, po_number=candidate
            ).first():
                po_number = candidate
                break
        if po_number is None:
            raise ConflictError("Could not allocate a purchase order number, please retry")

        po = repo.create(
            supplier_id=supplier.id,
            po_number=po_number,
            order_date=ordered_at or utcnow(),
            expected_delivery_date=expected,
            status=PO_PENDING,
            total_amount_paise=total,
            discount_paise=discount_paise,
            paid_amount_paise=0,
            notes=notes,
            created_by_user_id=context.user_id,
        )
        for product, quantity, unit_price in lines:
            db.session.add(PurchaseOrderItem(
                purchase_order_id=po.id,
                product_id=product.id,
                quantity=quantity,
                received_quantity=0,
                unit_price_paise=unit_price,
                line_total_paise=quantity * unit_price,
            ))
        db.session.flush()
        audit_service.log_create(context, AUDIT_MODULE, po)
        return po

    return unit_of_work(_op)


def confirm_purchase_order(context: TenantContext, purchase_order_id: int) -> PurchaseOrder:
    repo = PurchaseOrderRepository(context)

    def _op():
        po = repo.verify_ownership(purchase_order_id, for_update=True)
        if po.status != PO_PENDING:
            raise InvalidStateTransition("purchase order", po.status, PO_PENDING, "confirm")
        po.status = PO_CONFIRMED
        db.session.flush()
        audit_service.log_status_change(context, AUDIT_MODULE, po, PO_PENDING, PO_CONFIRMED)
        return po

    return unit_of_work(_op)


def cancel_purchase_order(context: TenantContext, purchase_order_id: int) -> PurchaseOrder:
    repo = PurchaseOrderRepository(context)

    def _op():
        po = repo.verify_ownership(purchase_order_id, for_update=True)
        if po.status not in (PO_PENDING, PO_CONFIRMED) or any_received(po.items):
            raise InvalidStateTransition(
                "purchase order", po.status, [PO_PENDING, PO_CONFIRMED], "cancel"
            )
        if po.paid_amount_paise > 0:
            raise ConflictError("Cannot cancel a purchase order with recorded payments")
        old = po.status
        po.status = PO_CANCELLED
        po.cancelled_at = utcnow()
        db.session.flush()
        audit_service.log_status_change(context, AUDIT_MODULE, po, old, PO_CANCELLED)
        return po

    return unit_of_work(_op)


# ----------------------------------------------------------------------
# Receive stock
# ----------------------------------------------------------------------

def _units_for_entry(entry: dict, quantity: int, idx: int) -> list[UnitToCreate]:
    unit_costs = entry.get("unit_costs_paise")
    if unit_costs is not None:
        if not isinstance(unit_costs, list) or len(unit_costs) != quantity:
            raise ValidationError(f"entries[{idx}].unit_costs_paise must list one cost per unit")
        costs = [_non_negative_int(c, f"entries[{idx}].unit_costs_paise") for c in unit_costs]
    else:
        cost = _non_negative_int(entry.get("per_unit_cost_paise"), f"entries[{idx}].per_unit_cost_paise")
        costs = [cost] * quantity

    huids = entry.get("huids")
    if huids is None and entry.get("huid"):
        huids = [entry["huid"]]
    if huids is not None:
        if not isinstance(huids, list) or len(huids) != quantity:
            raise ValidationError(f"entries[{idx}] must supply one HUID per unit")
    else:
        huids = [None] * quantity

    return [UnitToCreate(purchase_cost_paise=c, huid=h) for c, h in zip(costs, huids)]


def receive_stock(
    context: TenantContext,
    purchase_order_id: int,
    *,
    entries: list[dict],
    received_at=None,
) -> dict:
    """
    Receive units against purchase order lines.

    entries: [{purchase_order_item_id, product_id, quantity_to_receive,
               per_unit_cost_paise | unit_costs_paise, huid | huids}]
    """
    repo = PurchaseOrderRepository(context)
    stock_repo = StockItemRepository(context)

    require_object_list(entries, "entries", "At least one receipt entry is required")

    def _op():
        po = repo.verify_ownership(purchase_order_id, for_update=True)
        _require_open(po, "receive stock for")

        items_by_id = {item.id: item for item in po.items}

        # Validate every entry before creating anything
        requested = defaultdict(int)
        plan = []
        for idx, entry in enumerate(entries):
            item = items_by_id.get(entry.get("purchase_order_item_id"))
            if item is None:
                raise ValidationError(
                    f"entries[{idx}].purchase_order_item_id does not belong to this purchase order"
                )
            if entry.get("product_id") is not None and entry["product_id"] != item.product_id:
                raise ValidationError(f"entries[{idx}].product_id does not match the order line")
            quantity = _positive_int(entry.get("quantity_to_receive"), f"entries[{idx}].quantity_to_receive")
            requested[item.id] += quantity
            if requested[item.id] > item.pending_quantity:
                raise OverReceipt(item.id, requested[item.id], item.pending_quantity)
            plan.append((item, _units_for_entry(entry, quantity, idx)))

        purchase_date = received_at or utcnow()
        created = []
        for item, units in plan:
            created.extend(create_units(
                stock_repo,
                product=item.product,
                units=units,
                purchase_order_id=po.id,
                purchase_order_item_id=item.id,
                purchase_date=purchase_date,
            ))
            item.received_quantity += len(units)

        old_status = po.status
        po.status = derive_receipt_status(po.items, po.status)
        db.session.flush()

        if po.status != old_status:
            audit_service.log_status_change(context, AUDIT_MODULE, po, old_status, po.status)
        for unit in created:
            audit_service.log_create(context, "STOCK", unit)

        logger.info("Received %d units on purchase order %s", len(created), po.po_number)
        return {"purchase_order": po, "stock_items": created}

    return unit_of_work(_op)


def items_to_receive(context: TenantContext, purchase_order_id: int) -> list[PurchaseOrderItem]:
    return PurchaseOrderRepository(context).items_to_receive(purchase_order_id)


# ----------------------------------------------------------------------
# Payments / close
# ----------------------------------------------------------------------

def record_payment(
    context: TenantContext,
    purchase_order_id: int,
    *,
    amount_paise: int,
    payment_method: str,
    reference_number: str | None = None,
    notes: str | None = None,
    payment_date=None,
) -> dict:
    repo = PurchaseOrderRepository(context)

    amount_paise = _positive_int(amount_paise, "amount_paise")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(sorted(PAYMENT_METHODS))}")
    try:
        paid_at = parse_iso_datetime(payment_date) if isinstance(payment_date, str) else payment_date
    except ValueError:
        raise ValidationError("payment_date must be an ISO-8601 datetime")
    paid_at = paid_at or utcnow()

    def _op():
        po = repo.verify_ownership(purchase_order_id, for_update=True)
        _require_open(po, "record payment for")

        balance = po.total_amount_paise - po.paid_amount_paise
        if amount_paise > balance:
            raise OverPayment(amount_paise, max(balance, 0))

        before = po.to_dict()
        payment = PurchasePayment(
            purchase_order_id=po.id,
            amount_paise=amount_paise,
            payment_date=paid_at,
            payment_method=payment_method,
            reference_number=reference_number,
            notes=notes,
        )
        db.session.add(payment)
        po.paid_amount_paise += amount_paise
        db.session.flush()

        txn = Transaction(
            shop_id=po.shop_id,
            transaction_date=paid_at,
            transaction_type=TXN_EXPENSE,
            category="PURCHASE",
            amount_paise=amount_paise,
            payment_mode=payment_method,
            description=f"Payment for purchase order {po.po_number}",
            reference_number=reference_number or po.po_number,
            supplier_id=po.supplier_id,
            purchase_order_id=po.id,
            purchase_payment_id=payment.id,
            created_by_user_id=context.user_id,
        )
        db.session.add(txn)
        db.session.flush()

        audit_service.log_update(context, AUDIT_MODULE, po, before)
        return {"purchase_order": po, "payment": payment, "transaction": txn}

    return unit_of_work(_op)


def close_purchase_order(context: TenantContext, purchase_order_id: int) -> PurchaseOrder:
    repo = PurchaseOrderRepository(context)

    def _op():
        po = repo.verify_ownership(purchase_order_id, for_update=True)
        _require_open(po, "close")

        unmet = close_blockers(po)
        if unmet:
            raise CannotClose(unmet, {
                "pending_quantity": sum(item.pending_quantity for item in po.items),
                "balance_paise": po.balance_paise,
            })

        old = po.status
        po.status = PO_CLOSED
        po.closed_at = utcnow()
        db.session.flush()
        audit_service.log_status_change(context, AUDIT_MODULE, po, old, PO_CLOSED)
        return po

    return unit_of_work(_op)


# ----------------------------------------------------------------------
# Reads / delete
# ----------------------------------------------------------------------

def get_purchase_order(context: TenantContext, purchase_order_id: int) -> PurchaseOrder:
    return PurchaseOrderRepository(context).get(purchase_order_id)


def list_purchase_orders(context: TenantContext, filters: dict, page_request):
    return PurchaseOrderRepository(context).list(filters, page_request)


def pending_purchase_orders(context: TenantContext) -> list[PurchaseOrder]:
    return PurchaseOrderRepository(context).pending_orders()


def purchase_order_summary(context: TenantContext) -> dict:
    return PurchaseOrderRepository(context).summary()


def delete_purchase_order(context: TenantContext, purchase_order_id: int) -> PurchaseOrder:
    """Soft delete. Only orders with no receipts and no payments."""
    repo = PurchaseOrderRepository(context)

    def _op():
        po = repo.verify_ownership(purchase_order_id, for_update=True)
        if any_received(po.items) or po.paid_amount_paise > 0:
            raise ConflictError("Cannot delete a purchase order with received stock or payments")
        before = po.to_dict()
        repo.soft_delete(po.id)
        audit_service.log_delete(context, AUDIT_MODULE, po, before)
        return po

    return unit_of_work(_op)
