# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

# backend/jewelshop/routes/purchase_orders.py
"""
Purchase order routes.

Lifecycle: PENDING -> CONFIRMED -> PARTIAL -> DELIVERED -> CLOSED, or
CANCELLED before anything is received. Receiving stock mints one StockItem
per physical unit; paying writes a PurchasePayment and a paired EXPENSE
transaction.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import DomainError
from ..responses import (
    error,
    internal_error,
    json_body,
    paginated,
    parse_page_request,
    pick,
    require_fields,
    success,
)
from ..services import purchase_order_service


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.get("")
@require_auth
@require_permission("PURCHASE_VIEW")
def list_purchase_orders_route():
    """
    Query params: status, supplier_id, payment_status, start_date, end_date,
    search, page, page_size.
    """
    try:
        page = purchase_order_service.list_purchase_orders(
            g.tenant, request.args, parse_page_request(request.args)
        )
        return paginated(page)
    except DomainError as e:
        return error(e)


@purchase_orders_bp.post("")
@require_auth
@require_permission("PURCHASE_CREATE")
def create_purchase_order_route():
    """
    Body: supplier_id, items[{product_id, quantity, unit_price_paise}],
    discount_paise?, expected_delivery_date?, order_date?, notes?
    """
    try:
        data = json_body()
        require_fields(data, "supplier_id", "items")
        po = purchase_order_service.create_purchase_order(
            g.tenant,
            **pick(
                data,
                "supplier_id", "items", "discount_paise",
                "expected_delivery_date", "order_date", "notes",
            ),
        )
        return success(po.to_dict(include_items=True), status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return internal_error()


@purchase_orders_bp.get("/pending")
@require_auth
@require_permission("PURCHASE_VIEW")
def pending_purchase_orders_route():
    try:
        orders = purchase_order_service.pending_purchase_orders(g.tenant)
        return success([po.to_dict() for po in orders])
    except DomainError as e:
        return error(e)


@purchase_orders_bp.get("/summary")
@require_auth
@require_permission("PURCHASE_VIEW")
def purchase_order_summary_route():
    try:
        return success(purchase_order_service.purchase_order_summary(g.tenant))
    except DomainError as e:
        return error(e)


@purchase_orders_bp.get("/<int:po_id>")
@require_auth
@require_permission("PURCHASE_VIEW")
def get_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.get_purchase_order(g.tenant, po_id)
        body = po.to_dict(include_items=True)
        body["payments"] = [p.to_dict() for p in po.payments]
        return success(body)
    except DomainError as e:
        return error(e)


@purchase_orders_bp.post("/<int:po_id>/confirm")
@require_auth
@require_permission("PURCHASE_EDIT")
def confirm_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.confirm_purchase_order(g.tenant, po_id)
        return success(po.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to confirm purchase order")
        return internal_error()


@purchase_orders_bp.post("/<int:po_id>/cancel")
@require_auth
@require_permission("PURCHASE_EDIT")
def cancel_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.cancel_purchase_order(g.tenant, po_id)
        return success(po.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to cancel purchase order")
        return internal_error()


@purchase_orders_bp.get("/<int:po_id>/items-to-receive")
@require_auth
@require_permission("PURCHASE_VIEW")
def items_to_receive_route(po_id: int):
    try:
        items = purchase_order_service.items_to_receive(g.tenant, po_id)
        return success([item.to_dict() for item in items])
    except DomainError as e:
        return error(e)


@purchase_orders_bp.post("/<int:po_id>/receive-stock")
@require_auth
@require_permission("STOCK_MANAGE")
def receive_stock_route(po_id: int):
    """
    Body: entries[{purchase_order_item_id, product_id?, quantity_to_receive,
    per_unit_cost_paise | unit_costs_paise[], huid? | huids[]}]
    """
    try:
        data = json_body()
        require_fields(data, "entries")
        result = purchase_order_service.receive_stock(g.tenant, po_id, entries=data["entries"])
        return success({
            "purchase_order": result["purchase_order"].to_dict(include_items=True),
            "stock_items": [item.to_dict() for item in result["stock_items"]],
        }, status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return internal_error()


@purchase_orders_bp.post("/<int:po_id>/payments")
@require_auth
@require_permission("PURCHASE_EDIT")
def record_payment_route(po_id: int):
    """Body: amount_paise, payment_method, reference_number?, notes?, payment_date?"""
    try:
        data = json_body()
        require_fields(data, "amount_paise", "payment_method")
        result = purchase_order_service.record_payment(
            g.tenant,
            po_id,
            **pick(data, "amount_paise", "payment_method", "reference_number", "notes", "payment_date"),
        )
        return success({
            "purchase_order": result["purchase_order"].to_dict(),
            "payment": result["payment"].to_dict(),
            "transaction": result["transaction"].to_dict(),
        }, status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to record purchase payment")
        return internal_error()


@purchase_orders_bp.post("/<int:po_id>/close")
@require_auth
@require_permission("PURCHASE_EDIT")
def close_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.close_purchase_order(g.tenant, po_id)
        return success(po.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to close purchase order")
        return internal_error()


@purchase_orders_bp.delete("/<int:po_id>")
@require_auth
@require_permission("PURCHASE_DELETE")
def delete_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.delete_purchase_order(g.tenant, po_id)
        return success({"id": po.id, "deleted": True})
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to delete purchase order")
        return internal_error()
