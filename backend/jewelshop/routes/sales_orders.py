# Overview: Flask API routes for sales orders; parses input and returns JSON responses.

# backend/jewelshop/routes/sales_orders.py
"""Sales order API routes with permission enforcement"""

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
from ..services import sales_order_service


sales_orders_bp = Blueprint("sales_orders", __name__, url_prefix="/api/sales-orders")


def _order_body(order):
    body = order.to_dict(include_lines=True)
    body["payments"] = [p.to_dict() for p in order.payments]
    return body


@sales_orders_bp.get("")
@require_auth
@require_permission("SALES_VIEW")
def list_sales_orders_route():
    """
    Query params: status, customer_id, order_type, payment_status,
    start_date, end_date, search, page, page_size.
    """
    try:
        page = sales_order_service.list_sales_orders(g.tenant, request.args, parse_page_request(request.args))
        return paginated(page)
    except DomainError as e:
        return error(e)


@sales_orders_bp.post("")
@require_auth
@require_permission("SALES_CREATE")
def create_sales_order_route():
    """
    Create a sales order from specific stock units.

    Body: customer_id, lines[{stock_item_id | tag_id, quantity?}],
    payment_method, discount_paise?, order_type?, notes?,
    payment_amount_paise?, create_as_pending?

    Requires: SALES_CREATE permission
    """
    try:
        data = json_body()
        require_fields(data, "customer_id", "lines", "payment_method")
        order = sales_order_service.create_sales_order(
            g.tenant,
            **pick(
                data,
                "customer_id", "lines", "payment_method", "discount_paise",
                "order_type", "notes", "payment_amount_paise", "create_as_pending",
            ),
        )
        return success(_order_body(order), status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to create sales order")
        return internal_error()


@sales_orders_bp.get("/invoice/<string:invoice_number>")
@require_auth
@require_permission("SALES_VIEW")
def get_by_invoice_route(invoice_number: str):
    try:
        return success(_order_body(sales_order_service.get_by_invoice_number(g.tenant, invoice_number)))
    except DomainError as e:
        return error(e)


@sales_orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("SALES_VIEW")
def get_sales_order_route(order_id: int):
    try:
        return success(_order_body(sales_order_service.get_sales_order(g.tenant, order_id)))
    except DomainError as e:
        return error(e)


@sales_orders_bp.post("/<int:order_id>/complete")
@require_auth
@require_permission("SALES_EDIT")
def complete_sales_order_route(order_id: int):
    try:
        order = sales_order_service.complete_sales_order(g.tenant, order_id)
        return success(_order_body(order))
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to complete sales order")
        return internal_error()


@sales_orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_permission("SALES_EDIT")
def cancel_sales_order_route(order_id: int):
    try:
        order = sales_order_service.cancel_sales_order(g.tenant, order_id)
        return success(_order_body(order))
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to cancel sales order")
        return internal_error()


@sales_orders_bp.post("/<int:order_id>/payments")
@require_auth
@require_permission("SALES_EDIT")
def record_payment_route(order_id: int):
    """Body: amount_paise, payment_method, reference_number?, notes?, payment_date?"""
    try:
        data = json_body()
        require_fields(data, "amount_paise", "payment_method")
        result = sales_order_service.record_payment(
            g.tenant,
            order_id,
            **pick(data, "amount_paise", "payment_method", "reference_number", "notes", "payment_date"),
        )
        return success({
            "sales_order": result["sales_order"].to_dict(),
            "payment": result["payment"].to_dict(),
        }, status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to record sales payment")
        return internal_error()


@sales_orders_bp.get("/<int:order_id>/transactions")
@require_auth
@require_permission("TRANSACTION_VIEW")
def order_transactions_route(order_id: int):
    try:
        txns = sales_order_service.order_transactions(g.tenant, order_id)
        return success([t.to_dict() for t in txns])
    except DomainError as e:
        return error(e)


@sales_orders_bp.delete("/<int:order_id>")
@require_auth
@require_permission("SALES_DELETE")
def delete_sales_order_route(order_id: int):
    try:
        order = sales_order_service.delete_sales_order(g.tenant, order_id)
        return success({"id": order.id, "deleted": True})
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to delete sales order")
        return internal_error()
