# Overview: Flask API routes for the financial ledger.

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
from ..services import transaction_service


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
@require_permission("TRANSACTION_VIEW")
def list_transactions_route():
    """
    Query params: transaction_type, category, payment_mode, customer_id,
    supplier_id, sales_order_id, purchase_order_id, start_date, end_date,
    search, page, page_size.
    """
    try:
        page = transaction_service.list_transactions(g.tenant, request.args, parse_page_request(request.args))
        return paginated(page)
    except DomainError as e:
        return error(e)


@transactions_bp.post("")
@require_auth
@require_permission("TRANSACTION_CREATE")
def create_transaction_route():
    try:
        data = json_body()
        require_fields(data, "transaction_type", "category", "amount_paise")
        txn = transaction_service.create_transaction(
            g.tenant,
            **pick(
                data,
                "transaction_type", "category", "amount_paise", "payment_mode",
                "description", "reference_number", "transaction_date",
                "customer_id", "supplier_id",
            ),
        )
        return success(txn.to_dict(), status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return internal_error()


@transactions_bp.get("/summary")
@require_auth
@require_permission("TRANSACTION_VIEW")
def transaction_summary_route():
    """Totals per type plus income, expense, and net. Accepts the list filters."""
    try:
        return success(transaction_service.transaction_summary(g.tenant, request.args))
    except DomainError as e:
        return error(e)


@transactions_bp.get("/<int:transaction_id>")
@require_auth
@require_permission("TRANSACTION_VIEW")
def get_transaction_route(transaction_id: int):
    try:
        return success(transaction_service.get_transaction(g.tenant, transaction_id).to_dict())
    except DomainError as e:
        return error(e)


@transactions_bp.delete("/<int:transaction_id>")
@require_auth
@require_permission("TRANSACTION_DELETE")
def delete_transaction_route(transaction_id: int):
    try:
        txn = transaction_service.delete_transaction(g.tenant, transaction_id)
        return success({"id": txn.id, "deleted": True})
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to delete transaction")
        return internal_error()
