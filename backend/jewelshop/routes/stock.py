# Overview: Flask API routes for the stock ledger; lookups, valuation, and live quotes.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import DomainError
from ..repositories import StockItemRepository
from ..responses import error, paginated, parse_page_request, success
from ..services import stock_service


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
@require_auth
@require_permission("PRODUCT_VIEW")
def list_stock_route():
    """
    Query params: status, product_id, purchase_order_id, metal_type,
    search (tag id / barcode / HUID), page, page_size.
    """
    try:
        page = StockItemRepository(g.tenant).list(request.args, parse_page_request(request.args))
        return paginated(page)
    except DomainError as e:
        return error(e)


@stock_bp.get("/summary")
@require_auth
@require_permission("REPORTS_INVENTORY")
def inventory_summary_route():
    try:
        return success(stock_service.inventory_summary(g.tenant))
    except DomainError as e:
        return error(e)


@stock_bp.get("/scan")
@require_auth
@require_permission("PRODUCT_VIEW")
def scan_route():
    """Query params: code (barcode or tag id), type (auto | barcode | tag)."""
    try:
        return success(stock_service.scan_code(
            g.tenant, request.args.get("code"), request.args.get("type", "auto"),
        ))
    except DomainError as e:
        return error(e)


@stock_bp.get("/tag/<string:tag_id>")
@require_auth
@require_permission("PRODUCT_VIEW")
def get_by_tag_route(tag_id: str):
    try:
        return success(stock_service.get_by_tag_id(g.tenant, tag_id).to_dict())
    except DomainError as e:
        return error(e)


@stock_bp.get("/<int:item_id>")
@require_auth
@require_permission("PRODUCT_VIEW")
def get_stock_item_route(item_id: int):
    try:
        return success(stock_service.get_stock_item(g.tenant, item_id).to_dict())
    except DomainError as e:
        return error(e)


@stock_bp.get("/<int:item_id>/quote")
@require_auth
@require_permission("SALES_CREATE")
def quote_route(item_id: int):
    """Selling price of one unit at the current rate."""
    try:
        return success(stock_service.quote_stock_item(g.tenant, item_id))
    except DomainError as e:
        return error(e)
