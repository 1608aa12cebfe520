# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/jewelshop/routes/products.py
"""
Product catalog routes.

MULTI-TENANT: All product operations are scoped to the caller's shop
(g.tenant, set by @require_auth).

Products carry no selling price; GET /<id>/price-breakdown computes it from
the live rate master.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import DomainError
from ..repositories import ProductRepository
from ..responses import error, internal_error, json_body, paginated, parse_page_request, success
from ..services import catalog_service, pricing_service, stock_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("PRODUCT_VIEW")
def list_products_route():
    """
    Query params: search, metal_type, purity, category, supplier_id,
    collection_name, page, page_size.
    """
    try:
        page = ProductRepository(g.tenant).list(request.args, parse_page_request(request.args))
        return paginated(page)
    except DomainError as e:
        return error(e)


@products_bp.post("")
@require_auth
@require_permission("PRODUCT_CREATE")
def create_product_route():
    try:
        product = catalog_service.create_product(g.tenant, json_body())
        return success(product.to_dict(), status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return internal_error()


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("PRODUCT_VIEW")
def get_product_route(product_id: int):
    try:
        return success(ProductRepository(g.tenant).get(product_id).to_dict())
    except DomainError as e:
        return error(e)


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("PRODUCT_EDIT")
def update_product_route(product_id: int):
    try:
        product = catalog_service.update_product(g.tenant, product_id, json_body())
        return success(product.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return internal_error()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("PRODUCT_DELETE")
def delete_product_route(product_id: int):
    try:
        product = catalog_service.delete_product(g.tenant, product_id)
        return success({"id": product.id, "deleted": True})
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return internal_error()


@products_bp.get("/<int:product_id>/price-breakdown")
@require_auth
@require_permission("PRODUCT_VIEW")
def price_breakdown_route(product_id: int):
    try:
        return success(pricing_service.get_price_breakdown(g.tenant, product_id))
    except DomainError as e:
        return error(e)


@products_bp.get("/<int:product_id>/availability")
@require_auth
@require_permission("PRODUCT_VIEW")
def availability_route(product_id: int):
    try:
        return success(stock_service.availability(g.tenant, product_id))
    except DomainError as e:
        return error(e)


@products_bp.get("/<int:product_id>/available-stock")
@require_auth
@require_permission("STOCK_MANAGE")
def available_stock_route(product_id: int):
    """Available units in FIFO order (oldest purchase first)."""
    limit = request.args.get("limit", type=int)
    try:
        items = stock_service.find_available_by_product(g.tenant, product_id, limit)
        return success([item.to_dict() for item in items])
    except DomainError as e:
        return error(e)
