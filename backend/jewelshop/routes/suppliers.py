# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import DomainError
from ..repositories import SupplierRepository
from ..responses import error, internal_error, json_body, paginated, parse_page_request, success
from ..services import catalog_service


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_permission("SUPPLIER_VIEW")
def list_suppliers_route():
    try:
        page = SupplierRepository(g.tenant).list(request.args, parse_page_request(request.args))
        return paginated(page)
    except DomainError as e:
        return error(e)


@suppliers_bp.post("")
@require_auth
@require_permission("SUPPLIER_CREATE")
def create_supplier_route():
    try:
        supplier = catalog_service.create_supplier(g.tenant, json_body())
        return success(supplier.to_dict(), status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return internal_error()


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_permission("SUPPLIER_VIEW")
def get_supplier_route(supplier_id: int):
    try:
        return success(SupplierRepository(g.tenant).get(supplier_id).to_dict())
    except DomainError as e:
        return error(e)


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_permission("SUPPLIER_EDIT")
def update_supplier_route(supplier_id: int):
    try:
        supplier = catalog_service.update_supplier(g.tenant, supplier_id, json_body())
        return success(supplier.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return internal_error()


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_permission("SUPPLIER_DELETE")
def delete_supplier_route(supplier_id: int):
    try:
        supplier = catalog_service.delete_supplier(g.tenant, supplier_id)
        return success({"id": supplier.id, "deleted": True})
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return internal_error()


@suppliers_bp.get("/<int:supplier_id>/purchase-orders")
@require_auth
@require_permission("PURCHASE_VIEW")
def supplier_purchase_orders_route(supplier_id: int):
    try:
        page = catalog_service.supplier_purchase_orders(g.tenant, supplier_id, parse_page_request(request.args))
        return paginated(page)
    except DomainError as e:
        return error(e)
