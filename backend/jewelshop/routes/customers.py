# Overview: Flask API routes for customers; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import DomainError
from ..repositories import CustomerRepository
from ..responses import error, internal_error, json_body, paginated, parse_page_request, success
from ..services import catalog_service, emi_service


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("CUSTOMER_VIEW")
def list_customers_route():
    """
    Query params: search (name/phone/email), customer_type, city, page, page_size.
    """
    try:
        page = CustomerRepository(g.tenant).list(request.args, parse_page_request(request.args))
        return paginated(page)
    except DomainError as e:
        return error(e)


@customers_bp.post("")
@require_auth
@require_permission("CUSTOMER_CREATE")
def create_customer_route():
    try:
        customer = catalog_service.create_customer(g.tenant, json_body())
        return success(customer.to_dict(), status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return internal_error()


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("CUSTOMER_VIEW")
def get_customer_route(customer_id: int):
    try:
        return success(CustomerRepository(g.tenant).get(customer_id).to_dict())
    except DomainError as e:
        return error(e)


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission("CUSTOMER_EDIT")
def update_customer_route(customer_id: int):
    try:
        customer = catalog_service.update_customer(g.tenant, customer_id, json_body())
        return success(customer.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return internal_error()


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission("CUSTOMER_DELETE")
def delete_customer_route(customer_id: int):
    try:
        customer = catalog_service.delete_customer(g.tenant, customer_id)
        return success({"id": customer.id, "deleted": True})
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return internal_error()


@customers_bp.get("/<int:customer_id>/emi-summary")
@require_auth
@require_permission("EMI_MANAGE")
def customer_emi_summary_route(customer_id: int):
    try:
        return success(emi_service.customer_summary(g.tenant, customer_id))
    except DomainError as e:
        return error(e)
