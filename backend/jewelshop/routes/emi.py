# Overview: Flask API routes for EMI plans and installment payments.

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
from ..services import emi_service


emi_bp = Blueprint("emi", __name__, url_prefix="/api/emi")


@emi_bp.get("")
@require_auth
@require_permission("EMI_MANAGE")
def list_emi_route():
    """Query params: status, customer_id, sales_order_id, page, page_size."""
    try:
        page = emi_service.list_emi_payments(g.tenant, request.args, parse_page_request(request.args))
        return paginated(page)
    except DomainError as e:
        return error(e)


@emi_bp.post("")
@require_auth
@require_permission("EMI_MANAGE")
def create_emi_route():
    """
    Body: customer_id, total_amount_paise, number_of_installments,
    installment_amount_paise, emi_start_date (YYYY-MM-DD),
    sales_order_id?, interest_rate_bps?, notes?
    """
    try:
        data = json_body()
        require_fields(
            data,
            "customer_id", "total_amount_paise", "number_of_installments",
            "installment_amount_paise", "emi_start_date",
        )
        plan = emi_service.create_emi_payment(
            g.tenant,
            **pick(
                data,
                "customer_id", "total_amount_paise", "number_of_installments",
                "installment_amount_paise", "emi_start_date",
                "sales_order_id", "interest_rate_bps", "notes",
            ),
        )
        return success(plan.to_dict(include_installments=True), status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to create EMI plan")
        return internal_error()


@emi_bp.get("/upcoming")
@require_auth
@require_permission("EMI_MANAGE")
def upcoming_route():
    """Unpaid installments due within ?days= (default 7)."""
    days = request.args.get("days", 7, type=int)
    try:
        installments = emi_service.upcoming_installments(g.tenant, days)
        return success([i.to_dict() for i in installments])
    except DomainError as e:
        return error(e)


@emi_bp.get("/overdue")
@require_auth
@require_permission("EMI_MANAGE")
def overdue_route():
    try:
        plans = emi_service.overdue_payments(g.tenant)
        return success([p.to_dict(include_installments=True) for p in plans])
    except DomainError as e:
        return error(e)


@emi_bp.post("/mark-overdue")
@require_auth
@require_permission("EMI_MANAGE")
def mark_overdue_route():
    """Run the overdue sweep for the caller's shop."""
    try:
        return success(emi_service.mark_overdue_installments(g.tenant))
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to mark overdue installments")
        return internal_error()


@emi_bp.get("/<int:emi_id>")
@require_auth
@require_permission("EMI_MANAGE")
def get_emi_route(emi_id: int):
    try:
        return success(emi_service.get_emi_payment(g.tenant, emi_id).to_dict(include_installments=True))
    except DomainError as e:
        return error(e)


@emi_bp.post("/<int:emi_id>/pay")
@require_auth
@require_permission("EMI_MANAGE")
def pay_installment_route(emi_id: int):
    """Body: installment_number, amount_paise, payment_method?, payment_date?"""
    try:
        data = json_body()
        require_fields(data, "installment_number", "amount_paise")
        plan = emi_service.pay_installment(
            g.tenant,
            emi_id,
            **pick(data, "installment_number", "amount_paise", "payment_method", "payment_date"),
        )
        return success(plan.to_dict(include_installments=True))
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to record EMI installment payment")
        return internal_error()
