# Overview: Flask API routes for the metal rate master.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import DomainError
from ..repositories import RateMasterRepository
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
from ..services import pricing_service


rates_bp = Blueprint("rates", __name__, url_prefix="/api/rates")


@rates_bp.get("")
@require_auth
@require_permission("RATE_MASTER_VIEW")
def list_rates_route():
    """All rate rows, newest first. Filters: metal_type, purity, is_active, rate_source."""
    try:
        page = RateMasterRepository(g.tenant).list(request.args, parse_page_request(request.args))
        return paginated(page)
    except DomainError as e:
        return error(e)


@rates_bp.post("")
@require_auth
@require_permission("RATE_MASTER_EDIT")
def create_rate_route():
    """
    Body: metal_type, purity, rate_per_gram_paise, effective_date?,
    valid_until?, rate_source?, is_active?
    """
    try:
        data = json_body()
        require_fields(data, "metal_type", "purity", "rate_per_gram_paise")
        rate = pricing_service.create_rate(
            g.tenant,
            **pick(
                data,
                "metal_type", "purity", "rate_per_gram_paise",
                "effective_date", "valid_until", "rate_source", "is_active",
            ),
        )
        return success(rate.to_dict(), status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to create rate")
        return internal_error()


@rates_bp.get("/current")
@require_auth
@require_permission("RATE_MASTER_VIEW")
def current_rates_route():
    """
    Current active rates.

    With ?metal_type=&purity= returns the single current rate (400 if none).
    """
    metal_type = request.args.get("metal_type")
    purity = request.args.get("purity")
    try:
        if metal_type and purity:
            return success(pricing_service.get_current_rate(g.tenant, metal_type, purity).to_dict())
        return success([r.to_dict() for r in pricing_service.current_rates(g.tenant)])
    except DomainError as e:
        return error(e)


@rates_bp.get("/<int:rate_id>")
@require_auth
@require_permission("RATE_MASTER_VIEW")
def get_rate_route(rate_id: int):
    try:
        return success(pricing_service.get_rate(g.tenant, rate_id).to_dict())
    except DomainError as e:
        return error(e)


@rates_bp.put("/<int:rate_id>")
@require_auth
@require_permission("RATE_MASTER_EDIT")
def update_rate_route(rate_id: int):
    """Body: valid_until?, rate_source?, is_active?"""
    try:
        rate = pricing_service.update_rate(g.tenant, rate_id, json_body())
        return success(rate.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to update rate")
        return internal_error()


@rates_bp.post("/<int:rate_id>/price-preview")
@require_auth
@require_permission("RATE_MASTER_VIEW")
def price_preview_route(rate_id: int):
    """
    Selling price of every product on the rate's metal and purity, at the
    current rate and at this one. Read-only.

    Body: collection?, product_ids?
    """
    try:
        data = json_body()
        return success(pricing_service.price_impact(g.tenant, rate_id, pick(data, "collection", "product_ids")))
    except DomainError as e:
        return error(e)


@rates_bp.get("/history")
@require_auth
@require_permission("RATE_MASTER_VIEW")
def rate_history_route():
    try:
        data = dict(request.args)
        require_fields(data, "metal_type", "purity")
        limit = request.args.get("limit", 50, type=int)
        rates = pricing_service.rate_history(g.tenant, data["metal_type"], data["purity"], limit=limit)
        return success([r.to_dict() for r in rates])
    except DomainError as e:
        return error(e)
