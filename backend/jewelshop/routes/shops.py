# Overview: Flask API routes for shop (tenant) administration; platform operators only.

from flask import Blueprint, current_app, g

from ..decorators import require_auth, require_permission
from ..errors import DomainError, ValidationError
from ..responses import error, internal_error, json_body, success
from ..services import shop_service


shops_bp = Blueprint("shops", __name__, url_prefix="/api/admin/shops")


@shops_bp.get("")
@require_auth
@require_permission("SUPER_ADMIN_SHOPS_MANAGE")
def list_shops_route():
    shops = shop_service.list_shops(g.tenant)
    return success([s.to_dict() for s in shops])


@shops_bp.post("")
@require_auth
@require_permission("SUPER_ADMIN_SHOPS_MANAGE")
def create_shop_route():
    try:
        shop = shop_service.create_shop(g.tenant, json_body())
        return success(shop.to_dict(), status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to create shop")
        return internal_error()


@shops_bp.get("/<int:shop_id>")
@require_auth
@require_permission("SUPER_ADMIN_SHOPS_MANAGE")
def get_shop_route(shop_id: int):
    try:
        return success(shop_service.get_shop(g.tenant, shop_id).to_dict())
    except DomainError as e:
        return error(e)


@shops_bp.patch("/<int:shop_id>")
@require_auth
@require_permission("SUPER_ADMIN_SHOPS_MANAGE")
def update_shop_route(shop_id: int):
    try:
        shop = shop_service.update_shop(g.tenant, shop_id, json_body())
        return success(shop.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to update shop")
        return internal_error()


@shops_bp.post("/<int:shop_id>/pause")
@require_auth
@require_permission("SUPER_ADMIN_SHOPS_MANAGE")
def pause_shop_route(shop_id: int):
    """
    Pause or resume a shop.

    Body: {"paused": bool} (default true)
    """
    try:
        paused = json_body().get("paused", True)
        if not isinstance(paused, bool):
            raise ValidationError("paused must be a boolean")
        shop = shop_service.set_paused(g.tenant, shop_id, paused)
        return success(shop.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to pause shop")
        return internal_error()


@shops_bp.delete("/<int:shop_id>")
@require_auth
@require_permission("SUPER_ADMIN_SHOPS_MANAGE")
def delete_shop_route(shop_id: int):
    try:
        shop = shop_service.delete_shop(g.tenant, shop_id)
        return success(shop.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to delete shop")
        return internal_error()
