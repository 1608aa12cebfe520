# Overview: Flask API routes for user accounts.

# backend/jewelshop/routes/users.py
"""
User management.

- SUPER_ADMIN: any shop (body shop_id), including other SUPER_ADMINs
- OWNER: own shop only; shop_id in the body is ignored
- Every user may edit their own name, email, and password
"""

from flask import Blueprint, current_app, g

from ..decorators import require_any_permission, require_auth
from ..errors import DomainError
from ..responses import error, internal_error, json_body, pick, require_fields, success
from ..services import auth_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_any_permission("USER_MANAGE", "SUPER_ADMIN_USERS_MANAGE")
def list_users_route():
    try:
        users = auth_service.list_users(g.tenant)
        return success([u.to_dict() for u in users])
    except DomainError as e:
        return error(e)


@users_bp.post("")
@require_auth
@require_any_permission("USER_MANAGE", "SUPER_ADMIN_USERS_MANAGE")
def create_user_route():
    try:
        data = json_body()
        require_fields(data, "username", "password", "name", "role")
        user = auth_service.create_user(
            g.tenant,
            **pick(data, "username", "password", "name", "role", "shop_id", "email"),
        )
        return success(user.to_dict(), status=201)
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return internal_error()


@users_bp.get("/<int:user_id>")
@require_auth
def get_user_route(user_id: int):
    try:
        return success(auth_service.get_user(g.tenant, user_id).to_dict())
    except DomainError as e:
        return error(e)


@users_bp.patch("/<int:user_id>")
@require_auth
def update_user_route(user_id: int):
    """
    Body: name?, email?, password?, role?, is_active?

    Own account: name, email, password. Managers may also set role and
    is_active on the accounts they manage.
    """
    try:
        user = auth_service.update_user(g.tenant, user_id, json_body())
        return success(user.to_dict())
    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return internal_error()


@users_bp.post("/<int:user_id>/deactivate")
@require_auth
@require_any_permission("USER_MANAGE", "SUPER_ADMIN_USERS_MANAGE")
def deactivate_user_route(user_id: int):
    try:
        return success(auth_service.deactivate_user(g.tenant, user_id).to_dict())
    except DomainError as e:
        return error(e)
