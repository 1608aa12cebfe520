# Overview: Flask API routes for login, logout, and the current session.

# backend/jewelshop/routes/auth.py
"""
Authentication routes.

SECURITY:
- Login returns a bearer token once; only its SHA-256 is stored
- All other routes send it as "Authorization: Bearer <token>"
- Login is refused for users of a paused, inactive, or deleted shop
"""

from flask import Blueprint, current_app, g, request

from ..decorators import bearer_token, require_auth
from ..errors import DomainError, ValidationError
from ..models import Shop
from ..extensions import db
from ..permissions import permissions_for_role
from ..responses import error, internal_error, json_body, success
from ..services import auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, shop_id):
    shop = db.session.get(Shop, shop_id) if shop_id else None
    return {
        "user": user.to_dict(),
        "shop": shop.to_dict() if shop else None,
        "permissions": permissions_for_role(user.role),
    }


@auth_bp.post("/login")
def login_route():
    """
    Exchange username/password for a session token.

    Body: {"username": str, "password": str}
    """
    try:
        data = json_body()
        username = data.get("username")
        password = data.get("password")
        if not username or not password:
            raise ValidationError("username and password required")

        user = auth_service.authenticate(username, password)
        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        payload = _session_payload(user, session.shop_id)
        payload["token"] = token
        payload["expires_at"] = session.to_dict()["expires_at"]
        return success(payload)

    except DomainError as e:
        return error(e)
    except Exception:
        current_app.logger.exception("Failed to log in")
        return internal_error()


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(bearer_token())
        return success({"logged_out": True})
    except Exception:
        current_app.logger.exception("Failed to log out")
        return internal_error()


@auth_bp.get("/session")
@require_auth
def session_route():
    """Current user, shop, and permission codes."""
    return success(_session_payload(g.current_user, g.tenant.shop_id))
