# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import g, request

from .errors import AuthenticationRequired, NoShopContext, PermissionDenied
from .permissions import has_permission
from .responses import error
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, "current_user") and hasattr(g, "tenant")


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets on flask.g:
    - g.current_user: the authenticated User
    - g.tenant: TenantContext(shop_id, user_id, role) taken from the session
    - g.session_context: the full SessionContext

    A SUPER_ADMIN may act inside one shop by sending X-Shop-Id.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return error(AuthenticationRequired())

        context = session_service.validate_session(token)
        if context is None:
            return error(AuthenticationRequired("Invalid or expired token"))

        tenant = context.tenant
        shop_header = request.headers.get("X-Shop-Id")
        if shop_header and tenant.is_super_admin:
            try:
                tenant = tenant.for_shop(int(shop_header))
            except ValueError:
                return error(NoShopContext("X-Shop-Id must be an integer"))

        g.current_user = context.user
        g.tenant = tenant
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require the caller's role to hold permission_code."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error(AuthenticationRequired())

            role = g.tenant.role
            if not has_permission(role, permission_code):
                return error(PermissionDenied(permission_code, role))

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_any_permission(*permission_codes):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error(AuthenticationRequired())

            role = g.tenant.role
            if not any(has_permission(role, code) for code in permission_codes):
                return error(PermissionDenied(" or ".join(permission_codes), role))

            return f(*args, **kwargs)

        return decorated_function
    return decorator
