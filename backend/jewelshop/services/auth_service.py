# Overview: Service-layer operations for user accounts; password hashing, user creation, and login.

"""
Authentication Service

Every action must be attributable, so every person gets their own login.

SECURITY NOTES:
- Passwords hashed with bcrypt (BCRYPT_ROUNDS, 12 by default)
- Minimum 8 characters with upper, lower, digit, and special character
- Usernames are globally unique; the session carries the shop
- Login fails for inactive users and for users whose shop is paused,
  inactive, or deleted
"""

from __future__ import annotations

import logging
import re

import bcrypt
from flask import current_app

from ..errors import (
    AuthenticationRequired,
    ConflictError,
    NotFoundOrForeignTenant,
    PermissionDenied,
    ValidationError,
)
from ..extensions import db
from ..models import Shop, User
from ..models.auth import ROLE_ACCOUNTS, ROLE_OWNER, ROLE_SALES, ROLE_SUPER_ADMIN, ROLES
from ..tenancy import TenantContext
from . import audit_service, session_service
from .concurrency import unit_of_work
from jewelshop.time_utils import utcnow


logger = logging.getLogger(__name__)


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt-hash. Stored as text."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def _create_user_row(*, username: str, password: str, name: str, role: str,
                     shop_id: int | None, email: str | None) -> User:
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(sorted(ROLES))}")
    if role == ROLE_SUPER_ADMIN and shop_id is not None:
        raise ValidationError("Platform administrators are not attached to a shop")
    if role != ROLE_SUPER_ADMIN and shop_id is None:
        raise ValidationError("shop_id is required for shop users")
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if not (name or "").strip():
        raise ValidationError("name is required")

    if shop_id is not None:
        shop = db.session.get(Shop, shop_id)
        if shop is None or shop.deleted_at is not None:
            raise ValidationError("Shop not found")

    if db.session.query(User).filter(User.username == username).first():
        raise ConflictError("Username already exists")

    user = User(
        shop_id=shop_id,
        username=username,
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    return user


def create_user(
    context: TenantContext | None,
    *,
    username: str,
    password: str,
    name: str,
    role: str,
    shop_id: int | None = None,
    email: str | None = None,
) -> User:
    """
    Create a login.

    SUPER_ADMIN may create users in any shop (and other super admins);
    OWNER only in their own shop and never a SUPER_ADMIN. A None context
    is the CLI bootstrap path.
    """
    if context is not None and not context.is_super_admin:
        if context.role != ROLE_OWNER:
            raise PermissionDenied("USER_MANAGE", context.role)
        if role == ROLE_SUPER_ADMIN:
            raise PermissionDenied("SUPER_ADMIN_USERS_MANAGE", context.role)
        shop_id = context.require_shop()

    def _op():
        user = _create_user_row(
            username=username, password=password, name=name,
            role=role, shop_id=shop_id, email=email,
        )
        if context is not None:
            audit_service.log_audit(
                context,
                action="CREATE",
                module="USERS",
                entity_id=user.id,
                after_data=user.to_dict(),
                shop_id=user.shop_id,
            )
        return user

    return unit_of_work(_op)


def list_users(context: TenantContext) -> list[User]:
    query = db.session.query(User)
    if not context.is_super_admin:
        query = query.filter(User.shop_id == context.require_shop())
    elif context.shop_id is not None:
        query = query.filter(User.shop_id == context.shop_id)
    return query.order_by(User.id).all()


# ----------------------------------------------------------------------
# Account maintenance
# ----------------------------------------------------------------------

PROFILE_FIELDS = frozenset({"name", "email", "password"})
MANAGED_FIELDS = PROFILE_FIELDS | {"role", "is_active"}
OWNER_ASSIGNABLE_ROLES = frozenset({ROLE_SALES, ROLE_ACCOUNTS})


def _can_manage(context: TenantContext, user: User) -> bool:
    if context.is_super_admin:
        return True
    return context.role == ROLE_OWNER and user.shop_id == context.shop_id


def get_user(context: TenantContext, user_id: int) -> User:
    """A user visible to the caller: themselves, or one they manage."""
    user = db.session.get(User, user_id)
    if user is None or (user.id != context.user_id and not _can_manage(context, user)):
        raise NotFoundOrForeignTenant("User", user_id)
    return user


def update_user(context: TenantContext, user_id: int, payload: dict) -> User:
    """
    Edit a login.

    Anyone may change their own name, email, and password. Role and active
    flag are set only by a manager, and never on the manager's own account.
    An OWNER assigns SALES or ACCOUNTS only.
    """
    unknown = sorted(set(payload) - MANAGED_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}")
    if not payload:
        raise ValidationError("Nothing to update")

    def _op():
        user = get_user(context, user_id)
        own_account = user.id == context.user_id
        privileged = sorted(set(payload) - PROFILE_FIELDS)
        if privileged and (own_account or not _can_manage(context, user)):
            raise PermissionDenied("USER_MANAGE", context.role)

        before = user.to_dict()
        if "name" in payload:
            name = (payload["name"] or "").strip()
            if not name:
                raise ValidationError("name is required")
            user.name = name
        if "email" in payload:
            user.email = payload["email"] or None
        if "password" in payload:
            validate_password_strength(payload["password"] or "")
            user.password_hash = hash_password(payload["password"])
        if "role" in payload:
            _apply_role(context, user, payload["role"])
        if "is_active" in payload:
            if not isinstance(payload["is_active"], bool):
                raise ValidationError("is_active must be a boolean")
            user.is_active = payload["is_active"]
            if not user.is_active:
                session_service.revoke_user_sessions(user.id, "User account deactivated")

        db.session.flush()
        audit_service.log_audit(
            context,
            action="UPDATE",
            module="USERS",
            entity_id=user.id,
            before_data=before,
            after_data=user.to_dict(),
            shop_id=user.shop_id,
        )
        return user

    return unit_of_work(_op)


def _apply_role(context: TenantContext, user: User, role: str) -> None:
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(sorted(ROLES))}")
    if not context.is_super_admin and role not in OWNER_ASSIGNABLE_ROLES:
        raise PermissionDenied("SUPER_ADMIN_USERS_MANAGE", context.role)
    if (role == ROLE_SUPER_ADMIN) != (user.shop_id is None):
        raise ValidationError("Platform administrators are not attached to a shop")
    user.role = role


def deactivate_user(context: TenantContext, user_id: int) -> User:
    """Disable a login and end its live sessions."""
    if user_id == context.user_id:
        raise ValidationError("Cannot deactivate your own account")
    user = get_user(context, user_id)
    if not _can_manage(context, user):
        raise PermissionDenied("USER_MANAGE", context.role)
    user = update_user(context, user_id, {"is_active": False})
    logger.info("Deactivated user %s", user.username)
    return user


def authenticate(username: str, password: str) -> User:
    """
    Check credentials and return the user.

    Raises AuthenticationRequired with one generic message for every
    failure so callers cannot tell which part was wrong.
    """
    user = db.session.query(User).filter(
        User.username == (username or "").strip(),
        User.is_active.is_(True),
    ).first()

    if user is None or not verify_password(password or "", user.password_hash):
        raise AuthenticationRequired("Invalid username or password")

    if user.shop_id is not None:
        shop = db.session.get(Shop, user.shop_id)
        if shop is None or not shop.is_operational:
            logger.info("Login refused for user %s: shop %s not operational", user.id, user.shop_id)
            raise AuthenticationRequired("Shop is not active")

    user.last_login_at = utcnow()
    db.session.commit()
    return user
