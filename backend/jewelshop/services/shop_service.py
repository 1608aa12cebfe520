# Overview: Service-layer operations for shops (tenants); platform-operator only.

"""
Shop lifecycle. These operations work across tenants, so they do not go
through ShopScopedRepository; every entry point requires a SUPER_ADMIN
context instead.
"""

from __future__ import annotations

import logging

from ..errors import ConflictError, NotFoundOrForeignTenant, PermissionDenied
from ..extensions import db
from ..models import Shop
from ..tenancy import TenantContext
from ..validation import ModelValidationPolicy, validate_payload
from . import audit_service
from .concurrency import lock_for_update, unit_of_work
from .session_service import revoke_shop_sessions
from jewelshop.time_utils import utcnow


logger = logging.getLogger(__name__)

AUDIT_MODULE = "SHOPS"

SHOP_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "legal_name", "gstin", "pan", "phone", "email",
        "address", "city", "state", "is_active",
        "subscription_start", "subscription_end",
    },
    required_on_create={"name"},
)


def _require_super_admin(context: TenantContext | None) -> None:
    if context is not None and not context.is_super_admin:
        raise PermissionDenied("SUPER_ADMIN_SHOPS_MANAGE", context.role)


def _load(shop_id: int, *, for_update: bool = False) -> Shop:
    query = db.session.query(Shop).filter(Shop.id == shop_id, Shop.deleted_at.is_(None))
    if for_update:
        query = lock_for_update(query)
    shop = query.first()
    if shop is None:
        raise NotFoundOrForeignTenant("Shop", shop_id)
    return shop


def _audit(context, action, shop, before=None):
    if context is None:
        return
    audit_service.log_audit(
        context,
        action=action,
        module=AUDIT_MODULE,
        entity_id=shop.id,
        before_data=before,
        after_data=shop.to_dict(),
        shop_id=shop.id,
    )


def _check_gstin(gstin, shop_id=None) -> None:
    if not gstin:
        return
    clash = db.session.query(Shop).filter(Shop.gstin == gstin).first()
    if clash is not None and clash.id != shop_id:
        raise ConflictError("A shop with this GSTIN already exists")


def create_shop(context: TenantContext | None, payload: dict) -> Shop:
    """context None is the CLI bootstrap path."""
    _require_super_admin(context)
    patch = validate_payload(model=Shop, payload=payload, policy=SHOP_POLICY, partial=False)

    def _op():
        _check_gstin(patch.get("gstin"))
        shop = Shop(**patch)
        db.session.add(shop)
        db.session.flush()
        _audit(context, "CREATE", shop)
        return shop

    shop = unit_of_work(_op)
    logger.info("Shop %s created: %s", shop.id, shop.name)
    return shop


def list_shops(context: TenantContext | None, *, include_deleted: bool = False) -> list[Shop]:
    _require_super_admin(context)
    query = db.session.query(Shop)
    if not include_deleted:
        query = query.filter(Shop.deleted_at.is_(None))
    return query.order_by(Shop.id).all()


def get_shop(context: TenantContext, shop_id: int) -> Shop:
    _require_super_admin(context)
    return _load(shop_id)


def update_shop(context: TenantContext, shop_id: int, payload: dict) -> Shop:
    _require_super_admin(context)
    patch = validate_payload(model=Shop, payload=payload, policy=SHOP_POLICY, partial=True)

    def _op():
        shop = _load(shop_id, for_update=True)
        if "gstin" in patch:
            _check_gstin(patch["gstin"], shop.id)
        before = shop.to_dict()
        for key, value in patch.items():
            setattr(shop, key, value)
        if patch.get("is_active") is False:
            revoke_shop_sessions(shop.id, "Shop deactivated")
        db.session.flush()
        _audit(context, "UPDATE", shop, before)
        return shop

    return unit_of_work(_op)


def set_paused(context: TenantContext, shop_id: int, paused: bool) -> Shop:
    """Pausing blocks logins and revokes live sessions; data is untouched."""
    _require_super_admin(context)

    def _op():
        shop = _load(shop_id, for_update=True)
        before = shop.to_dict()
        shop.is_paused = paused
        if paused:
            revoke_shop_sessions(shop.id, "Shop paused")
        db.session.flush()
        _audit(context, "STATUS_CHANGE", shop, before)
        return shop

    shop = unit_of_work(_op)
    logger.info("Shop %s %s", shop.id, "paused" if paused else "resumed")
    return shop


def delete_shop(context: TenantContext, shop_id: int) -> Shop:
    """Soft delete only. Rows owned by the shop are kept."""
    _require_super_admin(context)

    def _op():
        shop = _load(shop_id, for_update=True)
        before = shop.to_dict()
        shop.deleted_at = utcnow()
        shop.is_active = False
        revoke_shop_sessions(shop.id, "Shop deleted")
        db.session.flush()
        _audit(context, "DELETE", shop, before)
        return shop

    return unit_of_work(_op)
