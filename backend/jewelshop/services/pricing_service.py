# Overview: Service-layer operations for rate master and dynamic pricing.

"""
Dynamic Pricing

WHY: A piece's selling price is never stored. It is computed at the moment
of sale from the live RateMaster rate for its (metal_type, purity):

    effective_weight = net_weight * (1 + wastage% / 100)
    metal_amount     = effective_weight * rate_per_gram
    price            = metal_amount + making_charges + stone_value

UNITS: weights in mg, wastage in bps, money in paise. All arithmetic is
integer; the single division rounds half-up to the nearest paisa.

RATE MASTER: creating an active rate deactivates the previous active rate
for the same (metal_type, purity) in the same transaction. History rows are
kept (is_active=False); their per-gram amounts are never edited.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

from ..errors import RateNotConfigured, ValidationError
from ..models import Product, RateMaster, StockItem
from ..models.catalog import METAL_TYPES
from ..models.inventory import RATE_SOURCES
from ..repositories.catalog import ProductRepository
from ..repositories.rates import RateMasterRepository
from ..tenancy import TenantContext
from . import audit_service
from .concurrency import unit_of_work
from jewelshop.time_utils import parse_iso_datetime, utcnow


AUDIT_MODULE = "RATE_MASTER"

MG_PER_GRAM = 1000
BPS_DENOMINATOR = 10_000


def round_half_up_div(numerator: int, denominator: int) -> int:
    """Integer division rounding .5 away from zero (inputs are non-negative)."""
    return (2 * numerator + denominator) // (2 * denominator)


@dataclass(frozen=True)
class PriceBreakdown:
    net_weight_mg: int
    wastage_bps: int
    effective_weight_mg: int
    rate_per_gram_paise: int
    metal_amount_paise: int
    making_charges_paise: int
    stone_value_paise: int
    total_paise: int

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_price(
    *,
    net_weight_mg: int,
    wastage_bps: int,
    rate_per_gram_paise: int,
    making_charges_paise: int = 0,
    stone_value_paise: int = 0,
) -> PriceBreakdown:
    if net_weight_mg < 0 or wastage_bps < 0 or rate_per_gram_paise < 0:
        raise ValidationError("Weight, wastage, and rate must be non-negative")
    if making_charges_paise < 0 or stone_value_paise < 0:
        raise ValidationError("Making charges and stone value must be non-negative")

    weight_factor = BPS_DENOMINATOR + wastage_bps
    effective_weight_mg = round_half_up_div(net_weight_mg * weight_factor, BPS_DENOMINATOR)
    metal_amount = round_half_up_div(
        net_weight_mg * weight_factor * rate_per_gram_paise,
        MG_PER_GRAM * BPS_DENOMINATOR,
    )
    return PriceBreakdown(
        net_weight_mg=net_weight_mg,
        wastage_bps=wastage_bps,
        effective_weight_mg=effective_weight_mg,
        rate_per_gram_paise=rate_per_gram_paise,
        metal_amount_paise=metal_amount,
        making_charges_paise=making_charges_paise,
        stone_value_paise=stone_value_paise,
        total_paise=metal_amount + making_charges_paise + stone_value_paise,
    )


def price_product(rate_repo: RateMasterRepository, product: Product) -> tuple[PriceBreakdown, RateMaster]:
    rate = rate_repo.get_current_rate(product.metal_type, product.purity)
    if rate is None:
        raise RateNotConfigured(product.metal_type, product.purity)
    breakdown = calculate_price(
        net_weight_mg=product.net_weight_mg,
        wastage_bps=product.wastage_bps,
        rate_per_gram_paise=rate.rate_per_gram_paise,
        making_charges_paise=product.making_charges_paise,
        stone_value_paise=product.stone_value_paise,
    )
    return breakdown, rate


def price_stock_item(rate_repo: RateMasterRepository, item: StockItem) -> tuple[PriceBreakdown, RateMaster]:
    return price_product(rate_repo, item.product)


def get_price_breakdown(context: TenantContext, product_id: int) -> dict:
    product = ProductRepository(context).get(product_id)
    breakdown, rate = price_product(RateMasterRepository(context), product)
    return {
        "product_id": product.id,
        "product_name": product.name,
        "breakdown": breakdown.to_dict(),
        "rate": rate.to_dict(),
    }


# ----------------------------------------------------------------------
# Rate master
# ----------------------------------------------------------------------

def _parse_datetime(value, field: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def create_rate(
    context: TenantContext,
    *,
    metal_type: str,
    purity: str,
    rate_per_gram_paise: int,
    effective_date=None,
    valid_until=None,
    rate_source: str = "MANUAL",
    is_active: bool = True,
) -> RateMaster:
    """
    Record a new rate. An active rate replaces the current active rate for
    the same (metal_type, purity) atomically.
    """
    repo = RateMasterRepository(context)

    metal_type = (metal_type or "").upper()
    purity = (purity or "").strip().upper()
    if metal_type not in METAL_TYPES:
        raise ValidationError(f"metal_type must be one of {', '.join(sorted(METAL_TYPES))}")
    if not purity:
        raise ValidationError("purity is required")
    if rate_source not in RATE_SOURCES:
        raise ValidationError(f"rate_source must be one of {', '.join(sorted(RATE_SOURCES))}")
    if not isinstance(rate_per_gram_paise, int) or isinstance(rate_per_gram_paise, bool) or rate_per_gram_paise <= 0:
        raise ValidationError("rate_per_gram_paise must be a positive integer")

    effective = _parse_datetime(effective_date, "effective_date") or utcnow()
    until = _parse_datetime(valid_until, "valid_until")
    if until is not None and until <= effective:
        raise ValidationError("valid_until must be after effective_date")

    def _op():
        if is_active:
            for previous in repo.deactivate_current(metal_type, purity):
                audit_service.log_update(context, AUDIT_MODULE, previous, {**previous.to_dict(), "is_active": True})
        rate = repo.create(
            metal_type=metal_type,
            purity=purity,
            rate_per_gram_paise=rate_per_gram_paise,
            effective_date=effective,
            valid_until=until,
            rate_source=rate_source,
            is_active=bool(is_active),
            created_by_user_id=context.user_id,
        )
        audit_service.log_create(context, AUDIT_MODULE, rate)
        return rate

    return unit_of_work(_op)


def get_current_rate(context: TenantContext, metal_type: str, purity: str) -> RateMaster:
    rate = RateMasterRepository(context).get_current_rate(metal_type.upper(), purity.upper())
    if rate is None:
        raise RateNotConfigured(metal_type.upper(), purity.upper())
    return rate


def current_rates(context: TenantContext) -> list[RateMaster]:
    return RateMasterRepository(context).current_rates()


def rate_history(context: TenantContext, metal_type: str, purity: str, limit: int = 50) -> list[RateMaster]:
    return RateMasterRepository(context).history(metal_type.upper(), purity.upper(), limit=limit)


def get_rate(context: TenantContext, rate_id: int) -> RateMaster:
    return RateMasterRepository(context).get(rate_id)


RATE_EDITABLE_FIELDS = frozenset({"valid_until", "rate_source", "is_active"})


def update_rate(context: TenantContext, rate_id: int, payload: dict) -> RateMaster:
    """
    Amend a recorded rate's validity window, source, or active flag.

    The metal, purity, and per-gram amount of a row are fixed; a new price is
    a new rate. Activating a row deactivates the pair's current active row.
    """
    repo = RateMasterRepository(context)

    fixed = sorted(set(payload) - RATE_EDITABLE_FIELDS)
    if fixed:
        raise ValidationError(
            f"Cannot edit {', '.join(fixed)}; record a new rate instead",
            {"fields": fixed},
        )
    if not payload:
        raise ValidationError("Nothing to update")

    patch = {}
    if "rate_source" in payload:
        if payload["rate_source"] not in RATE_SOURCES:
            raise ValidationError(f"rate_source must be one of {', '.join(sorted(RATE_SOURCES))}")
        patch["rate_source"] = payload["rate_source"]
    if "valid_until" in payload:
        patch["valid_until"] = _parse_datetime(payload["valid_until"], "valid_until")
    if "is_active" in payload:
        if not isinstance(payload["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        patch["is_active"] = payload["is_active"]

    def _op():
        rate = repo.verify_ownership(rate_id, for_update=True)
        until = patch.get("valid_until", rate.valid_until)
        if until is not None and until <= rate.effective_date:
            raise ValidationError("valid_until must be after effective_date")
        before = rate.to_dict()
        if patch.get("is_active") and not rate.is_active:
            for previous in repo.deactivate_current(rate.metal_type, rate.purity):
                audit_service.log_update(context, AUDIT_MODULE, previous, {**previous.to_dict(), "is_active": True})
        repo.update(rate.id, **patch)
        audit_service.log_update(context, AUDIT_MODULE, rate, before)
        return rate

    return unit_of_work(_op)


def price_impact(context: TenantContext, rate_id: int, filters: dict | None = None) -> dict:
    """
    Preview of what each matching product would sell for at a given rate.

    Selling prices are never stored, so nothing is written: each product is
    priced at its pair's current rate and at the chosen rate side by side.
    Filters: collection, product_ids.
    """
    filters = filters or {}
    product_ids = filters.get("product_ids")
    if product_ids is not None and (
        not isinstance(product_ids, list)
        or not all(isinstance(i, int) and not isinstance(i, bool) for i in product_ids)
    ):
        raise ValidationError("product_ids must be a list of integers")
    rate_repo = RateMasterRepository(context)
    rate = rate_repo.get(rate_id)
    current = rate_repo.get_current_rate(rate.metal_type, rate.purity)

    products = ProductRepository(context).matching_rate_pair(
        rate.metal_type,
        rate.purity,
        collection=filters.get("collection"),
        product_ids=product_ids,
    )

    changes = []
    for product in products:
        proposed = _price_at(product, rate.rate_per_gram_paise)
        present = _price_at(product, current.rate_per_gram_paise) if current else None
        changes.append({
            "product_id": product.id,
            "product_name": product.name,
            "barcode": product.barcode,
            "current_rate_per_gram_paise": current.rate_per_gram_paise if current else None,
            "current_price_paise": present.total_paise if present else None,
            "new_rate_per_gram_paise": rate.rate_per_gram_paise,
            "new_price_paise": proposed.total_paise,
            "difference_paise": proposed.total_paise - present.total_paise if present else None,
            "breakdown": proposed.to_dict(),
        })

    return {
        "rate": rate.to_dict(),
        "current_rate": current.to_dict() if current else None,
        "total_products": len(changes),
        "price_changes": changes,
    }


def _price_at(product: Product, rate_per_gram_paise: int) -> PriceBreakdown:
    return calculate_price(
        net_weight_mg=product.net_weight_mg,
        wastage_bps=product.wastage_bps,
        rate_per_gram_paise=rate_per_gram_paise,
        making_charges_paise=product.making_charges_paise,
        stone_value_paise=product.stone_value_paise,
    )
