# Overview: Service-layer operations for stock units; minting, lookups, and valuation.

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..extensions import db
from ..errors import NotFoundOrForeignTenant, ValidationError
from ..models import Product, StockItem
from ..models.inventory import STOCK_AVAILABLE
from ..repositories.catalog import ProductRepository
from ..repositories.rates import RateMasterRepository
from ..repositories.stock import StockItemRepository
from ..tenancy import TenantContext
from .identifier_service import mint_stock_identifiers
from .pricing_service import price_stock_item
from jewelshop.time_utils import to_utc_z, utcnow


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitToCreate:
    purchase_cost_paise: int
    huid: str | None = None


def create_units(
    stock_repo: StockItemRepository,
    *,
    product: Product,
    units: list[UnitToCreate],
    purchase_order_id: int | None = None,
    purchase_order_item_id: int | None = None,
    purchase_date=None,
) -> list[StockItem]:
    """
    Bulk-create AVAILABLE units for one product.

    Carries purchase cost only. Runs inside the caller's unit of work.
    """
    identifiers = mint_stock_identifiers(
        stock_repo,
        product_id=product.id,
        metal_type=product.metal_type,
        purity=product.purity,
        count=len(units),
    )
    purchase_date = purchase_date or utcnow()

    items = []
    for unit, (tag_id, barcode) in zip(units, identifiers):
        items.append(StockItem(
            shop_id=stock_repo.shop_id,
            product_id=product.id,
            purchase_order_id=purchase_order_id,
            purchase_order_item_id=purchase_order_item_id,
            tag_id=tag_id,
            barcode=barcode,
            huid=unit.huid,
            purchase_cost_paise=unit.purchase_cost_paise,
            purchase_date=purchase_date,
            status=STOCK_AVAILABLE,
        ))
    db.session.add_all(items)
    db.session.flush()
    logger.info("Created %d stock units for product %s (shop %s)", len(items), product.id, stock_repo.shop_id)
    return items


def get_stock_item(context: TenantContext, item_id: int) -> StockItem:
    return StockItemRepository(context).get(item_id)


def get_by_tag_id(context: TenantContext, tag_id: str) -> StockItem:
    item = StockItemRepository(context).find_by_tag_id(tag_id)
    if item is None:
        raise NotFoundOrForeignTenant("Stock item", tag_id)
    return item


SCAN_TYPES = ("auto", "barcode", "tag")


def scan_code(context: TenantContext, code: str, scan_type: str = "auto") -> dict:
    """
    Resolve a scanned label to its unit.

    `auto` tries the barcode first and falls back to the tag id.
    """
    code = (code or "").strip()
    if not code:
        raise ValidationError("code is required")
    if scan_type not in SCAN_TYPES:
        raise ValidationError(f"type must be one of {', '.join(SCAN_TYPES)}")

    repo = StockItemRepository(context)
    item = None
    if scan_type in ("auto", "barcode"):
        item = repo.find_by_barcode(code)
    if item is None and scan_type in ("auto", "tag"):
        item = repo.find_by_tag_id(code)
    if item is None:
        raise NotFoundOrForeignTenant("Stock item", code)

    po = item.purchase_order
    return {
        "stock_item": item.to_dict(),
        "product": item.product.to_dict(),
        "purchase_order": None if po is None else {
            "id": po.id,
            "po_number": po.po_number,
            "order_date": to_utc_z(po.order_date),
        },
    }


def find_available_by_product(context: TenantContext, product_id: int, limit: int | None = None) -> list[StockItem]:
    ProductRepository(context).verify_ownership(product_id)
    return StockItemRepository(context).find_available_by_product(product_id, limit)


def quote_stock_item(context: TenantContext, item_id: int) -> dict:
    """Current selling price of one unit, computed from the live rate."""
    item = StockItemRepository(context).get(item_id)
    breakdown, rate = price_stock_item(RateMasterRepository(context), item)
    return {
        "stock_item_id": item.id,
        "tag_id": item.tag_id,
        "status": item.status,
        "selling_price_paise": breakdown.total_paise,
        "breakdown": breakdown.to_dict(),
        "rate": rate.to_dict(),
    }


def inventory_summary(context: TenantContext) -> dict:
    repo = StockItemRepository(context)
    return {
        "inventory_value_paise": repo.get_inventory_value(),
        "counts_by_status": repo.status_counts(),
        "products": repo.summary_by_product(),
    }


def availability(context: TenantContext, product_id: int) -> dict:
    ProductRepository(context).verify_ownership(product_id)
    repo = StockItemRepository(context)
    counts = repo.status_counts(product_id=product_id)
    return {
        "product_id": product_id,
        "counts_by_status": counts,
        "available": counts.get(STOCK_AVAILABLE, 0),
    }
