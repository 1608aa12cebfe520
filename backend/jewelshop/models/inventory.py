from __future__ import annotations

from ..extensions import db
from jewelshop.time_utils import to_utc_z


RATE_SOURCES = {"MARKET", "MANUAL", "API"}

STOCK_AVAILABLE = "AVAILABLE"
STOCK_RESERVED = "RESERVED"
STOCK_SOLD = "SOLD"

STOCK_STATUSES = {STOCK_AVAILABLE, STOCK_RESERVED, STOCK_SOLD}

# Allowed unit lifecycle edges. SOLD has no outgoing edge.
STOCK_TRANSITIONS = {
    STOCK_AVAILABLE: {STOCK_RESERVED, STOCK_SOLD},
    STOCK_RESERVED: {STOCK_SOLD, STOCK_AVAILABLE},
    STOCK_SOLD: set(),
}


class RateMaster(db.Model):
    """
    Time-versioned price per gram for a (metal_type, purity) pair.

    INVARIANT: at most one active row per (shop, metal_type, purity).
    Older rows are deactivated, never deleted, so history is retained.
    """
    __tablename__ = "rate_master"
    __table_args__ = (
        db.Index("ix_rate_master_lookup", "shop_id", "metal_type", "purity", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    metal_type = db.Column(db.String(16), nullable=False)
    purity = db.Column(db.String(16), nullable=False)
    rate_per_gram_paise = db.Column(db.Integer, nullable=False)

    effective_date = db.Column(db.DateTime(timezone=True), nullable=False)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)
    rate_source = db.Column(db.String(16), nullable=False, default="MANUAL")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "metal_type": self.metal_type,
            "purity": self.purity,
            "rate_per_gram_paise": self.rate_per_gram_paise,
            "effective_date": to_utc_z(self.effective_date),
            "valid_until": to_utc_z(self.valid_until),
            "rate_source": self.rate_source,
            "is_active": self.is_active,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


db.Index(
    "uq_rate_master_one_active",
    RateMaster.shop_id,
    RateMaster.metal_type,
    RateMaster.purity,
    unique=True,
    sqlite_where=RateMaster.is_active == True,  # noqa: E712
    postgresql_where=RateMaster.is_active == True,  # noqa: E712
)


class StockItem(db.Model):
    """
    One physical inventory unit.

    WHY per-unit rows: every piece has its own tag, HUID, and purchase cost,
    and is never fungible with another piece of the same design.

    LIFECYCLE (see STOCK_TRANSITIONS):
    AVAILABLE -> RESERVED -> SOLD, AVAILABLE -> SOLD, RESERVED -> AVAILABLE.
    SOLD rows are immutable.

    sales_order_line_id points at the one order line currently holding the
    unit. It is a plain unique column (no FK) because sales_order_lines
    already references stock_items.
    """
    __tablename__ = "stock_items"
    __table_args__ = (
        db.Index("ix_stock_items_shop_status", "shop_id", "status"),
        db.Index("ix_stock_items_fifo", "shop_id", "product_id", "status", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True, index=True)
    purchase_order_item_id = db.Column(db.Integer, db.ForeignKey("purchase_order_items.id"), nullable=True)
    sales_order_line_id = db.Column(db.Integer, nullable=True, unique=True)

    tag_id = db.Column(db.String(32), nullable=False, unique=True)
    barcode = db.Column(db.String(32), nullable=False, unique=True)
    huid = db.Column(db.String(16), nullable=True)

    # Cost only. Selling price is derived at sale time.
    purchase_cost_paise = db.Column(db.Integer, nullable=False)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=STOCK_AVAILABLE)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version_id}

    product = db.relationship("Product", backref=db.backref("stock_items", lazy=True))
    purchase_order = db.relationship("PurchaseOrder")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "product_id": self.product_id,
            "purchase_order_id": self.purchase_order_id,
            "purchase_order_item_id": self.purchase_order_item_id,
            "sales_order_line_id": self.sales_order_line_id,
            "tag_id": self.tag_id,
            "barcode": self.barcode,
            "huid": self.huid,
            "purchase_cost_paise": self.purchase_cost_paise,
            "purchase_date": to_utc_z(self.purchase_date),
            "sale_date": to_utc_z(self.sale_date),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
