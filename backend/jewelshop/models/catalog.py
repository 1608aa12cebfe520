from __future__ import annotations

from ..extensions import db
from jewelshop.time_utils import to_utc_z


CUSTOMER_TYPES = {"RETAIL", "WHOLESALE", "VIP"}
METAL_TYPES = {"GOLD", "SILVER", "PLATINUM"}


class Customer(db.Model):
    """
    Shop customer.

    MULTI-TENANT: Phone numbers are unique within a shop, not globally.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "phone", name="uq_customers_shop_phone"),
        db.Index("ix_customers_shop_name", "shop_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(120), nullable=True)
    gstin = db.Column(db.String(15), nullable=True)

    customer_type = db.Column(db.String(16), nullable=False, default="RETAIL")
    credit_limit_paise = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "city": self.city,
            "gstin": self.gstin,
            "customer_type": self.customer_type,
            "credit_limit_paise": self.credit_limit_paise,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """Supplier (karigar / wholesaler) that purchase orders are placed with."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "name", name="uq_suppliers_shop_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    gstin = db.Column(db.String(15), nullable=True)
    address = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "gstin": self.gstin,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Catalog definition of a jewellery design.

    WHY no selling price column: the sell price of a piece is computed at
    sale time from the live RateMaster rate, the net weight, wastage,
    making charges, and stone value. Nothing here is frozen.

    UNITS:
    - weights in milligrams
    - wastage in basis points (1250 = 12.50%)
    - money in paise
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "barcode", name="uq_products_shop_barcode"),
        db.Index("ix_products_shop_metal", "shop_id", "metal_type", "purity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    metal_type = db.Column(db.String(16), nullable=False)
    purity = db.Column(db.String(16), nullable=False)

    gross_weight_mg = db.Column(db.Integer, nullable=False, default=0)
    net_weight_mg = db.Column(db.Integer, nullable=False)
    wastage_bps = db.Column(db.Integer, nullable=False, default=0)
    making_charges_paise = db.Column(db.Integer, nullable=False, default=0)
    stone_value_paise = db.Column(db.Integer, nullable=False, default=0)

    # Optional identifiers
    huid = db.Column(db.String(16), nullable=True)
    tag_number = db.Column(db.String(64), nullable=True)
    collection_name = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "supplier_id": self.supplier_id,
            "name": self.name,
            "barcode": self.barcode,
            "category": self.category,
            "description": self.description,
            "metal_type": self.metal_type,
            "purity": self.purity,
            "gross_weight_mg": self.gross_weight_mg,
            "net_weight_mg": self.net_weight_mg,
            "wastage_bps": self.wastage_bps,
            "making_charges_paise": self.making_charges_paise,
            "stone_value_paise": self.stone_value_paise,
            "huid": self.huid,
            "tag_number": self.tag_number,
            "collection_name": self.collection_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
