from __future__ import annotations

from ..extensions import db
from jewelshop.time_utils import to_utc_z
from .finance import derive_payment_status


PO_PENDING = "PENDING"
PO_CONFIRMED = "CONFIRMED"
PO_PARTIAL = "PARTIAL"
PO_DELIVERED = "DELIVERED"
PO_CLOSED = "CLOSED"
PO_CANCELLED = "CANCELLED"

PO_STATUSES = {PO_PENDING, PO_CONFIRMED, PO_PARTIAL, PO_DELIVERED, PO_CLOSED, PO_CANCELLED}

# No receipts or payments are accepted once an order reaches these
PO_TERMINAL = {PO_CLOSED, PO_CANCELLED}


class PurchaseOrder(db.Model):
    """
    Supplier order.

    STATUS:
    PENDING -> CONFIRMED -> PARTIAL -> DELIVERED -> CLOSED
    PENDING/CONFIRMED -> CANCELLED (nothing received)

    PARTIAL/DELIVERED are recomputed from line receipt state after every
    receipt. CLOSED requires every line received and paid >= total.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "po_number", name="uq_purchase_orders_shop_number"),
        db.Index("ix_purchase_orders_shop_status", "shop_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    po_number = db.Column(db.String(32), nullable=False)
    order_date = db.Column(db.DateTime(timezone=True), nullable=False)
    expected_delivery_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PO_PENDING)

    total_amount_paise = db.Column(db.Integer, nullable=False, default=0)
    discount_paise = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_paise = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version_id}

    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    items = db.relationship(
        "PurchaseOrderItem",
        backref="purchase_order",
        order_by="PurchaseOrderItem.id",
        lazy=True,
    )
    payments = db.relationship(
        "PurchasePayment",
        backref="purchase_order",
        order_by="PurchasePayment.id",
        lazy=True,
    )

    @property
    def balance_paise(self) -> int:
        return max(self.total_amount_paise - self.paid_amount_paise, 0)

    @property
    def payment_status(self) -> str:
        return derive_payment_status(self.paid_amount_paise, self.total_amount_paise)

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "supplier_id": self.supplier_id,
            "po_number": self.po_number,
            "order_date": to_utc_z(self.order_date),
            "expected_delivery_date": (
                self.expected_delivery_date.isoformat() if self.expected_delivery_date else None
            ),
            "status": self.status,
            "payment_status": self.payment_status,
            "total_amount_paise": self.total_amount_paise,
            "discount_paise": self.discount_paise,
            "paid_amount_paise": self.paid_amount_paise,
            "balance_paise": self.balance_paise,
            "notes": self.notes,
            "closed_at": to_utc_z(self.closed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class PurchaseOrderItem(db.Model):
    """One ordered product line. INVARIANT: 0 <= received_quantity <= quantity."""
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_po_items_quantity_positive"),
        db.CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= quantity",
            name="ck_po_items_received_bounds",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    received_quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_price_paise = db.Column(db.Integer, nullable=False)
    line_total_paise = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    @property
    def pending_quantity(self) -> int:
        return self.quantity - (self.received_quantity or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "received_quantity": self.received_quantity,
            "pending_quantity": self.pending_quantity,
            "unit_price_paise": self.unit_price_paise,
            "line_total_paise": self.line_total_paise,
        }


class PurchasePayment(db.Model):
    """Payment made to a supplier. Always paired with one EXPENSE Transaction."""
    __tablename__ = "purchase_payments"
    __table_args__ = (
        db.CheckConstraint("amount_paise > 0", name="ck_purchase_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    amount_paise = db.Column(db.Integer, nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    reference_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "amount_paise": self.amount_paise,
            "payment_date": to_utc_z(self.payment_date),
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "notes": self.notes,
        }
