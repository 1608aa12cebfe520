from __future__ import annotations

from ..extensions import db
from jewelshop.time_utils import to_utc_z
from .finance import derive_payment_status


SO_PENDING = "PENDING"
SO_COMPLETED = "COMPLETED"
SO_CANCELLED = "CANCELLED"

SO_STATUSES = {SO_PENDING, SO_COMPLETED, SO_CANCELLED}
ORDER_TYPES = {"RETAIL", "WHOLESALE", "CUSTOM", "EXCHANGE"}


class SalesOrder(db.Model):
    """
    Customer order.

    INVARIANTS:
    - final_amount = order_total - discount >= 0
    - paid_amount <= final_amount
    - PENDING orders hold RESERVED units; COMPLETED orders hold SOLD units
      and have exactly one INCOME Transaction

    payment_status is derived from paid_amount on read.
    """
    __tablename__ = "sales_orders"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "invoice_number", name="uq_sales_orders_shop_invoice"),
        db.CheckConstraint("final_amount_paise >= 0", name="ck_sales_orders_final_nonnegative"),
        db.CheckConstraint("paid_amount_paise <= final_amount_paise", name="ck_sales_orders_paid_le_final"),
        db.Index("ix_sales_orders_shop_status", "shop_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    invoice_number = db.Column(db.String(32), nullable=False)
    order_date = db.Column(db.DateTime(timezone=True), nullable=False)
    order_type = db.Column(db.String(16), nullable=False, default="RETAIL")
    status = db.Column(db.String(16), nullable=False, default=SO_PENDING)

    order_total_paise = db.Column(db.Integer, nullable=False)
    discount_paise = db.Column(db.Integer, nullable=False, default=0)
    final_amount_paise = db.Column(db.Integer, nullable=False)
    paid_amount_paise = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(32), nullable=False)

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version_id}

    customer = db.relationship("Customer", backref=db.backref("sales_orders", lazy=True))
    lines = db.relationship("SalesOrderLine", backref="sales_order", order_by="SalesOrderLine.id", lazy=True)
    payments = db.relationship("SalesPayment", backref="sales_order", order_by="SalesPayment.id", lazy=True)

    @property
    def balance_paise(self) -> int:
        return max(self.final_amount_paise - self.paid_amount_paise, 0)

    @property
    def payment_status(self) -> str:
        return derive_payment_status(self.paid_amount_paise, self.final_amount_paise)

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "invoice_number": self.invoice_number,
            "order_date": to_utc_z(self.order_date),
            "order_type": self.order_type,
            "status": self.status,
            "payment_status": self.payment_status,
            "order_total_paise": self.order_total_paise,
            "discount_paise": self.discount_paise,
            "final_amount_paise": self.final_amount_paise,
            "paid_amount_paise": self.paid_amount_paise,
            "balance_paise": self.balance_paise,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class SalesOrderLine(db.Model):
    """Binds exactly one StockItem to an order, with the price computed at sale time."""
    __tablename__ = "sales_order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sales_order_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=False, index=True)
    stock_item_id = db.Column(db.Integer, db.ForeignKey("stock_items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price_paise = db.Column(db.Integer, nullable=False)
    line_total_paise = db.Column(db.Integer, nullable=False)

    # Rate used for pricing, kept for invoice reprints
    metal_rate_per_gram_paise = db.Column(db.Integer, nullable=True)

    stock_item = db.relationship("StockItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sales_order_id": self.sales_order_id,
            "stock_item_id": self.stock_item_id,
            "tag_id": self.stock_item.tag_id if self.stock_item else None,
            "quantity": self.quantity,
            "unit_price_paise": self.unit_price_paise,
            "line_total_paise": self.line_total_paise,
            "metal_rate_per_gram_paise": self.metal_rate_per_gram_paise,
        }


class SalesPayment(db.Model):
    __tablename__ = "sales_payments"
    __table_args__ = (
        db.CheckConstraint("amount_paise > 0", name="ck_sales_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=False, index=True)
    amount_paise = db.Column(db.Integer, nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    reference_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sales_order_id": self.sales_order_id,
            "amount_paise": self.amount_paise,
            "payment_date": to_utc_z(self.payment_date),
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "notes": self.notes,
        }
