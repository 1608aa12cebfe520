from __future__ import annotations

from ..extensions import db
from jewelshop.time_utils import to_utc_z


PAYMENT_PENDING = "PENDING"
PAYMENT_PARTIAL = "PARTIAL"
PAYMENT_PAID = "PAID"

PAYMENT_METHODS = {"CASH", "UPI", "CARD", "BANK_TRANSFER", "CREDIT", "EMI"}

TXN_INCOME = "INCOME"
TXN_EXPENSE = "EXPENSE"
TXN_EMI = "EMI"
TXN_METAL_PURCHASE = "METAL_PURCHASE"
TXN_GOLD_SCHEME = "GOLD_SCHEME"
TXN_ADJUSTMENT = "ADJUSTMENT"

TRANSACTION_TYPES = {TXN_INCOME, TXN_EXPENSE, TXN_EMI, TXN_METAL_PURCHASE, TXN_GOLD_SCHEME, TXN_ADJUSTMENT}
TRANSACTION_CATEGORIES = {"SALES", "PURCHASE", "OPERATIONAL", "OTHER_EXPENSES", "OTHER"}

# Types that count as money in / money out in summaries
INFLOW_TYPES = {TXN_INCOME, TXN_EMI, TXN_GOLD_SCHEME}
OUTFLOW_TYPES = {TXN_EXPENSE, TXN_METAL_PURCHASE}


def derive_payment_status(paid_paise: int, due_paise: int) -> str:
    """
    PAID if paid >= due; PARTIAL if 0 < paid < due; otherwise PENDING.

    Orders never store this value; it is recomputed from paid_amount.
    """
    paid = paid_paise or 0
    if paid >= (due_paise or 0):
        return PAYMENT_PAID
    if paid > 0:
        return PAYMENT_PARTIAL
    return PAYMENT_PENDING


class Transaction(db.Model):
    """
    Financial ledger row.

    IMMUTABLE: written as a side effect of order completion, payment, or a
    manual entry and never updated afterwards. The only permitted change is
    soft delete (deleted_at).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_shop_date", "shop_id", "transaction_date"),
        db.Index("ix_transactions_shop_type", "shop_id", "transaction_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False)
    transaction_type = db.Column(db.String(32), nullable=False)
    category = db.Column(db.String(32), nullable=False)
    amount_paise = db.Column(db.Integer, nullable=False)
    payment_mode = db.Column(db.String(32), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default="INR")
    status = db.Column(db.String(16), nullable=False, default="COMPLETED")

    description = db.Column(db.String(255), nullable=True)
    reference_number = db.Column(db.String(64), nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True, index=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True, index=True)
    purchase_payment_id = db.Column(db.Integer, db.ForeignKey("purchase_payments.id"), nullable=True, unique=True)
    emi_payment_id = db.Column(db.Integer, db.ForeignKey("emi_payments.id"), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "transaction_date": to_utc_z(self.transaction_date),
            "transaction_type": self.transaction_type,
            "category": self.category,
            "amount_paise": self.amount_paise,
            "payment_mode": self.payment_mode,
            "currency": self.currency,
            "status": self.status,
            "description": self.description,
            "reference_number": self.reference_number,
            "customer_id": self.customer_id,
            "supplier_id": self.supplier_id,
            "sales_order_id": self.sales_order_id,
            "purchase_order_id": self.purchase_order_id,
            "purchase_payment_id": self.purchase_payment_id,
            "emi_payment_id": self.emi_payment_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
