from __future__ import annotations

from ..extensions import db
from jewelshop.time_utils import to_utc_z, to_iso_date


EMI_PENDING = "PENDING"
EMI_PAID = "PAID"
EMI_OVERDUE = "OVERDUE"

EMI_STATUSES = {EMI_PENDING, EMI_PAID, EMI_OVERDUE}


class EmiPayment(db.Model):
    """
    Installment plan for a customer.

    INVARIANTS:
    - sum(installment.paid_amount) + remaining_amount == total_amount
    - current_installment is the lowest-numbered installment not yet PAID
    """
    __tablename__ = "emi_payments"
    __table_args__ = (
        db.CheckConstraint("number_of_installments > 0", name="ck_emi_payments_count_positive"),
        db.Index("ix_emi_payments_shop_status", "shop_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True)

    total_amount_paise = db.Column(db.Integer, nullable=False)
    number_of_installments = db.Column(db.Integer, nullable=False)
    installment_amount_paise = db.Column(db.Integer, nullable=False)
    interest_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    emi_start_date = db.Column(db.Date, nullable=False)
    next_installment_date = db.Column(db.Date, nullable=True)
    current_installment = db.Column(db.Integer, nullable=False, default=1)
    remaining_amount_paise = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=EMI_PENDING)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version_id}

    customer = db.relationship("Customer", backref=db.backref("emi_payments", lazy=True))
    installments = db.relationship(
        "EmiInstallment",
        backref="emi_payment",
        order_by="EmiInstallment.installment_number",
        lazy=True,
    )

    def to_dict(self, include_installments: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "sales_order_id": self.sales_order_id,
            "total_amount_paise": self.total_amount_paise,
            "number_of_installments": self.number_of_installments,
            "installment_amount_paise": self.installment_amount_paise,
            "interest_rate_bps": self.interest_rate_bps,
            "emi_start_date": to_iso_date(self.emi_start_date),
            "next_installment_date": to_iso_date(self.next_installment_date),
            "current_installment": self.current_installment,
            "remaining_amount_paise": self.remaining_amount_paise,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_installments:
            data["installments"] = [i.to_dict() for i in self.installments]
        return data


class EmiInstallment(db.Model):
    __tablename__ = "emi_installments"
    __table_args__ = (
        db.UniqueConstraint("emi_payment_id", "installment_number", name="uq_emi_installments_number"),
        db.Index("ix_emi_installments_status_due", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    emi_payment_id = db.Column(db.Integer, db.ForeignKey("emi_payments.id"), nullable=False, index=True)
    installment_number = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    amount_paise = db.Column(db.Integer, nullable=False)
    paid_amount_paise = db.Column(db.Integer, nullable=False, default=0)
    paid_date = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_method = db.Column(db.String(32), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=EMI_PENDING)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "emi_payment_id": self.emi_payment_id,
            "installment_number": self.installment_number,
            "due_date": to_iso_date(self.due_date),
            "amount_paise": self.amount_paise,
            "paid_amount_paise": self.paid_amount_paise,
            "paid_date": to_utc_z(self.paid_date),
            "payment_method": self.payment_method,
            "status": self.status,
        }
