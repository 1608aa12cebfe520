# Overview: EMI plan repository with installment lookups.

from __future__ import annotations

from datetime import timedelta

from ..errors import NotFoundOrForeignTenant
from ..extensions import db
from ..models import EmiInstallment, EmiPayment
from ..models.emi import EMI_OVERDUE, EMI_PENDING
from .base import ShopScopedRepository
from jewelshop.time_utils import today


class EmiPaymentRepository(ShopScopedRepository):
    model = EmiPayment
    entity_name = "EMI payment"
    filterable_fields = ("status", "customer_id", "sales_order_id")

    def installment_query(self):
        """Installments reachable only through a plan owned by this shop."""
        return (
            db.session.query(EmiInstallment)
            .join(EmiPayment, EmiPayment.id == EmiInstallment.emi_payment_id)
            .filter(EmiPayment.shop_id == self.shop_id, EmiPayment.deleted_at.is_(None))
        )

    def get_installment(self, emi_payment_id: int, installment_number: int) -> EmiInstallment:
        installment = (
            self.installment_query()
            .filter(
                EmiInstallment.emi_payment_id == emi_payment_id,
                EmiInstallment.installment_number == installment_number,
            )
            .first()
        )
        if installment is None:
            raise NotFoundOrForeignTenant("EMI installment", installment_number)
        return installment

    def upcoming_installments(self, days: int = 7) -> list[EmiInstallment]:
        start = today()
        end = start + timedelta(days=days)
        return (
            self.installment_query()
            .filter(
                EmiInstallment.status == EMI_PENDING,
                EmiInstallment.due_date >= start,
                EmiInstallment.due_date <= end,
            )
            .order_by(EmiInstallment.due_date.asc(), EmiInstallment.id.asc())
            .all()
        )

    def overdue_payments(self) -> list[EmiPayment]:
        return (
            self.query()
            .filter(EmiPayment.status == EMI_OVERDUE)
            .order_by(EmiPayment.next_installment_date.asc(), EmiPayment.id.asc())
            .all()
        )

    def for_customer(self, customer_id: int) -> list[EmiPayment]:
        return (
            self.query()
            .filter(EmiPayment.customer_id == customer_id)
            .order_by(EmiPayment.id.asc())
            .all()
        )
