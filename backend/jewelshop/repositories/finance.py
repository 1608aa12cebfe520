# Overview: Repositories for the financial ledger and the audit log.

from __future__ import annotations

from sqlalchemy import func

from ..models import AuditLog, Transaction
from ..models.finance import INFLOW_TYPES, OUTFLOW_TYPES
from .base import ShopScopedRepository
from .orders import date_range_filter


class TransactionRepository(ShopScopedRepository):
    model = Transaction
    entity_name = "Transaction"
    filterable_fields = (
        "transaction_type",
        "category",
        "payment_mode",
        "customer_id",
        "supplier_id",
        "sales_order_id",
        "purchase_order_id",
    )
    search_fields = ("description", "reference_number")

    def apply_filters(self, query, filters: dict):
        query = super().apply_filters(query, filters)
        return date_range_filter(query, Transaction.transaction_date, filters)

    def ordering(self):
        return (Transaction.transaction_date.desc(), Transaction.id.desc())

    def update(self, entity_id, **fields):
        raise TypeError("Transactions are immutable; soft delete and re-enter instead")

    def for_sales_order(self, sales_order_id: int) -> list[Transaction]:
        return self.query().filter(Transaction.sales_order_id == sales_order_id).all()

    def summary(self, filters: dict | None = None) -> dict:
        query = self.apply_filters(self.query(), filters or {})
        rows = (
            query.with_entities(Transaction.transaction_type, func.coalesce(func.sum(Transaction.amount_paise), 0))
            .group_by(Transaction.transaction_type)
            .all()
        )
        by_type = {txn_type: int(total) for txn_type, total in rows}
        income = sum(v for k, v in by_type.items() if k in INFLOW_TYPES)
        expense = sum(v for k, v in by_type.items() if k in OUTFLOW_TYPES)
        return {
            "by_type": by_type,
            "total_income_paise": income,
            "total_expense_paise": expense,
            "net_paise": income - expense,
        }


class AuditLogRepository(ShopScopedRepository):
    model = AuditLog
    entity_name = "Audit log"
    filterable_fields = ("action", "module", "entity_id", "user_id")

    def apply_filters(self, query, filters: dict):
        query = super().apply_filters(query, filters)
        return date_range_filter(query, AuditLog.created_at, filters)

    def ordering(self):
        return (AuditLog.created_at.desc(), AuditLog.id.desc())

    def export(self, filters: dict | None = None, limit: int = 10000) -> list[AuditLog]:
        query = self.apply_filters(self.query(), filters or {})
        return query.order_by(*self.ordering()).limit(limit).all()
