# Overview: Service-layer operations for the financial ledger; manual entries, listing, and summaries.

from __future__ import annotations

from ..errors import ValidationError
from ..models import Transaction
from ..models.finance import PAYMENT_METHODS, TRANSACTION_CATEGORIES, TRANSACTION_TYPES
from ..repositories.catalog import CustomerRepository, SupplierRepository
from ..repositories.finance import TransactionRepository
from ..tenancy import TenantContext
from . import audit_service
from .concurrency import unit_of_work
from jewelshop.time_utils import parse_iso_datetime, utcnow


AUDIT_MODULE = "TRANSACTIONS"


def create_transaction(
    context: TenantContext,
    *,
    transaction_type: str,
    category: str,
    amount_paise: int,
    payment_mode: str | None = None,
    description: str | None = None,
    reference_number: str | None = None,
    transaction_date=None,
    customer_id: int | None = None,
    supplier_id: int | None = None,
) -> Transaction:
    """
    Manual ledger entry (rent, salaries, adjustments, ...).

    Order-driven rows are written by the order workflows themselves; this
    path never links a transaction to an order.
    """
    repo = TransactionRepository(context)

    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"transaction_type must be one of {', '.join(sorted(TRANSACTION_TYPES))}")
    if category not in TRANSACTION_CATEGORIES:
        raise ValidationError(f"category must be one of {', '.join(sorted(TRANSACTION_CATEGORIES))}")
    if isinstance(amount_paise, bool) or not isinstance(amount_paise, int) or amount_paise <= 0:
        raise ValidationError("amount_paise must be a positive integer")
    if payment_mode is not None and payment_mode not in PAYMENT_METHODS:
        raise ValidationError(f"payment_mode must be one of {', '.join(sorted(PAYMENT_METHODS))}")
    try:
        when = parse_iso_datetime(transaction_date) if isinstance(transaction_date, str) else transaction_date
    except ValueError:
        raise ValidationError("transaction_date must be an ISO-8601 datetime")

    def _op():
        if customer_id is not None:
            CustomerRepository(context).verify_ownership(customer_id)
        if supplier_id is not None:
            SupplierRepository(context).verify_ownership(supplier_id)
        txn = repo.create(
            transaction_date=when or utcnow(),
            transaction_type=transaction_type,
            category=category,
            amount_paise=amount_paise,
            payment_mode=payment_mode,
            description=description,
            reference_number=reference_number,
            customer_id=customer_id,
            supplier_id=supplier_id,
            created_by_user_id=context.user_id,
        )
        audit_service.log_create(context, AUDIT_MODULE, txn)
        return txn

    return unit_of_work(_op)


def get_transaction(context: TenantContext, transaction_id: int) -> Transaction:
    return TransactionRepository(context).get(transaction_id)


def list_transactions(context: TenantContext, filters: dict, page_request):
    return TransactionRepository(context).list(filters, page_request)


def transaction_summary(context: TenantContext, filters: dict | None = None) -> dict:
    return TransactionRepository(context).summary(filters)


def delete_transaction(context: TenantContext, transaction_id: int) -> Transaction:
    repo = TransactionRepository(context)

    def _op():
        txn = repo.verify_ownership(transaction_id, for_update=True)
        before = txn.to_dict()
        repo.soft_delete(txn.id)
        audit_service.log_delete(context, AUDIT_MODULE, txn, before)
        return txn

    return unit_of_work(_op)
