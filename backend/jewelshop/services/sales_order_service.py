# Overview: Service-layer operations for sales orders; pricing, stock claims, and income posting.

"""
Sales Order Workflow

CREATE (one transaction):
1. Load every requested unit (by id or tag id) and require AVAILABLE,
   else StockUnavailable naming the unit's status. Nothing is written
   until every unit has passed.
2. Price each unit from the live RateMaster rate.
3. final_amount = order_total - discount (negative => DiscountExceedsTotal)
4. Invoice number INV-YYYYMMDD-NNNN, re-checked before insert; bounded
   regeneration, then InvoiceCollision (retryable by the caller).
5. create_as_pending: order PENDING, units RESERVED.
   otherwise:         order COMPLETED, units SOLD (sale_date=now), one
                      INCOME Transaction for final_amount, optional
                      initial SalesPayment.

COMPLETE: PENDING only. RESERVED -> SOLD for every line plus the INCOME
Transaction. This is the only path from RESERVED to SOLD.

CANCEL: PENDING only. RESERVED -> AVAILABLE for every line.

payment_status is derived from paid_amount (see derive_payment_status).
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    ConflictError,
    DiscountExceedsTotal,
    InvalidStateTransition,
    InvoiceCollision,
    NotFoundOrForeignTenant,
    OverPayment,
    StockUnavailable,
    ValidationError,
)
from ..models import SalesOrder, SalesOrderLine, SalesPayment, StockItem, Transaction
from ..models.finance import PAYMENT_METHODS, TXN_INCOME
from ..models.inventory import STOCK_AVAILABLE
from ..models.sales import ORDER_TYPES, SO_CANCELLED, SO_COMPLETED, SO_PENDING
from ..repositories.catalog import CustomerRepository
from ..repositories.finance import TransactionRepository
from ..repositories.orders import SalesOrderRepository
from ..repositories.rates import RateMasterRepository
from ..repositories.stock import StockItemRepository
from ..tenancy import TenantContext
from ..validation import require_object_list
from . import audit_service
from .concurrency import unit_of_work
from .identifier_service import generate_invoice_number
from .pricing_service import price_stock_item
from jewelshop.time_utils import parse_iso_datetime, utcnow


logger = logging.getLogger(__name__)

AUDIT_MODULE = "SALES_ORDERS"

DEFAULT_INVOICE_ATTEMPTS = 5


class _InvoiceNumberTaken(Exception):
    """The order insert lost its invoice number to a concurrent order."""


def _non_negative_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer")
    return value


def _invoice_attempts() -> int:
    try:
        return int(current_app.config.get("INVOICE_RETRY_ATTEMPTS", DEFAULT_INVOICE_ATTEMPTS))
    except RuntimeError:
        return DEFAULT_INVOICE_ATTEMPTS


def _load_unit(stock_repo: StockItemRepository, line: dict, idx: int) -> StockItem:
    stock_item_id = line.get("stock_item_id")
    tag_id = line.get("tag_id")
    if stock_item_id is None and not tag_id:
        raise ValidationError(f"lines[{idx}] requires stock_item_id or tag_id")
    if stock_item_id is not None:
        return stock_repo.verify_ownership(stock_item_id, for_update=True)
    item = stock_repo.find_by_tag_id(tag_id, for_update=True)
    if item is None:
        raise NotFoundOrForeignTenant("Stock item", tag_id)
    return item


def _allocate_invoice_number(repo: SalesOrderRepository) -> str:
    attempts = _invoice_attempts()
    for _ in range(attempts):
        candidate = generate_invoice_number()
        if not repo.invoice_number_taken(candidate):
            return candidate
    raise InvoiceCollision(attempts)


def _income_transaction(context: TenantContext, order: SalesOrder) -> Transaction:
    txn = Transaction(
        shop_id=order.shop_id,
        transaction_date=order.completed_at or utcnow(),
        transaction_type=TXN_INCOME,
        category="SALES",
        amount_paise=order.final_amount_paise,
        payment_mode=order.payment_method,
        description=f"Sales Order {order.invoice_number}",
        reference_number=order.invoice_number,
        customer_id=order.customer_id,
        sales_order_id=order.id,
        created_by_user_id=context.user_id,
    )
    db.session.add(txn)
    return txn


def create_sales_order(
    context: TenantContext,
    *,
    customer_id: int,
    lines: list[dict],
    payment_method: str,
    discount_paise: int = 0,
    order_type: str = "RETAIL",
    notes: str | None = None,
    payment_amount_paise: int | None = None,
    create_as_pending: bool = False,
) -> SalesOrder:
    repo = SalesOrderRepository(context)
    customers = CustomerRepository(context)
    stock_repo = StockItemRepository(context)
    rate_repo = RateMasterRepository(context)

    require_object_list(lines, "lines", "At least one line item required")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(sorted(PAYMENT_METHODS))}")
    if order_type not in ORDER_TYPES:
        raise ValidationError(f"order_type must be one of {', '.join(sorted(ORDER_TYPES))}")
    discount_paise = _non_negative_int(discount_paise, "discount_paise")
    payment_amount_paise = _non_negative_int(payment_amount_paise or 0, "payment_amount_paise")
    if create_as_pending and payment_amount_paise:
        raise ValidationError(
            "Initial payment is only taken on immediately completed orders; "
            "record payments against the pending order instead"
        )

    def _op():
        customer = customers.verify_ownership(customer_id)

        # Phase 1: check and price every unit before writing anything
        priced = []
        seen_ids = set()
        for idx, line in enumerate(lines):
            quantity = line.get("quantity", 1)
            if quantity != 1:
                raise ValidationError(f"lines[{idx}].quantity must be 1; each line binds one stock item")
            item = _load_unit(stock_repo, line, idx)
            if item.id in seen_ids:
                raise ValidationError(f"Stock item {item.tag_id} appears more than once")
            seen_ids.add(item.id)
            if item.status != STOCK_AVAILABLE:
                raise StockUnavailable(item.tag_id, item.status)
            breakdown, rate = price_stock_item(rate_repo, item)
            priced.append((item, quantity, breakdown.total_paise, rate.rate_per_gram_paise))

        order_total = sum(unit_price * quantity for _, quantity, unit_price, _ in priced)
        final_amount = order_total - discount_paise
        if final_amount < 0:
            raise DiscountExceedsTotal(discount_paise, order_total)
        if payment_amount_paise > final_amount:
            raise OverPayment(payment_amount_paise, final_amount)

        invoice_number = _allocate_invoice_number(repo)
        now = utcnow()

        # Phase 2: write order, lines, stock transitions, ledger
        try:
            order = repo.create(
                customer_id=customer.id,
                invoice_number=invoice_number,
                order_date=now,
                order_type=order_type,
                status=SO_PENDING if create_as_pending else SO_COMPLETED,
                order_total_paise=order_total,
                discount_paise=discount_paise,
                final_amount_paise=final_amount,
                paid_amount_paise=0,
                payment_method=payment_method,
                notes=notes,
                created_by_user_id=context.user_id,
                completed_at=None if create_as_pending else now,
            )
        except IntegrityError as exc:
            # Another request took the same number between check and insert
            raise _InvoiceNumberTaken(invoice_number) from exc

        for item, quantity, unit_price, rate_paise in priced:
            line = SalesOrderLine(
                sales_order_id=order.id,
                stock_item_id=item.id,
                quantity=quantity,
                unit_price_paise=unit_price,
                line_total_paise=unit_price * quantity,
                metal_rate_per_gram_paise=rate_paise,
            )
            db.session.add(line)
            db.session.flush()
            if create_as_pending:
                stock_repo.reserve(item.id, line.id)
            else:
                stock_repo.mark_as_sold(item.id, line.id)

        if not create_as_pending:
            _income_transaction(context, order)
            if payment_amount_paise > 0:
                db.session.add(SalesPayment(
                    sales_order_id=order.id,
                    amount_paise=payment_amount_paise,
                    payment_date=now,
                    payment_method=payment_method,
                    notes="Initial payment",
                ))
                order.paid_amount_paise = payment_amount_paise

        db.session.flush()
        audit_service.log_create(context, AUDIT_MODULE, order)
        logger.info("Created sales order %s (%s)", order.invoice_number, order.status)
        return order

    # A lost insert rolls back the whole unit and starts over with a fresh number
    attempts = _invoice_attempts()
    for attempt in range(1, attempts + 1):
        try:
            return unit_of_work(_op)
        except _InvoiceNumberTaken as exc:
            logger.warning(
                "Invoice number %s taken concurrently (attempt %d of %d)", exc.args[0], attempt, attempts
            )
    raise InvoiceCollision(attempts)


def complete_sales_order(context: TenantContext, sales_order_id: int) -> SalesOrder:
    repo = SalesOrderRepository(context)
    stock_repo = StockItemRepository(context)

    def _op():
        order = repo.verify_ownership(sales_order_id, for_update=True)
        if order.status != SO_PENDING:
            raise InvalidStateTransition("sales order", order.status, SO_PENDING, "complete")

        for line in order.lines:
            stock_repo.mark_as_sold(line.stock_item_id, line.id)

        order.status = SO_COMPLETED
        order.completed_at = utcnow()
        db.session.flush()
        _income_transaction(context, order)
        db.session.flush()

        audit_service.log_status_change(context, AUDIT_MODULE, order, SO_PENDING, SO_COMPLETED)
        logger.info("Completed sales order %s", order.invoice_number)
        return order

    return unit_of_work(_op)


def cancel_sales_order(context: TenantContext, sales_order_id: int) -> SalesOrder:
    repo = SalesOrderRepository(context)
    stock_repo = StockItemRepository(context)

    def _op():
        order = repo.verify_ownership(sales_order_id, for_update=True)
        if order.status != SO_PENDING:
            raise InvalidStateTransition("sales order", order.status, SO_PENDING, "cancel")
        if order.paid_amount_paise > 0:
            raise ConflictError("Cannot cancel a sales order with recorded payments")

        for line in order.lines:
            stock_repo.release(line.stock_item_id)

        order.status = SO_CANCELLED
        order.cancelled_at = utcnow()
        db.session.flush()
        audit_service.log_status_change(context, AUDIT_MODULE, order, SO_PENDING, SO_CANCELLED)
        return order

    return unit_of_work(_op)


def record_payment(
    context: TenantContext,
    sales_order_id: int,
    *,
    amount_paise: int,
    payment_method: str,
    reference_number: str | None = None,
    notes: str | None = None,
    payment_date=None,
) -> dict:
    repo = SalesOrderRepository(context)

    if isinstance(amount_paise, bool) or not isinstance(amount_paise, int) or amount_paise <= 0:
        raise ValidationError("amount_paise must be a positive integer")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(sorted(PAYMENT_METHODS))}")
    try:
        paid_at = parse_iso_datetime(payment_date) if isinstance(payment_date, str) else payment_date
    except ValueError:
        raise ValidationError("payment_date must be an ISO-8601 datetime")

    def _op():
        order = repo.verify_ownership(sales_order_id, for_update=True)
        if order.status == SO_CANCELLED:
            raise InvalidStateTransition(
                "sales order", order.status, [SO_PENDING, SO_COMPLETED], "record payment for"
            )
        balance = order.final_amount_paise - order.paid_amount_paise
        if amount_paise > balance:
            raise OverPayment(amount_paise, max(balance, 0))

        before = order.to_dict()
        payment = SalesPayment(
            sales_order_id=order.id,
            amount_paise=amount_paise,
            payment_date=paid_at or utcnow(),
            payment_method=payment_method,
            reference_number=reference_number,
            notes=notes,
        )
        db.session.add(payment)
        order.paid_amount_paise += amount_paise
        db.session.flush()
        audit_service.log_update(context, AUDIT_MODULE, order, before)
        return {"sales_order": order, "payment": payment}

    return unit_of_work(_op)


def get_sales_order(context: TenantContext, sales_order_id: int) -> SalesOrder:
    return SalesOrderRepository(context).get(sales_order_id)


def get_by_invoice_number(context: TenantContext, invoice_number: str) -> SalesOrder:
    order = SalesOrderRepository(context).find_by_invoice_number(invoice_number)
    if order is None:
        raise NotFoundOrForeignTenant("Sales order", invoice_number)
    return order


def list_sales_orders(context: TenantContext, filters: dict, page_request):
    return SalesOrderRepository(context).list(filters, page_request)


def order_transactions(context: TenantContext, sales_order_id: int) -> list[Transaction]:
    SalesOrderRepository(context).verify_ownership(sales_order_id)
    return TransactionRepository(context).for_sales_order(sales_order_id)


def delete_sales_order(context: TenantContext, sales_order_id: int) -> SalesOrder:
    """Soft delete. Only cancelled orders; completed sales stay on the books."""
    repo = SalesOrderRepository(context)

    def _op():
        order = repo.verify_ownership(sales_order_id, for_update=True)
        if order.status != SO_CANCELLED:
            raise InvalidStateTransition("sales order", order.status, SO_CANCELLED, "delete")
        before = order.to_dict()
        repo.soft_delete(order.id)
        audit_service.log_delete(context, AUDIT_MODULE, order, before)
        return order

    return unit_of_work(_op)
