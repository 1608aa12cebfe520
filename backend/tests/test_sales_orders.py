# Overview: Pytest coverage for sales order creation, completion, cancellation, and payments.

"""
Sales Order Workflow Tests

Default setup: one AVAILABLE unit of a 1 g 22K gold ring with no wastage,
making charges, or stones, and a live rate of 500 paise/g, so every unit
prices at exactly 500 paise.
"""

import pytest

from jewelshop.errors import (
    ConflictError,
    DiscountExceedsTotal,
    InvalidStateTransition,
    InvoiceCollision,
    OverPayment,
    RateNotConfigured,
    StockUnavailable,
    ValidationError,
)
from jewelshop.extensions import db
from jewelshop.models import AuditLog, SalesOrder, StockItem, Transaction
from jewelshop.repositories.orders import SalesOrderRepository
from jewelshop.services import sales_order_service


@pytest.fixture
def customer(ctx_a, make_customer):
    return make_customer(ctx_a)


@pytest.fixture
def product(ctx_a, make_product):
    return make_product(ctx_a)


@pytest.fixture
def units(ctx_a, product, set_rate, receive_units):
    set_rate(ctx_a, 500)
    _, created = receive_units(ctx_a, product, quantity=3)
    return created


def _sell(ctx, customer, unit, **kwargs):
    kwargs.setdefault("payment_method", "CASH")
    return sales_order_service.create_sales_order(
        ctx,
        customer_id=customer.id,
        lines=[{"stock_item_id": unit.id}],
        **kwargs,
    )


def _status(unit_id):
    return db.session.get(StockItem, unit_id).status


class TestImmediateSale:

    def test_price_discount_and_income(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0], discount_paise=50)

        assert order.status == "COMPLETED"
        assert order.order_total_paise == 500
        assert order.discount_paise == 50
        assert order.final_amount_paise == 450
        assert order.lines[0].unit_price_paise == 500
        assert order.lines[0].metal_rate_per_gram_paise == 500
        assert order.invoice_number.startswith("INV-")
        assert _status(units[0].id) == "SOLD"

        txns = sales_order_service.order_transactions(ctx_a, order.id)
        assert len(txns) == 1
        assert txns[0].transaction_type == "INCOME"
        assert txns[0].category == "SALES"
        assert txns[0].amount_paise == 450

    def test_sell_by_tag_id(self, ctx_a, customer, units):
        order = sales_order_service.create_sales_order(
            ctx_a,
            customer_id=customer.id,
            lines=[{"tag_id": units[1].tag_id}],
            payment_method="UPI",
        )
        assert order.lines[0].stock_item_id == units[1].id

    def test_multi_unit_total(self, ctx_a, customer, units):
        order = sales_order_service.create_sales_order(
            ctx_a,
            customer_id=customer.id,
            lines=[{"stock_item_id": u.id} for u in units],
            payment_method="CASH",
        )
        assert order.order_total_paise == 1500
        assert all(_status(u.id) == "SOLD" for u in units)

    def test_initial_payment(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0], payment_amount_paise=200)
        assert order.paid_amount_paise == 200
        assert order.payment_status == "PARTIAL"
        assert len(order.payments) == 1

    def test_invoice_numbers_unique(self, ctx_a, customer, units):
        numbers = {_sell(ctx_a, customer, u).invoice_number for u in units}
        assert len(numbers) == 3

    def test_price_follows_live_rate(self, ctx_a, customer, units, set_rate):
        set_rate(ctx_a, 650)
        order = _sell(ctx_a, customer, units[0])
        assert order.order_total_paise == 650


class TestRejectedSales:

    def test_sold_unit_unavailable(self, ctx_a, customer, units):
        _sell(ctx_a, customer, units[0])
        orders_before = db.session.query(SalesOrder).count()
        txns_before = db.session.query(Transaction).count()

        with pytest.raises(StockUnavailable) as exc:
            _sell(ctx_a, customer, units[0])
        assert exc.value.details["current_status"] == "SOLD"

        assert db.session.query(SalesOrder).count() == orders_before
        assert db.session.query(Transaction).count() == txns_before

    def test_one_bad_unit_aborts_whole_order(self, ctx_a, customer, units):
        _sell(ctx_a, customer, units[2])

        with pytest.raises(StockUnavailable):
            sales_order_service.create_sales_order(
                ctx_a,
                customer_id=customer.id,
                lines=[{"stock_item_id": units[0].id}, {"stock_item_id": units[2].id}],
                payment_method="CASH",
            )
        assert _status(units[0].id) == "AVAILABLE"

    def test_discount_exceeds_total(self, ctx_a, customer, units):
        with pytest.raises(DiscountExceedsTotal):
            _sell(ctx_a, customer, units[0], discount_paise=501)
        assert _status(units[0].id) == "AVAILABLE"

    def test_discount_equal_to_total_allowed(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0], discount_paise=500)
        assert order.final_amount_paise == 0

    def test_quantity_must_be_one(self, ctx_a, customer, units):
        with pytest.raises(ValidationError):
            sales_order_service.create_sales_order(
                ctx_a,
                customer_id=customer.id,
                lines=[{"stock_item_id": units[0].id, "quantity": 2}],
                payment_method="CASH",
            )

    def test_duplicate_unit_in_order(self, ctx_a, customer, units):
        with pytest.raises(ValidationError):
            sales_order_service.create_sales_order(
                ctx_a,
                customer_id=customer.id,
                lines=[{"stock_item_id": units[0].id}, {"tag_id": units[0].tag_id}],
                payment_method="CASH",
            )

    def test_initial_payment_above_final(self, ctx_a, customer, units):
        with pytest.raises(OverPayment):
            _sell(ctx_a, customer, units[0], discount_paise=100, payment_amount_paise=401)

    def test_pending_order_rejects_initial_payment(self, ctx_a, customer, units):
        with pytest.raises(ValidationError):
            _sell(ctx_a, customer, units[0], create_as_pending=True, payment_amount_paise=100)

    def test_missing_rate(self, ctx_a, customer, make_product, receive_units):
        silver = make_product(ctx_a, metal_type="SILVER", purity="925")
        _, silver_units = receive_units(ctx_a, silver)
        with pytest.raises(RateNotConfigured):
            _sell(ctx_a, customer, silver_units[0])
        assert _status(silver_units[0].id) == "AVAILABLE"

    def test_invoice_collision(self, ctx_a, customer, units, monkeypatch):
        monkeypatch.setattr(
            sales_order_service, "generate_invoice_number", lambda: "INV-20260101-0001"
        )
        _sell(ctx_a, customer, units[0])

        with pytest.raises(InvoiceCollision) as exc:
            _sell(ctx_a, customer, units[1])
        assert exc.value.details["retryable"] is True
        assert _status(units[1].id) == "AVAILABLE"

    def test_invoice_number_lost_at_insert_is_retried(self, ctx_a, customer, units, monkeypatch):
        numbers = iter(["INV-20260101-0001", "INV-20260101-0001", "INV-20260101-0002"])
        monkeypatch.setattr(sales_order_service, "generate_invoice_number", lambda: next(numbers))
        # Existence check misses the rival order, so only the insert sees the clash
        monkeypatch.setattr(SalesOrderRepository, "invoice_number_taken", lambda self, number: False)
        _sell(ctx_a, customer, units[0])

        order = _sell(ctx_a, customer, units[1])
        assert order.invoice_number == "INV-20260101-0002"
        assert _status(units[1].id) == "SOLD"
        assert db.session.query(SalesOrder).count() == 2
        assert db.session.query(Transaction).filter_by(sales_order_id=order.id).count() == 1

    def test_insert_collisions_exhaust_attempts(self, app, ctx_a, customer, units, monkeypatch):
        monkeypatch.setattr(
            sales_order_service, "generate_invoice_number", lambda: "INV-20260101-0001"
        )
        monkeypatch.setattr(SalesOrderRepository, "invoice_number_taken", lambda self, number: False)
        _sell(ctx_a, customer, units[0])

        with pytest.raises(InvoiceCollision) as exc:
            _sell(ctx_a, customer, units[1])
        assert exc.value.details["attempts"] == app.config["INVOICE_RETRY_ATTEMPTS"]
        assert _status(units[1].id) == "AVAILABLE"
        assert db.session.query(SalesOrder).count() == 1

    @pytest.mark.parametrize("lines", [
        ["not-an-object"],
        [{"stock_item_id": 1}, 7],
        {"stock_item_id": 1},
        "lines",
        [],
        None,
    ])
    def test_malformed_lines_rejected(self, ctx_a, customer, units, lines):
        with pytest.raises(ValidationError):
            sales_order_service.create_sales_order(
                ctx_a, customer_id=customer.id, lines=lines, payment_method="CASH",
            )
        assert db.session.query(SalesOrder).count() == 0
        assert _status(units[0].id) == "AVAILABLE"

    def test_sale_writes_stock_status_audit(self, ctx_a, customer, units):
        _sell(ctx_a, customer, units[0])
        entry = db.session.query(AuditLog).filter_by(
            module="STOCK", entity_id=units[0].id, action="STATUS_CHANGE",
        ).one()
        assert entry.before_data == {"status": "AVAILABLE"}
        assert entry.after_data == {"status": "SOLD"}


class TestPendingOrders:

    def test_pending_reserves_then_complete_sells(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0], create_as_pending=True)
        assert order.status == "PENDING"
        assert _status(units[0].id) == "RESERVED"
        assert sales_order_service.order_transactions(ctx_a, order.id) == []

        completed = sales_order_service.complete_sales_order(ctx_a, order.id)
        assert completed.status == "COMPLETED"
        assert completed.completed_at is not None
        assert _status(units[0].id) == "SOLD"

        txns = sales_order_service.order_transactions(ctx_a, order.id)
        assert [t.amount_paise for t in txns] == [500]

    def test_reserved_unit_cannot_be_sold_elsewhere(self, ctx_a, customer, units):
        _sell(ctx_a, customer, units[0], create_as_pending=True)
        with pytest.raises(StockUnavailable) as exc:
            _sell(ctx_a, customer, units[0])
        assert exc.value.details["current_status"] == "RESERVED"

    def test_cancel_releases_units(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0], create_as_pending=True)

        cancelled = sales_order_service.cancel_sales_order(ctx_a, order.id)
        assert cancelled.status == "CANCELLED"
        assert _status(units[0].id) == "AVAILABLE"

        # Released unit can be sold again
        assert _sell(ctx_a, customer, units[0]).status == "COMPLETED"

    def test_cannot_complete_twice(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0], create_as_pending=True)
        sales_order_service.complete_sales_order(ctx_a, order.id)
        with pytest.raises(InvalidStateTransition):
            sales_order_service.complete_sales_order(ctx_a, order.id)

    def test_cannot_cancel_completed(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0])
        with pytest.raises(InvalidStateTransition):
            sales_order_service.cancel_sales_order(ctx_a, order.id)

    def test_cannot_cancel_with_payments(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0], create_as_pending=True)
        sales_order_service.record_payment(ctx_a, order.id, amount_paise=100, payment_method="CASH")
        with pytest.raises(ConflictError):
            sales_order_service.cancel_sales_order(ctx_a, order.id)
        assert _status(units[0].id) == "RESERVED"


class TestPayments:

    def test_payment_updates_status(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0])
        assert order.payment_status == "PENDING"

        result = sales_order_service.record_payment(ctx_a, order.id, amount_paise=300, payment_method="UPI")
        assert result["sales_order"].paid_amount_paise == 300
        assert result["sales_order"].payment_status == "PARTIAL"

        result = sales_order_service.record_payment(ctx_a, order.id, amount_paise=200, payment_method="CARD")
        assert result["sales_order"].payment_status == "PAID"

    def test_payment_does_not_post_ledger_entry(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0])
        sales_order_service.record_payment(ctx_a, order.id, amount_paise=500, payment_method="CASH")
        assert len(sales_order_service.order_transactions(ctx_a, order.id)) == 1

    def test_overpayment_rejected(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0])
        with pytest.raises(OverPayment):
            sales_order_service.record_payment(ctx_a, order.id, amount_paise=501, payment_method="CASH")


class TestDelete:

    def test_only_cancelled_orders_deleted(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0])
        with pytest.raises(InvalidStateTransition):
            sales_order_service.delete_sales_order(ctx_a, order.id)

    def test_delete_cancelled(self, ctx_a, customer, units):
        order = _sell(ctx_a, customer, units[0], create_as_pending=True)
        sales_order_service.cancel_sales_order(ctx_a, order.id)
        sales_order_service.delete_sales_order(ctx_a, order.id)
        assert db.session.get(SalesOrder, order.id).deleted_at is not None
