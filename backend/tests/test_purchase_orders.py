# Overview: Pytest coverage for purchase order receipt, payment, and closure.

"""
Purchase Order Workflow Tests

Covers receipt status derivation, over-receipt and over-payment guards,
the EXPENSE ledger entry paired with each payment, and the close checks.
"""

import pytest

from jewelshop.errors import (
    CannotClose,
    ConflictError,
    DiscountExceedsTotal,
    InvalidStateTransition,
    OverPayment,
    OverReceipt,
    ValidationError,
)
from jewelshop.extensions import db
from jewelshop.models import PurchasePayment, StockItem, Transaction
from jewelshop.services import purchase_order_service


@pytest.fixture
def supplier(ctx_a, make_supplier):
    return make_supplier(ctx_a)


@pytest.fixture
def product(ctx_a, make_product):
    return make_product(ctx_a)


@pytest.fixture
def po(ctx_a, supplier, product):
    """10 units at 300 paise each, total 3000."""
    return purchase_order_service.create_purchase_order(
        ctx_a,
        supplier_id=supplier.id,
        items=[{"product_id": product.id, "quantity": 10, "unit_price_paise": 300}],
    )


def _receive(ctx, po, quantity, cost=300):
    item = po.items[0]
    return purchase_order_service.receive_stock(
        ctx,
        po.id,
        entries=[{
            "purchase_order_item_id": item.id,
            "product_id": item.product_id,
            "quantity_to_receive": quantity,
            "per_unit_cost_paise": cost,
        }],
    )


class TestCreate:

    def test_totals(self, po):
        assert po.status == "PENDING"
        assert po.total_amount_paise == 3000
        assert po.paid_amount_paise == 0
        assert po.po_number.startswith("PO-")
        assert po.items[0].line_total_paise == 3000

    def test_discount_reduces_total(self, ctx_a, supplier, product):
        po = purchase_order_service.create_purchase_order(
            ctx_a,
            supplier_id=supplier.id,
            items=[{"product_id": product.id, "quantity": 2, "unit_price_paise": 500}],
            discount_paise=100,
        )
        assert po.total_amount_paise == 900

    def test_discount_cannot_exceed_subtotal(self, ctx_a, supplier, product):
        with pytest.raises(DiscountExceedsTotal):
            purchase_order_service.create_purchase_order(
                ctx_a,
                supplier_id=supplier.id,
                items=[{"product_id": product.id, "quantity": 1, "unit_price_paise": 500}],
                discount_paise=501,
            )

    def test_requires_items(self, ctx_a, supplier):
        with pytest.raises(ValidationError):
            purchase_order_service.create_purchase_order(ctx_a, supplier_id=supplier.id, items=[])

    def test_rejects_zero_quantity(self, ctx_a, supplier, product):
        with pytest.raises(ValidationError):
            purchase_order_service.create_purchase_order(
                ctx_a,
                supplier_id=supplier.id,
                items=[{"product_id": product.id, "quantity": 0, "unit_price_paise": 500}],
            )

    @pytest.mark.parametrize("items", [["widget"], {"product_id": 1}, "items", None])
    def test_rejects_malformed_items(self, ctx_a, supplier, items):
        with pytest.raises(ValidationError):
            purchase_order_service.create_purchase_order(ctx_a, supplier_id=supplier.id, items=items)


class TestConfirmCancel:

    def test_confirm(self, ctx_a, po):
        assert purchase_order_service.confirm_purchase_order(ctx_a, po.id).status == "CONFIRMED"

    def test_confirm_twice_rejected(self, ctx_a, po):
        purchase_order_service.confirm_purchase_order(ctx_a, po.id)
        with pytest.raises(InvalidStateTransition):
            purchase_order_service.confirm_purchase_order(ctx_a, po.id)

    def test_cancel(self, ctx_a, po):
        cancelled = purchase_order_service.cancel_purchase_order(ctx_a, po.id)
        assert cancelled.status == "CANCELLED"
        assert cancelled.cancelled_at is not None

    def test_cannot_cancel_after_receipt(self, ctx_a, po):
        _receive(ctx_a, po, 1)
        with pytest.raises(InvalidStateTransition):
            purchase_order_service.cancel_purchase_order(ctx_a, po.id)

    def test_cannot_receive_on_cancelled(self, ctx_a, po):
        purchase_order_service.cancel_purchase_order(ctx_a, po.id)
        with pytest.raises(InvalidStateTransition):
            _receive(ctx_a, po, 1)


class TestReceiveStock:

    def test_full_receipt_delivers(self, ctx_a, po):
        result = _receive(ctx_a, po, 10)

        assert result["purchase_order"].status == "DELIVERED"
        assert len(result["stock_items"]) == 10
        assert po.items[0].received_quantity == 10
        assert all(u.status == "AVAILABLE" for u in result["stock_items"])
        assert all(u.purchase_order_id == po.id for u in result["stock_items"])

    def test_partial_receipt(self, ctx_a, po):
        result = _receive(ctx_a, po, 4)
        assert result["purchase_order"].status == "PARTIAL"
        assert po.items[0].pending_quantity == 6

        result = _receive(ctx_a, po, 6)
        assert result["purchase_order"].status == "DELIVERED"

    def test_over_receipt_rejected(self, ctx_a, po):
        _receive(ctx_a, po, 8)
        with pytest.raises(OverReceipt) as exc:
            _receive(ctx_a, po, 3)
        assert exc.value.details["pending_quantity"] == 2

        # Nothing from the failed receipt was written
        assert db.session.query(StockItem).filter_by(purchase_order_id=po.id).count() == 8
        assert po.items[0].received_quantity == 8

    def test_over_receipt_across_entries(self, ctx_a, po):
        item = po.items[0]
        entry = {
            "purchase_order_item_id": item.id,
            "quantity_to_receive": 6,
            "per_unit_cost_paise": 300,
        }
        with pytest.raises(OverReceipt):
            purchase_order_service.receive_stock(ctx_a, po.id, entries=[entry, dict(entry)])
        assert db.session.query(StockItem).filter_by(purchase_order_id=po.id).count() == 0

    def test_per_unit_costs_and_huids(self, ctx_a, po):
        item = po.items[0]
        result = purchase_order_service.receive_stock(
            ctx_a,
            po.id,
            entries=[{
                "purchase_order_item_id": item.id,
                "quantity_to_receive": 2,
                "unit_costs_paise": [290, 310],
                "huids": ["HUID01", "HUID02"],
            }],
        )
        units = result["stock_items"]
        assert sorted(u.purchase_cost_paise for u in units) == [290, 310]
        assert sorted(u.huid for u in units) == ["HUID01", "HUID02"]

    def test_entry_for_other_order_line_rejected(self, ctx_a, po, supplier, product):
        other = purchase_order_service.create_purchase_order(
            ctx_a,
            supplier_id=supplier.id,
            items=[{"product_id": product.id, "quantity": 1, "unit_price_paise": 300}],
        )
        with pytest.raises(ValidationError):
            purchase_order_service.receive_stock(
                ctx_a,
                po.id,
                entries=[{
                    "purchase_order_item_id": other.items[0].id,
                    "quantity_to_receive": 1,
                    "per_unit_cost_paise": 300,
                }],
            )

    @pytest.mark.parametrize("entries", [[1], {"quantity_to_receive": 1}, [], None])
    def test_malformed_entries_rejected(self, ctx_a, po, entries):
        with pytest.raises(ValidationError):
            purchase_order_service.receive_stock(ctx_a, po.id, entries=entries)
        assert db.session.query(StockItem).count() == 0

    def test_items_to_receive(self, ctx_a, po):
        _receive(ctx_a, po, 10)
        assert purchase_order_service.items_to_receive(ctx_a, po.id) == []


class TestPayments:

    def test_payment_creates_expense_transaction(self, ctx_a, po):
        result = purchase_order_service.record_payment(
            ctx_a, po.id, amount_paise=1000, payment_method="UPI",
        )

        assert result["purchase_order"].paid_amount_paise == 1000
        txn = result["transaction"]
        assert txn.transaction_type == "EXPENSE"
        assert txn.category == "PURCHASE"
        assert txn.amount_paise == 1000
        assert txn.purchase_order_id == po.id
        assert txn.purchase_payment_id == result["payment"].id
        assert txn.supplier_id == po.supplier_id

    def test_overpayment_rejected(self, ctx_a, po):
        purchase_order_service.record_payment(ctx_a, po.id, amount_paise=2500, payment_method="CASH")

        with pytest.raises(OverPayment) as exc:
            purchase_order_service.record_payment(ctx_a, po.id, amount_paise=501, payment_method="CASH")
        assert exc.value.details["remaining_balance_paise"] == 500

        assert db.session.query(PurchasePayment).filter_by(purchase_order_id=po.id).count() == 1
        assert db.session.query(Transaction).filter_by(purchase_order_id=po.id).count() == 1

    def test_invalid_payment_method(self, ctx_a, po):
        with pytest.raises(ValidationError):
            purchase_order_service.record_payment(ctx_a, po.id, amount_paise=100, payment_method="BARTER")

    def test_paid_plus_balance_equals_total(self, ctx_a, po):
        purchase_order_service.record_payment(ctx_a, po.id, amount_paise=700, payment_method="CASH")
        purchase_order_service.record_payment(ctx_a, po.id, amount_paise=300, payment_method="CARD")
        po = purchase_order_service.get_purchase_order(ctx_a, po.id)
        assert po.paid_amount_paise + po.balance_paise == po.total_amount_paise


class TestClose:

    def test_close_requires_receipt(self, ctx_a, po):
        purchase_order_service.record_payment(ctx_a, po.id, amount_paise=3000, payment_method="CASH")
        with pytest.raises(CannotClose) as exc:
            purchase_order_service.close_purchase_order(ctx_a, po.id)
        assert "unreceived" in exc.value.message
        assert exc.value.details["pending_quantity"] == 10

    def test_close_requires_payment(self, ctx_a, po):
        _receive(ctx_a, po, 10)
        with pytest.raises(CannotClose) as exc:
            purchase_order_service.close_purchase_order(ctx_a, po.id)
        assert "unpaid" in exc.value.message

    def test_close_lists_every_unmet_condition(self, ctx_a, po):
        with pytest.raises(CannotClose) as exc:
            purchase_order_service.close_purchase_order(ctx_a, po.id)
        assert len(exc.value.unmet) == 2

    def test_close_when_received_and_paid(self, ctx_a, po):
        _receive(ctx_a, po, 10)
        purchase_order_service.record_payment(ctx_a, po.id, amount_paise=3000, payment_method="BANK_TRANSFER")

        closed = purchase_order_service.close_purchase_order(ctx_a, po.id)
        assert closed.status == "CLOSED"
        assert closed.closed_at is not None

    def test_closed_order_rejects_payment(self, ctx_a, po):
        _receive(ctx_a, po, 10)
        purchase_order_service.record_payment(ctx_a, po.id, amount_paise=3000, payment_method="CASH")
        purchase_order_service.close_purchase_order(ctx_a, po.id)

        with pytest.raises(InvalidStateTransition):
            purchase_order_service.record_payment(ctx_a, po.id, amount_paise=1, payment_method="CASH")


class TestDelete:

    def test_delete_untouched_order(self, ctx_a, po):
        purchase_order_service.delete_purchase_order(ctx_a, po.id)
        assert purchase_order_service.pending_purchase_orders(ctx_a) == []

    def test_cannot_delete_with_receipts(self, ctx_a, po):
        _receive(ctx_a, po, 1)
        with pytest.raises(ConflictError):
            purchase_order_service.delete_purchase_order(ctx_a, po.id)
