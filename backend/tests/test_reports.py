# Overview: Pytest coverage for shop reports: sales, customers, profit and loss, and inventory valuation.

"""
Reports Tests

Units are 1 g 22K gold rings bought at 300 paise each; the live rate is
500 paise/g, so every unit sells for exactly 500 paise.
"""

import csv
import io

import pytest

from jewelshop.errors import ValidationError
from jewelshop.services import purchase_order_service, report_service, sales_order_service


@pytest.fixture
def product(ctx_a, make_product):
    return make_product(ctx_a)


@pytest.fixture
def stocked(ctx_a, product, set_rate, receive_units):
    set_rate(ctx_a, 500)
    po, units = receive_units(ctx_a, product, quantity=4)
    return po, units


def _sell(ctx, customer, unit, **kwargs):
    kwargs.setdefault("payment_method", "CASH")
    return sales_order_service.create_sales_order(
        ctx, customer_id=customer.id, lines=[{"stock_item_id": unit.id}], **kwargs,
    )


class TestSalesReport:

    def test_totals_count_completed_orders_only(self, ctx_a, make_customer, stocked):
        _, units = stocked
        buyer = make_customer(ctx_a)
        _sell(ctx_a, buyer, units[0], discount_paise=100, payment_amount_paise=400)
        _sell(ctx_a, buyer, units[1], payment_method="UPI", payment_amount_paise=500)
        _sell(ctx_a, buyer, units[2], create_as_pending=True)

        report = report_service.sales_report(ctx_a, {})

        assert report["summary"] == {
            "total_orders": 2,
            "total_sales_paise": 900,
            "total_discount_paise": 100,
            "average_order_value_paise": 450,
        }
        assert report["payment_methods"] == [
            {"payment_method": "CASH", "count": 1, "total_amount_paise": 400},
            {"payment_method": "UPI", "count": 1, "total_amount_paise": 500},
        ]
        assert report["customers"][0]["order_count"] == 2
        assert report["products"][0]["quantity_sold"] == 2
        assert report["products"][0]["total_sales_paise"] == 1000
        assert report["products"][0]["average_selling_price_paise"] == 500
        assert sum(m["order_count"] for m in report["monthly_trend"]) == 2

    def test_other_shop_orders_excluded(self, ctx_a, ctx_b, make_customer, make_product,
                                        set_rate, receive_units, stocked):
        _, units = stocked
        _sell(ctx_a, make_customer(ctx_a), units[0])

        set_rate(ctx_b, 500)
        _, units_b = receive_units(ctx_b, make_product(ctx_b, barcode="B-RING-1"))
        _sell(ctx_b, make_customer(ctx_b), units_b[0])

        assert report_service.sales_report(ctx_a, {})["summary"]["total_orders"] == 1
        assert report_service.sales_report(ctx_b, {})["summary"]["total_orders"] == 1

    def test_reversed_date_range_rejected(self, ctx_a):
        with pytest.raises(ValidationError):
            report_service.sales_report(ctx_a, {
                "start_date": "2026-02-01T00:00:00Z",
                "end_date": "2026-01-01T00:00:00Z",
            })

    def test_summary_groups_by_customer_type(self, ctx_a, make_customer, stocked):
        _, units = stocked
        _sell(ctx_a, make_customer(ctx_a), units[0])
        _sell(ctx_a, make_customer(ctx_a, customer_type="WHOLESALE"), units[1])

        summary = report_service.sales_summary(ctx_a, {})

        assert summary["total_invoices"] == 2
        assert summary["total_sales_paise"] == 1000
        assert [b["customer_type"] for b in summary["by_customer_type"]] == ["RETAIL", "WHOLESALE"]
        assert all(i["invoice_number"].startswith("INV-") for i in summary["invoices"])


class TestCustomerReport:

    def test_repeat_and_new_customers(self, ctx_a, make_customer, stocked):
        _, units = stocked
        regular = make_customer(ctx_a)
        once = make_customer(ctx_a)
        make_customer(ctx_a)
        _sell(ctx_a, regular, units[0])
        _sell(ctx_a, regular, units[1])
        _sell(ctx_a, once, units[2])

        report = report_service.customer_report(ctx_a, {})

        assert report["summary"] == {
            "customers_with_purchases": 2,
            "repeat_customers": 1,
            "new_customers": 3,
            "total_customers": 3,
            "repeat_rate_bps": 5000,
        }
        assert report["top_customers"][0]["customer_id"] == regular.id
        assert report["top_customers"][0]["total_purchase_paise"] == 1000
        assert report["top_customers"][0]["pending_payment_paise"] == 1000


class TestFinancialReport:

    def test_profit_and_loss(self, ctx_a, make_customer, stocked):
        po, units = stocked
        purchase_order_service.record_payment(ctx_a, po.id, amount_paise=300, payment_method="BANK_TRANSFER")
        _sell(ctx_a, make_customer(ctx_a), units[0], payment_amount_paise=500)

        report = report_service.financial_report(ctx_a, {})

        assert report["profit_and_loss"] == {
            "income_paise": 500,
            "cost_of_goods_paise": 300,
            "gross_profit_paise": 200,
            "operating_expenses_paise": 0,
            "net_profit_paise": 200,
        }
        assert report["cash_flow"]["net_cash_flow_paise"] == 200
        assert report["income_breakdown"] == [{"category": "SALES", "count": 1, "total_amount_paise": 500}]
        assert report["expense_breakdown"] == [{"category": "PURCHASE", "count": 1, "total_amount_paise": 300}]
        assert report["emi"] == {"collected_paise": 0, "outstanding_paise": 0}

    def test_empty_ledger(self, ctx_a):
        report = report_service.financial_report(ctx_a, {})
        assert report["profit_and_loss"]["net_profit_paise"] == 0
        assert report["payment_modes"] == []


class TestInventoryReport:

    def test_purchase_basis(self, ctx_a, make_customer, product, stocked):
        _, units = stocked
        _sell(ctx_a, make_customer(ctx_a), units[0])

        report = report_service.inventory_report(ctx_a, {})

        assert report["valuation_basis"] == "PURCHASE"
        assert report["summary"] == {
            "products_in_stock": 1,
            "units_in_stock": 3,
            "purchase_value_paise": 900,
            "total_value_paise": 900,
        }
        assert report["by_metal"] == [
            {"metal_type": "GOLD", "units": 3, "net_weight_mg": 3000, "value_paise": 900},
        ]

    def test_selling_basis_and_unpriced(self, ctx_a, make_product, receive_units, stocked):
        silver = make_product(ctx_a, metal_type="SILVER", purity="925")
        receive_units(ctx_a, silver, quantity=2)

        report = report_service.inventory_report(ctx_a, {"valuation_basis": "selling"})

        assert report["summary"]["units_in_stock"] == 6
        assert report["summary"]["total_value_paise"] == 2000
        assert report["unpriced_product_ids"] == [silver.id]

    def test_metal_filter(self, ctx_a, make_product, receive_units, stocked):
        receive_units(ctx_a, make_product(ctx_a, metal_type="SILVER", purity="925"))
        report = report_service.inventory_report(ctx_a, {"metal_type": "silver"})
        assert report["summary"]["units_in_stock"] == 1

    def test_unknown_basis(self, ctx_a):
        with pytest.raises(ValidationError):
            report_service.inventory_report(ctx_a, {"valuation_basis": "MARKET"})


class TestReportRoutes:

    def test_sales_summary_csv(self, client, owner_a, ctx_a, make_customer, stocked, login):
        _, units = stocked
        order = _sell(ctx_a, make_customer(ctx_a), units[0])

        response = client.get('/api/reports/sales-summary?format=csv', headers=login('owner_a'))

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert 'attachment' in response.headers['Content-Disposition']
        rows = list(csv.DictReader(io.StringIO(response.get_data(as_text=True))))
        assert list(rows[0]) == report_service.SALES_SUMMARY_FIELDS
        assert rows[0]['invoice_number'] == order.invoice_number
        assert rows[0]['final_amount_paise'] == '500'

    def test_sales_can_read_sales_report(self, client, sales_a, login):
        response = client.get('/api/reports/sales', headers=login('sales_a'))
        assert response.status_code == 200
        assert response.json['data']['summary']['total_orders'] == 0

    def test_sales_cannot_read_financial_report(self, client, sales_a, login):
        response = client.get('/api/reports/financial', headers=login('sales_a'))
        assert response.status_code == 403
        assert response.json['error']['code'] == "PERMISSION_DENIED"

    def test_accounts_reads_financial_report(self, client, accounts_a, login):
        response = client.get('/api/reports/financial', headers=login('accounts_a'))
        assert response.status_code == 200

    def test_bad_date_is_400(self, client, owner_a, login):
        response = client.get('/api/reports/customers?start_date=yesterday', headers=login('owner_a'))
        assert response.status_code == 400
        assert response.json['error']['code'] == "VALIDATION_ERROR"
