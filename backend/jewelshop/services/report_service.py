# Overview: Service-layer read models for shop reports; sales, customers, P&L, and inventory valuation.

"""
Reports

Read-only aggregates over one shop's rows. Every query starts from a
shop-scoped repository, so soft-deleted rows and other shops' rows never
reach a total.

Sales figures count COMPLETED orders only; a PENDING order has neither
sold stock nor an income entry yet. Inventory is valued at purchase cost
by default; the SELLING basis prices each in-stock unit at the live rate.
"""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import func

from ..errors import ValidationError
from ..models import Customer, EmiPayment, Product, SalesOrder, StockItem, Transaction
from ..models.emi import EMI_OVERDUE, EMI_PENDING
from ..models.finance import INFLOW_TYPES, OUTFLOW_TYPES, TXN_EMI, TXN_EXPENSE, TXN_INCOME, TXN_METAL_PURCHASE
from ..models.inventory import STOCK_AVAILABLE, STOCK_RESERVED
from ..models.sales import SO_COMPLETED
from ..repositories.catalog import CustomerRepository, ProductRepository
from ..repositories.emi import EmiPaymentRepository
from ..repositories.finance import TransactionRepository
from ..repositories.orders import SalesOrderRepository, date_range_filter
from ..repositories.rates import RateMasterRepository
from ..repositories.stock import StockItemRepository
from ..tenancy import TenantContext
from .pricing_service import calculate_price, round_half_up_div
from jewelshop.time_utils import parse_iso_datetime, to_utc_z, utcnow


VALUATION_BASES = ("PURCHASE", "SELLING")
TOP_N = 10


def _date_range(filters: dict) -> dict:
    try:
        start = parse_iso_datetime(filters.get("start_date"))
        end = parse_iso_datetime(filters.get("end_date"))
    except ValueError:
        raise ValidationError("start_date and end_date must be ISO-8601 datetimes")
    if start and end and start > end:
        raise ValidationError("start_date must be on or before end_date")
    return {"start_date": to_utc_z(start), "end_date": to_utc_z(end)}


def _completed_orders(context: TenantContext, filters: dict) -> list[SalesOrder]:
    repo = SalesOrderRepository(context)
    scope = {
        "status": SO_COMPLETED,
        "start_date": filters.get("start_date"),
        "end_date": filters.get("end_date"),
    }
    query = repo.apply_filters(repo.query(), scope)
    return query.order_by(SalesOrder.order_date.asc(), SalesOrder.id.asc()).all()


def _average(total: int, count: int) -> int:
    return round_half_up_div(total, count) if count else 0


# ----------------------------------------------------------------------
# Sales
# ----------------------------------------------------------------------

def sales_report(context: TenantContext, filters: dict) -> dict:
    """Totals, payment methods, customers, products, and a monthly trend."""
    date_range = _date_range(filters)
    orders = _completed_orders(context, filters)

    total_sales = sum(o.final_amount_paise for o in orders)

    by_method: dict[str, dict] = {}
    by_customer: dict[int, dict] = {}
    by_product: dict[int, dict] = {}
    by_month: dict[str, dict] = {}

    for order in orders:
        for payment in order.payments:
            entry = by_method.setdefault(payment.payment_method, {
                "payment_method": payment.payment_method, "count": 0, "total_amount_paise": 0,
            })
            entry["count"] += 1
            entry["total_amount_paise"] += payment.amount_paise

        customer = by_customer.setdefault(order.customer_id, {
            "customer_id": order.customer_id,
            "customer_name": order.customer.name,
            "customer_phone": order.customer.phone,
            "order_count": 0,
            "total_amount_paise": 0,
        })
        customer["order_count"] += 1
        customer["total_amount_paise"] += order.final_amount_paise

        for line in order.lines:
            product = line.stock_item.product
            row = by_product.setdefault(product.id, {
                "product_id": product.id,
                "product_name": product.name,
                "metal_type": product.metal_type,
                "purity": product.purity,
                "quantity_sold": 0,
                "total_sales_paise": 0,
            })
            row["quantity_sold"] += line.quantity
            row["total_sales_paise"] += line.line_total_paise

        month = by_month.setdefault(order.order_date.strftime("%Y-%m"), {
            "month": order.order_date.strftime("%Y-%m"), "order_count": 0, "total_sales_paise": 0,
        })
        month["order_count"] += 1
        month["total_sales_paise"] += order.final_amount_paise

    products = sorted(by_product.values(), key=lambda r: r["total_sales_paise"], reverse=True)
    for row in products:
        row["average_selling_price_paise"] = _average(row["total_sales_paise"], row["quantity_sold"])

    return {
        "date_range": date_range,
        "summary": {
            "total_orders": len(orders),
            "total_sales_paise": total_sales,
            "total_discount_paise": sum(o.discount_paise for o in orders),
            "average_order_value_paise": _average(total_sales, len(orders)),
        },
        "payment_methods": sorted(by_method.values(), key=lambda r: r["payment_method"]),
        "customers": sorted(by_customer.values(), key=lambda r: r["total_amount_paise"], reverse=True),
        "products": products,
        "top_products_by_quantity": sorted(products, key=lambda r: r["quantity_sold"], reverse=True)[:TOP_N],
        "monthly_trend": [by_month[key] for key in sorted(by_month)],
    }


SALES_SUMMARY_FIELDS = [
    "invoice_number", "invoice_date", "customer_name", "customer_phone", "customer_type",
    "order_type", "order_total_paise", "discount_paise", "final_amount_paise",
    "paid_amount_paise", "payment_status",
]


def sales_summary(context: TenantContext, filters: dict) -> dict:
    """Invoice register for the period with totals per customer type."""
    date_range = _date_range(filters)
    orders = _completed_orders(context, filters)

    by_type: dict[str, dict] = {}
    invoices = []
    for order in orders:
        customer_type = order.customer.customer_type
        bucket = by_type.setdefault(customer_type, {
            "customer_type": customer_type, "count": 0, "total_amount_paise": 0,
        })
        bucket["count"] += 1
        bucket["total_amount_paise"] += order.final_amount_paise
        invoices.append({
            "invoice_number": order.invoice_number,
            "invoice_date": order.order_date.date().isoformat(),
            "customer_name": order.customer.name,
            "customer_phone": order.customer.phone,
            "customer_type": customer_type,
            "order_type": order.order_type,
            "order_total_paise": order.order_total_paise,
            "discount_paise": order.discount_paise,
            "final_amount_paise": order.final_amount_paise,
            "paid_amount_paise": order.paid_amount_paise,
            "payment_status": order.payment_status,
        })

    return {
        "generated_at": to_utc_z(utcnow()),
        "date_range": date_range,
        "total_invoices": len(invoices),
        "total_sales_paise": sum(i["final_amount_paise"] for i in invoices),
        "by_customer_type": sorted(by_type.values(), key=lambda r: r["customer_type"]),
        "invoices": invoices,
    }


# ----------------------------------------------------------------------
# Customers
# ----------------------------------------------------------------------

def customer_report(context: TenantContext, filters: dict) -> dict:
    date_range = _date_range(filters)
    orders = _completed_orders(context, filters)

    buyers: dict[int, dict] = {}
    for order in orders:
        row = buyers.setdefault(order.customer_id, {
            "customer_id": order.customer_id,
            "customer_name": order.customer.name,
            "customer_phone": order.customer.phone,
            "customer_type": order.customer.customer_type,
            "order_count": 0,
            "total_purchase_paise": 0,
            "pending_payment_paise": 0,
            "first_purchase_date": to_utc_z(order.order_date),
            "last_purchase_date": None,
        })
        row["order_count"] += 1
        row["total_purchase_paise"] += order.final_amount_paise
        row["pending_payment_paise"] += order.balance_paise
        row["last_purchase_date"] = to_utc_z(order.order_date)

    ranked = sorted(buyers.values(), key=lambda r: r["total_purchase_paise"], reverse=True)
    repeat = [r for r in ranked if r["order_count"] > 1]

    by_type: dict[str, dict] = defaultdict(lambda: {"count": 0, "total_purchase_paise": 0})
    for row in ranked:
        by_type[row["customer_type"]]["count"] += 1
        by_type[row["customer_type"]]["total_purchase_paise"] += row["total_purchase_paise"]

    customers = CustomerRepository(context)
    new_customers = date_range_filter(customers.query(), Customer.created_at, filters).count()

    return {
        "date_range": date_range,
        "summary": {
            "customers_with_purchases": len(ranked),
            "repeat_customers": len(repeat),
            "new_customers": new_customers,
            "total_customers": customers.count(),
            "repeat_rate_bps": round_half_up_div(len(repeat) * 10_000, len(ranked)) if ranked else 0,
        },
        "top_customers": ranked[:TOP_N],
        "by_customer_type": [
            {
                "customer_type": customer_type,
                "count": totals["count"],
                "total_purchase_paise": totals["total_purchase_paise"],
                "average_purchase_paise": _average(totals["total_purchase_paise"], totals["count"]),
            }
            for customer_type, totals in sorted(by_type.items())
        ],
        "customers": ranked,
    }


# ----------------------------------------------------------------------
# Financial
# ----------------------------------------------------------------------

def financial_report(context: TenantContext, filters: dict) -> dict:
    """
    Profit and loss from the ledger.

    cost_of_goods = PURCHASE-category expenses + metal purchases
    gross_profit  = income - cost_of_goods
    net_profit    = gross_profit - remaining expenses
    """
    date_range = _date_range(filters)
    repo = TransactionRepository(context)
    scope = {"start_date": filters.get("start_date"), "end_date": filters.get("end_date")}
    base = repo.apply_filters(repo.query(), scope)

    grouped = (
        base.with_entities(
            Transaction.transaction_type,
            Transaction.category,
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.amount_paise), 0),
        )
        .group_by(Transaction.transaction_type, Transaction.category)
        .all()
    )
    by_mode = (
        base.with_entities(
            Transaction.payment_mode,
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.amount_paise), 0),
        )
        .group_by(Transaction.payment_mode)
        .all()
    )

    income_breakdown = []
    expense_breakdown = []
    totals_by_type: dict[str, int] = defaultdict(int)
    purchase_expense = 0
    for txn_type, category, count, total in grouped:
        total = int(total)
        totals_by_type[txn_type] += total
        row = {"category": category, "count": count, "total_amount_paise": total}
        if txn_type == TXN_INCOME:
            income_breakdown.append(row)
        elif txn_type == TXN_EXPENSE:
            expense_breakdown.append(row)
            if category == "PURCHASE":
                purchase_expense += total

    income = totals_by_type[TXN_INCOME]
    cost_of_goods = purchase_expense + totals_by_type[TXN_METAL_PURCHASE]
    operating_expenses = totals_by_type[TXN_EXPENSE] - purchase_expense
    gross_profit = income - cost_of_goods
    inflow = sum(v for k, v in totals_by_type.items() if k in INFLOW_TYPES)
    outflow = sum(v for k, v in totals_by_type.items() if k in OUTFLOW_TYPES)

    emi_outstanding = (
        EmiPaymentRepository(context).query()
        .with_entities(func.coalesce(func.sum(EmiPayment.remaining_amount_paise), 0))
        .filter(EmiPayment.status.in_([EMI_PENDING, EMI_OVERDUE]))
        .scalar()
    )

    return {
        "date_range": date_range,
        "profit_and_loss": {
            "income_paise": income,
            "cost_of_goods_paise": cost_of_goods,
            "gross_profit_paise": gross_profit,
            "operating_expenses_paise": operating_expenses,
            "net_profit_paise": gross_profit - operating_expenses,
        },
        "cash_flow": {
            "inflow_paise": inflow,
            "outflow_paise": outflow,
            "net_cash_flow_paise": inflow - outflow,
        },
        "income_breakdown": sorted(income_breakdown, key=lambda r: r["category"]),
        "expense_breakdown": sorted(expense_breakdown, key=lambda r: r["category"]),
        "payment_modes": [
            {"payment_mode": mode or "UNKNOWN", "count": count, "total_amount_paise": int(total)}
            for mode, count, total in sorted(by_mode, key=lambda r: r[0] or "")
        ],
        "emi": {
            "collected_paise": totals_by_type[TXN_EMI],
            "outstanding_paise": int(emi_outstanding or 0),
        },
    }


# ----------------------------------------------------------------------
# Inventory
# ----------------------------------------------------------------------

def inventory_report(context: TenantContext, filters: dict) -> dict:
    """
    In-stock (AVAILABLE + RESERVED) units per product, valued at purchase
    cost or, with valuation_basis=SELLING, at the live rate. Products whose
    metal and purity have no active rate are listed as unpriced.
    """
    basis = (filters.get("valuation_basis") or "PURCHASE").upper()
    if basis not in VALUATION_BASES:
        raise ValidationError(f"valuation_basis must be one of {', '.join(VALUATION_BASES)}")

    stock_repo = StockItemRepository(context)
    query = (
        stock_repo.query()
        .join(Product, Product.id == StockItem.product_id)
        .filter(StockItem.status.in_([STOCK_AVAILABLE, STOCK_RESERVED]), Product.deleted_at.is_(None))
    )
    if filters.get("metal_type"):
        query = query.filter(Product.metal_type == filters["metal_type"].upper())
    if filters.get("collection"):
        query = query.filter(Product.collection_name.ilike(f"%{filters['collection']}%"))

    rows = (
        query.with_entities(
            StockItem.product_id,
            func.count(StockItem.id),
            func.coalesce(func.sum(StockItem.purchase_cost_paise), 0),
        )
        .group_by(StockItem.product_id)
        .all()
    )
    in_stock = {product_id: (count, int(cost)) for product_id, count, cost in rows}
    products = ProductRepository(context).query().filter(Product.id.in_(list(in_stock))).all() if in_stock else []

    rate_repo = RateMasterRepository(context)
    rates: dict[tuple[str, str], int | None] = {}

    details = []
    unpriced = []
    metals: dict[str, dict] = {}
    total_cost = 0
    total_selling = 0
    for product in sorted(products, key=lambda p: p.id):
        count, cost = in_stock[product.id]
        total_cost += cost

        selling = None
        if basis == "SELLING":
            pair = (product.metal_type, product.purity)
            if pair not in rates:
                rate = rate_repo.get_current_rate(*pair)
                rates[pair] = rate.rate_per_gram_paise if rate else None
            if rates[pair] is None:
                unpriced.append(product.id)
            else:
                unit_price = calculate_price(
                    net_weight_mg=product.net_weight_mg,
                    wastage_bps=product.wastage_bps,
                    rate_per_gram_paise=rates[pair],
                    making_charges_paise=product.making_charges_paise,
                    stone_value_paise=product.stone_value_paise,
                ).total_paise
                selling = unit_price * count
                total_selling += selling

        value = cost if basis == "PURCHASE" else selling
        details.append({
            "product_id": product.id,
            "product_name": product.name,
            "barcode": product.barcode,
            "metal_type": product.metal_type,
            "purity": product.purity,
            "units_in_stock": count,
            "net_weight_mg": product.net_weight_mg * count,
            "purchase_value_paise": cost,
            "value_paise": value,
        })

        metal = metals.setdefault(product.metal_type, {
            "metal_type": product.metal_type, "units": 0, "net_weight_mg": 0, "value_paise": 0,
        })
        metal["units"] += count
        metal["net_weight_mg"] += product.net_weight_mg * count
        metal["value_paise"] += value or 0

    return {
        "valuation_basis": basis,
        "generated_at": to_utc_z(utcnow()),
        "summary": {
            "products_in_stock": len(details),
            "units_in_stock": sum(d["units_in_stock"] for d in details),
            "purchase_value_paise": total_cost,
            "total_value_paise": total_cost if basis == "PURCHASE" else total_selling,
        },
        "by_metal": [metals[key] for key in sorted(metals)],
        "unpriced_product_ids": unpriced,
        "products": sorted(details, key=lambda d: d["value_paise"] or 0, reverse=True),
    }
