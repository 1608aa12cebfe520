# Overview: Flask API routes for shop reports.

"""
Reports

All reports take start_date / end_date (ISO-8601) where a period applies.
Sales figures count COMPLETED orders only.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import DomainError
from ..responses import csv_download, error, success
from ..services import report_service
from jewelshop.time_utils import utcnow


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@require_auth
@require_permission("REPORTS_SALES")
def sales_report_route():
    try:
        return success(report_service.sales_report(g.tenant, request.args))
    except DomainError as e:
        return error(e)


@reports_bp.get("/sales-summary")
@require_auth
@require_permission("REPORTS_SALES")
def sales_summary_route():
    """Invoice register; ?format=csv downloads it for the accountant."""
    try:
        report = report_service.sales_summary(g.tenant, request.args)
        if request.args.get("format") == "csv":
            filename = f"sales-summary-{utcnow():%Y-%m-%d}.csv"
            return csv_download(filename, report_service.SALES_SUMMARY_FIELDS, report["invoices"])
        return success(report)
    except DomainError as e:
        return error(e)


@reports_bp.get("/customers")
@require_auth
@require_permission("REPORTS_SALES")
def customer_report_route():
    try:
        return success(report_service.customer_report(g.tenant, request.args))
    except DomainError as e:
        return error(e)


@reports_bp.get("/financial")
@require_auth
@require_permission("REPORTS_FINANCIAL")
def financial_report_route():
    try:
        return success(report_service.financial_report(g.tenant, request.args))
    except DomainError as e:
        return error(e)


@reports_bp.get("/inventory")
@require_auth
@require_permission("REPORTS_INVENTORY")
def inventory_report_route():
    """Query params: valuation_basis (PURCHASE | SELLING), metal_type, collection."""
    try:
        return success(report_service.inventory_report(g.tenant, request.args))
    except DomainError as e:
        return error(e)
