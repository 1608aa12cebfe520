# Overview: Flask API routes for reading and exporting the shop's audit log.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import DomainError, ValidationError
from ..repositories import AuditLogRepository
from ..responses import csv_download, error, export_limit, paginated, parse_page_request, success
from ..services import audit_service
from jewelshop.time_utils import utcnow


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit-logs")

EXPORT_FORMATS = ("csv", "json")


@audit_bp.get("")
@require_auth
@require_permission("AUDIT_VIEW")
def list_audit_logs_route():
    """Query params: action, module, entity_id, user_id, start_date, end_date, page, page_size."""
    try:
        page = AuditLogRepository(g.tenant).list(request.args, parse_page_request(request.args))
        return paginated(page)
    except DomainError as e:
        return error(e)


@audit_bp.get("/export")
@require_auth
@require_permission("AUDIT_VIEW")
def export_audit_logs_route():
    """
    Newest first, capped at EXPORT_MAX_ROWS.

    Query params: format (csv | json), plus the list filters.
    """
    try:
        fmt = request.args.get("format", "csv")
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"format must be one of {', '.join(EXPORT_FORMATS)}")
        entries = AuditLogRepository(g.tenant).export(request.args, limit=export_limit())
        if fmt == "json":
            return success([e.to_dict() for e in entries], meta={"row_count": len(entries)})
        filename = f"audit-logs-{utcnow():%Y%m%d%H%M%S}.csv"
        return csv_download(filename, audit_service.EXPORT_FIELDS, [audit_service.export_row(e) for e in entries])
    except DomainError as e:
        return error(e)
