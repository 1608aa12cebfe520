# Overview: JSON response envelope and pagination helpers for API routes.

from __future__ import annotations

import csv
import io
import math
from dataclasses import dataclass

from flask import Response, current_app, jsonify, request

from .errors import DomainError, ValidationError


@dataclass(frozen=True)
class PageRequest:
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class Page:
    items: list
    total_count: int
    request: PageRequest

    def meta(self) -> dict:
        page_size = self.request.page_size
        total_pages = math.ceil(self.total_count / page_size) if page_size else 0
        return {
            "page": self.request.page,
            "page_size": page_size,
            "total_count": self.total_count,
            "total_pages": total_pages,
            "has_next_page": self.request.page < total_pages,
            "has_previous_page": self.request.page > 1,
        }


def parse_page_request(args) -> PageRequest:
    """Read page/page_size from query args, clamped to configured limits."""
    default_size = current_app.config.get("DEFAULT_PAGE_SIZE", 20)
    max_size = current_app.config.get("MAX_PAGE_SIZE", 100)
    try:
        page = int(args.get("page", 1))
        page_size = int(args.get("page_size", default_size))
    except (TypeError, ValueError):
        raise ValidationError("page and page_size must be integers")
    page = max(page, 1)
    page_size = min(max(page_size, 1), max_size)
    return PageRequest(page=page, page_size=page_size)


def success(data=None, status: int = 200, meta: dict | None = None):
    body = {"success": True, "data": data}
    if meta is not None:
        body["meta"] = meta
    return jsonify(body), status


def paginated(page: Page, serialize=None):
    serialize = serialize or (lambda obj: obj.to_dict())
    return success([serialize(item) for item in page.items], meta=page.meta())


def error(err: DomainError):
    return jsonify({"success": False, "error": err.to_dict()}), err.status_code


def internal_error(message: str = "Internal server error"):
    return jsonify({
        "success": False,
        "error": {"message": message, "code": "INTERNAL_ERROR", "details": {}},
    }), 500


def json_body() -> dict:
    """Request JSON as a dict; an absent body counts as {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def pick(data: dict, *keys: str) -> dict:
    """Subset of data limited to the keyword arguments a service accepts."""
    return {key: data[key] for key in keys if key in data}


def require_fields(data: dict, *keys: str) -> None:
    missing = [key for key in keys if data.get(key) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def csv_download(filename: str, fieldnames: list[str], rows: list[dict]):
    """Attachment response; rows are dicts keyed by fieldnames."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    writer.writerows(rows)
    return Response(
        buffer.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def export_limit() -> int:
    return current_app.config.get("EXPORT_MAX_ROWS", 10000)
