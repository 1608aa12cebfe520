# Overview: Service-layer operations for the audit log; appends records in the caller's transaction.

"""
Audit Log Invariants

- Append-only. No updates or deletes of existing rows.
- Written inside the same DB transaction as the change it records; the
  caller's unit of work commits both or neither.
- Snapshots are plain JSON (to_dict output), never ORM objects.
"""

from __future__ import annotations

import json

from ..extensions import db
from ..models import AuditLog
from ..models.audit import (
    AUDIT_ACTIONS,
    AUDIT_CREATE,
    AUDIT_DELETE,
    AUDIT_STATUS_CHANGE,
    AUDIT_UPDATE,
)
from ..tenancy import TenantContext


def log_audit(
    context: TenantContext,
    *,
    action: str,
    module: str,
    entity_id: int | None,
    before_data: dict | None = None,
    after_data: dict | None = None,
    shop_id: int | None = None,
) -> AuditLog:
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action {action}")

    entry = AuditLog(
        shop_id=shop_id if shop_id is not None else context.shop_id,
        user_id=context.user_id,
        action=action,
        module=module,
        entity_id=entity_id,
        before_data=before_data,
        after_data=after_data,
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def log_create(context: TenantContext, module: str, entity, **kwargs) -> AuditLog:
    return log_audit(context, action=AUDIT_CREATE, module=module, entity_id=entity.id,
                     after_data=entity.to_dict(), **kwargs)


def log_update(context: TenantContext, module: str, entity, before: dict, **kwargs) -> AuditLog:
    return log_audit(context, action=AUDIT_UPDATE, module=module, entity_id=entity.id,
                     before_data=before, after_data=entity.to_dict(), **kwargs)


def log_delete(context: TenantContext, module: str, entity, before: dict | None = None, **kwargs) -> AuditLog:
    return log_audit(context, action=AUDIT_DELETE, module=module, entity_id=entity.id,
                     before_data=before or entity.to_dict(), **kwargs)


def log_status_change(
    context: TenantContext,
    module: str,
    entity,
    old_status: str,
    new_status: str,
) -> AuditLog:
    return log_audit(
        context,
        action=AUDIT_STATUS_CHANGE,
        module=module,
        entity_id=entity.id,
        before_data={"status": old_status},
        after_data={"status": new_status},
    )


EXPORT_FIELDS = [
    "created_at", "user_id", "action", "module", "entity_id", "before_data", "after_data",
]


def export_row(entry: AuditLog) -> dict:
    """Flat row for CSV export; snapshots are JSON-encoded into one cell."""
    data = entry.to_dict()
    row = {field: data[field] for field in EXPORT_FIELDS}
    for field in ("before_data", "after_data"):
        row[field] = "" if row[field] is None else json.dumps(row[field], sort_keys=True)
    if row["user_id"] is None:
        row["user_id"] = ""
    if row["entity_id"] is None:
        row["entity_id"] = ""
    return row
