from __future__ import annotations

from ..extensions import db
from jewelshop.time_utils import to_utc_z


AUDIT_CREATE = "CREATE"
AUDIT_UPDATE = "UPDATE"
AUDIT_DELETE = "DELETE"
AUDIT_STATUS_CHANGE = "STATUS_CHANGE"

AUDIT_ACTIONS = {AUDIT_CREATE, AUDIT_UPDATE, AUDIT_DELETE, AUDIT_STATUS_CHANGE}


class AuditLog(db.Model):
    """
    Append-only record of mutations on tenant-owned entities.

    Written inside the same DB transaction as the change it describes.
    before_data / after_data hold JSON snapshots (to_dict output).
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_shop_module", "shop_id", "module", "created_at"),
        db.Index("ix_audit_logs_entity", "module", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    action = db.Column(db.String(32), nullable=False)
    module = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)

    before_data = db.Column(db.JSON, nullable=True)
    after_data = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "user_id": self.user_id,
            "action": self.action,
            "module": self.module,
            "entity_id": self.entity_id,
            "before_data": self.before_data,
            "after_data": self.after_data,
            "created_at": to_utc_z(self.created_at),
        }
