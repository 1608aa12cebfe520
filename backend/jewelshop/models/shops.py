from __future__ import annotations

from ..extensions import db
from jewelshop.time_utils import to_utc_z


class Shop(db.Model):
    """
    Multi-tenant root: every tenant is a Shop.

    All customers, products, stock, orders, and ledger rows carry shop_id.
    No data may cross shop boundaries.

    LIFECYCLE:
    - Created by a platform operator (SUPER_ADMIN)
    - Paused / deactivated to block logins without touching data
    - Soft-deleted (deleted_at) and never hard-deleted while children exist
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Legal / tax identity (printed on invoices)
    legal_name = db.Column(db.String(255), nullable=True)
    gstin = db.Column(db.String(15), nullable=True, unique=True)
    pan = db.Column(db.String(10), nullable=True)

    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(120), nullable=True)
    state = db.Column(db.String(120), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    is_paused = db.Column(db.Boolean, nullable=False, default=False)
    subscription_start = db.Column(db.Date, nullable=True)
    subscription_end = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_operational(self) -> bool:
        return bool(self.is_active and not self.is_paused and self.deleted_at is None)

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "legal_name": self.legal_name,
            "gstin": self.gstin,
            "pan": self.pan,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "is_active": self.is_active,
            "is_paused": self.is_paused,
            "subscription_start": self.subscription_start.isoformat() if self.subscription_start else None,
            "subscription_end": self.subscription_end.isoformat() if self.subscription_end else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
