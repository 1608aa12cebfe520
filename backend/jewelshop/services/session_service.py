# Overview: Service-layer operations for session tokens; creation, validation, and revocation.

"""
Session Token Management

Tokens are cryptographically secure, hashed in the database, and
time-limited.

MULTI-TENANT: Sessions capture shop_id at creation time. That value is the
tenant context for every request made with the token and never changes for
the session lifetime.

SECURITY FEATURES:
- 32 random bytes per token (secrets.token_hex)
- SHA-256 of the token stored; plaintext returned to the client only once
- Absolute timeout (SESSION_ABSOLUTE_HOURS) and idle timeout (SESSION_IDLE_HOURS)
- Sessions of deactivated users and of paused, inactive, or deleted shops
  are revoked the next time they are presented
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, Shop, User
from ..tenancy import TenantContext
from jewelshop.time_utils import utcnow


logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Validated session: who is calling and on behalf of which shop."""
    user: User
    session: SessionToken
    shop_id: int | None

    @property
    def tenant(self) -> TenantContext:
        return TenantContext(shop_id=self.shop_id, user_id=self.user.id, role=self.user.role)


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_HOURS", 2))


def generate_token() -> str:
    """64 hex characters of CSPRNG output. This is what the client holds."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens are high-entropy, so a fast hash is enough (unlike passwords).
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(
    user: User,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for an authenticated user.

    Returns (session_record, plaintext_token).
    """
    now = utcnow()
    plaintext = generate_token()
    session = SessionToken(
        user_id=user.id,
        shop_id=user.shop_id,
        token_hash=hash_token(plaintext),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext


def _revoke(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason
    db.session.commit()
    logger.info("Session %s revoked: %s", session.id, reason)


def validate_session(token: str) -> SessionContext | None:
    """
    Return the SessionContext for a live token, or None.

    None when the token is unknown, expired, revoked, idle too long, or
    belongs to a deactivated user or a shop that is no longer operational.
    Updates last_used_at on success.
    """
    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout", now)
        return None

    user = session.user
    if user is None or not user.is_active:
        _revoke(session, "User account deactivated", now)
        return None

    if session.shop_id is not None:
        shop = db.session.get(Shop, session.shop_id)
        if shop is None or not shop.is_operational:
            _revoke(session, "Shop is not operational", now)
            return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=session, shop_id=session.shop_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Returns True if a live session was revoked, False if none matched."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return False
    _revoke(session, reason, utcnow())
    return True


def _revoke_live(reason: str, **criteria) -> int:
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(is_revoked=False, **criteria).all()
    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
    db.session.flush()
    return len(sessions)


def revoke_shop_sessions(shop_id: int, reason: str) -> int:
    """
    Revoke every live session of a shop (pause, deactivate, delete).

    Flushes only; runs inside the caller's unit of work.
    """
    return _revoke_live(reason, shop_id=shop_id)


def revoke_user_sessions(user_id: int, reason: str) -> int:
    """Same as revoke_shop_sessions, for one user's logins."""
    return _revoke_live(reason, user_id=user_id)
