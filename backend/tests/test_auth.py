# Overview: Pytest coverage for passwords, users, sessions, and shop administration.

"""
Authentication & Shop Administration Tests

SECURITY TESTS:
1. Passwords are bcrypt-hashed and strength-checked
2. Owners only manage users inside their own shop
3. Sessions die on logout, idle timeout, or when the shop stops operating
4. Only platform administrators manage shops
"""

from datetime import timedelta

import pytest

from jewelshop.errors import (
    AuthenticationRequired,
    ConflictError,
    NotFoundOrForeignTenant,
    PermissionDenied,
    ValidationError,
)
from jewelshop.extensions import db
from jewelshop.models import AuditLog, SessionToken, User
from jewelshop.services import auth_service, session_service, shop_service
from jewelshop.services.auth_service import PasswordValidationError, hash_password, verify_password
from jewelshop.tenancy import TenantContext
from jewelshop.time_utils import utcnow

PASSWORD = "Password123!"


@pytest.fixture
def admin_ctx(super_admin):
    return TenantContext.from_user(super_admin)


class TestPasswords:

    def test_hash_and_verify(self, app):
        hashed = hash_password(PASSWORD)
        assert hashed != PASSWORD
        assert verify_password(PASSWORD, hashed)
        assert not verify_password("Wrong123!", hashed)

    @pytest.mark.parametrize("weak", ["short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords_rejected(self, app, weak):
        with pytest.raises(PasswordValidationError):
            hash_password(weak)

    def test_malformed_hash(self, app):
        assert verify_password(PASSWORD, "not-a-bcrypt-hash") is False


class TestUsers:

    def test_owner_creates_user_in_own_shop(self, ctx_a, shop_a, shop_b):
        user = auth_service.create_user(
            ctx_a,
            username="new_sales",
            password=PASSWORD,
            name="New Sales",
            role="SALES",
            shop_id=shop_b.id,
        )
        assert user.shop_id == shop_a.id

    def test_owner_cannot_create_super_admin(self, ctx_a):
        with pytest.raises(PermissionDenied):
            auth_service.create_user(
                ctx_a, username="sneaky", password=PASSWORD, name="Sneaky", role="SUPER_ADMIN",
            )

    def test_sales_cannot_create_users(self, sales_a):
        with pytest.raises(PermissionDenied):
            auth_service.create_user(
                TenantContext.from_user(sales_a),
                username="other", password=PASSWORD, name="Other", role="SALES",
            )

    def test_usernames_globally_unique(self, ctx_b, owner_a):
        with pytest.raises(ConflictError):
            auth_service.create_user(ctx_b, username="owner_a", password=PASSWORD, name="Dup", role="SALES")

    def test_shop_user_requires_shop(self, admin_ctx):
        with pytest.raises(ValidationError):
            auth_service.create_user(admin_ctx, username="orphan", password=PASSWORD, name="Orphan", role="OWNER")

    def test_list_users_scoped(self, ctx_a, owner_a, sales_a, owner_b):
        usernames = {u.username for u in auth_service.list_users(ctx_a)}
        assert usernames == {"owner_a", "sales_a"}


class TestAccountMaintenance:

    def test_user_edits_own_profile(self, sales_a):
        ctx = TenantContext.from_user(sales_a)

        user = auth_service.update_user(ctx, sales_a.id, {"name": "Meera", "password": "NewPassword1!"})

        assert user.name == "Meera"
        assert verify_password("NewPassword1!", user.password_hash)
        assert auth_service.authenticate("sales_a", "NewPassword1!").id == sales_a.id

    def test_weak_password_leaves_account_unchanged(self, sales_a):
        ctx = TenantContext.from_user(sales_a)
        with pytest.raises(PasswordValidationError):
            auth_service.update_user(ctx, sales_a.id, {"name": "Changed", "password": "short"})
        assert db.session.get(User, sales_a.id).name != "Changed"

    def test_owner_reassigns_staff_role(self, ctx_a, sales_a):
        user = auth_service.update_user(ctx_a, sales_a.id, {"role": "ACCOUNTS"})

        assert user.role == "ACCOUNTS"
        entry = db.session.query(AuditLog).filter_by(module="USERS", entity_id=sales_a.id).one()
        assert entry.before_data["role"] == "SALES"
        assert entry.after_data["role"] == "ACCOUNTS"

    @pytest.mark.parametrize("role", ["OWNER", "SUPER_ADMIN"])
    def test_owner_cannot_grant_elevated_roles(self, ctx_a, sales_a, role):
        with pytest.raises(PermissionDenied):
            auth_service.update_user(ctx_a, sales_a.id, {"role": role})
        assert db.session.get(User, sales_a.id).role == "SALES"

    def test_staff_cannot_change_own_role(self, sales_a):
        with pytest.raises(PermissionDenied):
            auth_service.update_user(TenantContext.from_user(sales_a), sales_a.id, {"role": "ACCOUNTS"})

    def test_staff_cannot_edit_others(self, sales_a, owner_a):
        with pytest.raises(NotFoundOrForeignTenant):
            auth_service.update_user(TenantContext.from_user(sales_a), owner_a.id, {"name": "Hacked"})

    def test_foreign_shop_user_not_found(self, ctx_a, owner_b):
        with pytest.raises(NotFoundOrForeignTenant):
            auth_service.get_user(ctx_a, owner_b.id)
        with pytest.raises(NotFoundOrForeignTenant):
            auth_service.update_user(ctx_a, owner_b.id, {"is_active": False})

    def test_unknown_fields_rejected(self, ctx_a, sales_a):
        with pytest.raises(ValidationError):
            auth_service.update_user(ctx_a, sales_a.id, {"username": "renamed"})

    def test_deactivate_revokes_sessions(self, ctx_a, sales_a):
        _, token = session_service.create_session(sales_a)

        user = auth_service.deactivate_user(ctx_a, sales_a.id)

        assert user.is_active is False
        assert session_service.validate_session(token) is None
        revoked = db.session.query(SessionToken).filter_by(user_id=sales_a.id).one()
        assert revoked.revoked_reason == "User account deactivated"

    def test_cannot_deactivate_self(self, ctx_a, owner_a):
        with pytest.raises(ValidationError):
            auth_service.deactivate_user(ctx_a, owner_a.id)
        assert db.session.get(User, owner_a.id).is_active is True

    def test_super_admin_promotes_owner(self, admin_ctx, sales_a):
        assert auth_service.update_user(admin_ctx, sales_a.id, {"role": "OWNER"}).role == "OWNER"
        with pytest.raises(ValidationError):
            auth_service.update_user(admin_ctx, sales_a.id, {"role": "SUPER_ADMIN"})


class TestAuthenticate:

    def test_success_sets_last_login(self, owner_a):
        user = auth_service.authenticate("owner_a", PASSWORD)
        assert user.id == owner_a.id
        assert user.last_login_at is not None

    def test_wrong_password(self, owner_a):
        with pytest.raises(AuthenticationRequired) as exc:
            auth_service.authenticate("owner_a", "Wrong123!")
        assert exc.value.message == "Invalid username or password"

    def test_unknown_user_same_message(self, db_session):
        with pytest.raises(AuthenticationRequired) as exc:
            auth_service.authenticate("nobody", PASSWORD)
        assert exc.value.message == "Invalid username or password"

    def test_paused_shop_refused(self, admin_ctx, owner_a, shop_a):
        shop_service.set_paused(admin_ctx, shop_a.id, True)
        with pytest.raises(AuthenticationRequired):
            auth_service.authenticate("owner_a", PASSWORD)


class TestSessions:

    def test_token_stored_as_hash(self, owner_a):
        session, token = session_service.create_session(owner_a)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token
        assert session.shop_id == owner_a.shop_id

    def test_validate_and_revoke(self, owner_a):
        _, token = session_service.create_session(owner_a)

        context = session_service.validate_session(token)
        assert context.user.id == owner_a.id
        assert context.tenant.shop_id == owner_a.shop_id

        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_idle_timeout(self, app, owner_a):
        session, token = session_service.create_session(owner_a)
        session.last_used_at = utcnow() - timedelta(hours=app.config["SESSION_IDLE_HOURS"] + 1)
        db.session.commit()

        assert session_service.validate_session(token) is None
        assert db.session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_expired(self, owner_a):
        session, token = session_service.create_session(owner_a)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()
        assert session_service.validate_session(token) is None

    def test_pausing_shop_revokes_sessions(self, admin_ctx, owner_a, sales_a, shop_a):
        _, owner_token = session_service.create_session(owner_a)
        _, sales_token = session_service.create_session(sales_a)

        shop_service.set_paused(admin_ctx, shop_a.id, True)

        assert session_service.validate_session(owner_token) is None
        assert session_service.validate_session(sales_token) is None

    def test_deactivated_user(self, owner_a):
        _, token = session_service.create_session(owner_a)
        owner_a.is_active = False
        db.session.commit()
        assert session_service.validate_session(token) is None


class TestShopAdministration:

    def test_create_shop(self, admin_ctx):
        shop = shop_service.create_shop(admin_ctx, {"name": "Kanak Jewels", "gstin": "07CCCCC2222C1Z5"})
        assert shop.is_operational

    def test_duplicate_gstin(self, admin_ctx, shop_a):
        with pytest.raises(ConflictError):
            shop_service.create_shop(admin_ctx, {"name": "Copy", "gstin": shop_a.gstin})

    def test_owner_cannot_manage_shops(self, ctx_a, shop_b):
        with pytest.raises(PermissionDenied):
            shop_service.set_paused(ctx_a, shop_b.id, True)
        with pytest.raises(PermissionDenied):
            shop_service.list_shops(ctx_a)

    def test_resume(self, admin_ctx, shop_a):
        shop_service.set_paused(admin_ctx, shop_a.id, True)
        shop = shop_service.set_paused(admin_ctx, shop_a.id, False)
        assert shop.is_operational

    def test_delete_hides_shop(self, admin_ctx, shop_a, shop_b):
        shop_service.delete_shop(admin_ctx, shop_a.id)
        assert [s.id for s in shop_service.list_shops(admin_ctx)] == [shop_b.id]
        assert len(shop_service.list_shops(admin_ctx, include_deleted=True)) == 2
