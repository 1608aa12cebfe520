"""
Pytest fixtures for jewelshop backend tests.

Provides the test database, two isolated shops with owners, tenant
contexts, and factories for catalog data, rates, and received stock.
"""

import pytest

from jewelshop import create_app
from jewelshop.extensions import db
from jewelshop.models import Shop, User
from jewelshop.models.auth import ROLE_ACCOUNTS, ROLE_OWNER, ROLE_SALES, ROLE_SUPER_ADMIN
from jewelshop.services import catalog_service, pricing_service, purchase_order_service
from jewelshop.services.auth_service import hash_password
from jewelshop.tenancy import TenantContext


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_shop(db_session, name, gstin):
    shop = Shop(name=name, gstin=gstin, is_active=True, is_paused=False)
    db_session.add(shop)
    db_session.commit()
    return shop


def _make_user(db_session, shop, username, role):
    user = User(
        shop_id=shop.id if shop is not None else None,
        username=username,
        name=username.replace("_", " ").title(),
        password_hash=hash_password(PASSWORD),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def shop_a(db_session):
    """Shop A (first tenant)."""
    return _make_shop(db_session, "Shop A - Sona Jewellers", "27AAAAA0000A1Z5")


@pytest.fixture(scope='function')
def shop_b(db_session):
    """Shop B (second tenant)."""
    return _make_shop(db_session, "Shop B - Rupa Gold", "29BBBBB1111B1Z5")


@pytest.fixture(scope='function')
def owner_a(db_session, shop_a):
    return _make_user(db_session, shop_a, "owner_a", ROLE_OWNER)


@pytest.fixture(scope='function')
def owner_b(db_session, shop_b):
    return _make_user(db_session, shop_b, "owner_b", ROLE_OWNER)


@pytest.fixture(scope='function')
def sales_a(db_session, shop_a):
    return _make_user(db_session, shop_a, "sales_a", ROLE_SALES)


@pytest.fixture(scope='function')
def accounts_a(db_session, shop_a):
    return _make_user(db_session, shop_a, "accounts_a", ROLE_ACCOUNTS)


@pytest.fixture(scope='function')
def super_admin(db_session):
    return _make_user(db_session, None, "platform_admin", ROLE_SUPER_ADMIN)


@pytest.fixture(scope='function')
def ctx_a(owner_a):
    return TenantContext.from_user(owner_a)


@pytest.fixture(scope='function')
def ctx_b(owner_b):
    return TenantContext.from_user(owner_b)


@pytest.fixture(scope='function')
def make_customer():
    counter = {"n": 0}

    def _make(ctx, **overrides):
        counter["n"] += 1
        payload = {"name": f"Customer {counter['n']}", "phone": f"98765{counter['n']:05d}"}
        payload.update(overrides)
        return catalog_service.create_customer(ctx, payload)

    return _make


@pytest.fixture(scope='function')
def make_supplier():
    counter = {"n": 0}

    def _make(ctx, **overrides):
        counter["n"] += 1
        payload = {"name": f"Supplier {counter['n']}", "phone": "9123456789"}
        payload.update(overrides)
        return catalog_service.create_supplier(ctx, payload)

    return _make


@pytest.fixture(scope='function')
def make_product():
    """1 g of 22K gold, no wastage, making, or stones unless overridden."""
    counter = {"n": 0}

    def _make(ctx, **overrides):
        counter["n"] += 1
        payload = {
            "name": f"Ring {counter['n']}",
            "barcode": f"RING-{counter['n']:04d}",
            "metal_type": "GOLD",
            "purity": "22K",
            "gross_weight_mg": 1000,
            "net_weight_mg": 1000,
        }
        payload.update(overrides)
        return catalog_service.create_product(ctx, payload)

    return _make


@pytest.fixture(scope='function')
def set_rate():
    def _set(ctx, rate_per_gram_paise, metal_type="GOLD", purity="22K"):
        return pricing_service.create_rate(
            ctx,
            metal_type=metal_type,
            purity=purity,
            rate_per_gram_paise=rate_per_gram_paise,
        )

    return _set


@pytest.fixture(scope='function')
def receive_units(make_supplier):
    """
    Put `quantity` AVAILABLE units of a product into stock through a
    purchase order. Returns (purchase_order, stock_items).
    """
    def _receive(ctx, product, quantity=1, unit_cost_paise=300, supplier=None):
        supplier = supplier or make_supplier(ctx)
        po = purchase_order_service.create_purchase_order(
            ctx,
            supplier_id=supplier.id,
            items=[{"product_id": product.id, "quantity": quantity, "unit_price_paise": unit_cost_paise}],
        )
        item = po.items[0]
        result = purchase_order_service.receive_stock(
            ctx,
            po.id,
            entries=[{
                "purchase_order_item_id": item.id,
                "product_id": product.id,
                "quantity_to_receive": quantity,
                "per_unit_cost_paise": unit_cost_paise,
            }],
        )
        return result["purchase_order"], result["stock_items"]

    return _receive


@pytest.fixture(scope='function')
def login(client):
    """Log in and return Authorization headers."""
    def _login(username, password=PASSWORD):
        response = client.post('/api/auth/login', json={
            'username': username,
            'password': password,
        })
        assert response.status_code == 200, response.json
        return {'Authorization': f"Bearer {response.json['data']['token']}"}

    return _login
