"""
Pytest fixtures for ZES POS backend tests.

Each test gets its own SQLite file so the write-lock path (BEGIN IMMEDIATE)
behaves the way it does in production.
"""

import pytest

from zes_pos import create_app
from zes_pos.extensions import db
from zes_pos.models import User
from zes_pos.permissions import ROLE_OWNER, ROLE_SHOPKEEPER
from zes_pos.services import catalog_service, customer_service
from zes_pos.services.auth_service import hash_password

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'zes_pos_test.sqlite3'}",
        'LOG_LEVEL': 'WARNING',
        'TAX_RATE_BPS': 0,
        'LEDGER_RETRY_ATTEMPTS': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Session bound to the test's app context."""
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for catalog products (committed)."""
    def _make(name="LED Bulb", price=35000, stock=10, cost=25000, unit="piece", category="Lighting", watts=None):
        return catalog_service.create_product(patch={
            "name": name,
            "category": category,
            "unit": unit,
            "price_per_unit_cents": price,
            "cost_per_unit_cents": cost,
            "stock": stock,
            "watts": watts,
        })
    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    """Factory for customers (committed, zero balance)."""
    def _make(name="Ahmad Ali", phone="03001234567", address="Lahore"):
        return customer_service.create_customer(patch={"name": name, "phone": phone, "address": address})
    return _make


def _create_user(username: str, role: str) -> User:
    user = User(
        username=username,
        name=username.title(),
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    return _create_user("owner", ROLE_OWNER)


@pytest.fixture(scope='function')
def shopkeeper(db_session):
    return _create_user("shopkeeper", ROLE_SHOPKEEPER)


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers(client, owner):
    return auth_headers(get_auth_token(client, "owner"))


@pytest.fixture(scope='function')
def shopkeeper_headers(client, shopkeeper):
    return auth_headers(get_auth_token(client, "shopkeeper"))
