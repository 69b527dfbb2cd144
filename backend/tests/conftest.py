"""
Pytest fixtures for posdesk backend tests.

Provides test database setup, signed-up users with session tokens, catalog
helpers, and a test client.
"""

import pytest
from posdesk import create_app
from posdesk.extensions import db
from posdesk.models import Product, User
from posdesk.services.auth_service import hash_password
from posdesk.services.cart_service import CartRegistry

PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        # Email disabled unless a test configures it
        'EMAILJS_SERVICE_ID': '',
        'EMAILJS_TEMPLATE_ID': '',
        'EMAILJS_PUBLIC_KEY': '',
        'EMAILJS_PRIVATE_KEY': '',
        'PUBLIC_BASE_URL': 'http://shop.test',
        'ALLOW_NEGATIVE_STOCK': False,
        'DEFAULT_LOW_STOCK_THRESHOLD': 10,
        'SALES_FETCH_LIMIT': 100,
        'STREAM_KEEPALIVE_SECONDS': 0.01,
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
    """Create fresh database (and fresh carts) for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions["posdesk.cart_registry"] = CartRegistry()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def email_config(app, monkeypatch):
    """Configure the email provider for the duration of one test."""
    monkeypatch.setitem(app.config, 'EMAILJS_SERVICE_ID', 'service_test')
    monkeypatch.setitem(app.config, 'EMAILJS_TEMPLATE_ID', 'template_test')
    monkeypatch.setitem(app.config, 'EMAILJS_PUBLIC_KEY', 'public_test')
    return app.config


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture EmailJS requests instead of sending them."""
    import httpx

    calls = []

    def fake_post(url, json=None, timeout=None, **kwargs):
        calls.append({"url": url, "json": json, "timeout": timeout})
        return httpx.Response(200, text="OK", request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    return calls


def make_user(db_session, email: str) -> User:
    user = User(email=email, password_hash=hash_password(PASSWORD))
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_a(db_session):
    return make_user(db_session, "owner_a@shop.test")


@pytest.fixture(scope='function')
def user_b(db_session):
    return make_user(db_session, "owner_b@shop.test")


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def headers_a(client, user_a):
    return auth_headers(get_auth_token(client, user_a.email))


@pytest.fixture
def headers_b(client, user_b):
    return auth_headers(get_auth_token(client, user_b.email))


def make_product(db_session, user, name="Tea", price_cents=5000, stock=20, category="Beverages", **extra) -> Product:
    product = Product(
        user_id=user.id,
        name=name,
        category=category,
        price_cents=price_cents,
        stock=stock,
        low_stock_threshold=extra.pop("low_stock_threshold", 10),
        **extra,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def new_product(db_session, user_a):
    """Factory: new_product(name=..., price_cents=..., stock=..., user=...)."""
    def factory(user=None, **kwargs):
        return make_product(db_session, user or user_a, **kwargs)
    return factory
