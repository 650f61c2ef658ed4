"""
Pytest fixtures for serialdesk backend tests.

Provides a fresh in-memory database per test, the three account roles with
bearer tokens, and a product with serialized units.
"""

import pytest
from serialdesk import create_app
from serialdesk.extensions import db
from serialdesk.models import Product
from serialdesk.services.auth_service import create_user
from serialdesk.services.session_service import create_session
from serialdesk.services import product_unit_service


PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'NOTIFICATIONS_ENABLED': False,
        'EMAIL_SERVICE_URL': 'http://email.test',
        'SMTP_HOST': None,
        'WARRANTY_CERTIFICATES_ENABLED': False,
        'CERTIFICATE_STORAGE_DIR': str(tmp_path / 'certificates'),
        'CERTIFICATE_BASE_URL': '/static/certificates',
        'INVOICE_STORAGE_DIR': str(tmp_path / 'invoices'),
        'INVOICE_BASE_URL': '/static/invoices',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return create_user(name="Admin", email="admin@serialdesk.test", password=PASSWORD, role="admin")


@pytest.fixture(scope='function')
def customer(db_session):
    return create_user(name="Casey Customer", email="casey@example.com", password=PASSWORD, role="user")


@pytest.fixture(scope='function')
def retailer(db_session):
    return create_user(name="Rita Retail", email="rita@shop.example.com", password=PASSWORD, role="retailer")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user) -> dict:
    _, token = create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return headers_for(admin_user)


@pytest.fixture(scope='function')
def customer_headers(customer):
    return headers_for(customer)


@pytest.fixture(scope='function')
def retailer_headers(retailer):
    return headers_for(retailer)


@pytest.fixture(scope='function')
def product(db_session):
    """Product with a 12 month default warranty and no units."""
    product = Product(
        name="Solar Inverter 5kW",
        category="inverters",
        price_cents=150000,
        retailer_price_cents=120000,
        warranty_period_months=12,
    )
    db_session.add(product)
    db_session.commit()
    return product


def make_units(product, serials, *, stock_type="both", model_number="INV-5K", **extra):
    rows = [
        {"serial_number": s, "model_number": model_number, "stock_type": stock_type, **extra}
        for s in serials
    ]
    return product_unit_service.add_units(product_id=product.id, units=rows)


@pytest.fixture(scope='function')
def stocked_product(product):
    """product with three available units: two 'both', one 'online'."""
    make_units(product, ["SN-0001", "SN-0002"])
    make_units(product, ["SN-0003"], stock_type="online")
    return product
