"""
Pytest fixtures for shoppos backend tests.

Provides an in-memory database, shop/product/customer factories, a
recorder for post-commit events and the Flask test client.
"""

from decimal import Decimal

import pytest

from shoppos import create_app
from shoppos.extensions import db
from shoppos.models import Customer, Product, Shop
from shoppos.services.notifier import get_notifier


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_SHOP_TIMEZONE': 'Asia/Dhaka',
        'DB_RETRY_BACKOFF': 0,
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


@pytest.fixture(scope='function')
def shop(db_session):
    """Shop without invoice numbering."""
    shop = Shop(name="Corner Store", timezone="Asia/Dhaka")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def invoice_shop(db_session):
    """Shop that issues sequential invoice numbers."""
    shop = Shop(
        name="Invoice Store",
        timezone="Asia/Dhaka",
        sales_invoice_enabled=True,
        sales_invoice_prefix="INV",
        sale_return_prefix="RET",
    )
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def other_shop(db_session):
    shop = Shop(name="Shop Across The Road", timezone="Asia/Dhaka")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(shop, name=..., sell_price=..., stock_qty=...)."""
    def _make(shop, name="Rice 1kg", sell_price="50.00", buy_price="40.00",
              stock_qty="10", track_stock=True, is_active=True):
        product = Product(
            shop_id=shop.id,
            name=name,
            sell_price=Decimal(sell_price),
            buy_price=Decimal(buy_price) if buy_price is not None else None,
            stock_qty=Decimal(stock_qty),
            track_stock=track_stock,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    """Factory: make_customer(shop, name=...). Balances start at zero."""
    def _make(shop, name="Karim", phone="01700000000"):
        customer = Customer(shop_id=shop.id, name=name, phone=phone, total_due=Decimal("0.00"))
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


@pytest.fixture(scope='function')
def events(app):
    """Records (kind, shop_id, payload) for every published event."""
    recorded = []

    def _record(kind, shop_id, payload):
        recorded.append((kind, shop_id, payload))

    notifier = get_notifier()
    notifier.subscribe(_record)
    yield recorded
    notifier.unsubscribe(_record)


@pytest.fixture(scope='session')
def cart_line():
    """Builds a cart line in the POS client's wire shape."""
    def _line(product, quantity, unit_price=None):
        return {
            "productId": product.id,
            "quantity": str(quantity),
            "unitPrice": str(unit_price if unit_price is not None else product.sell_price),
        }
    return _line
