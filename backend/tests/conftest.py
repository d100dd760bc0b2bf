"""
Pytest fixtures for reconciliation engine tests.

Provides test database setup, entity fixtures, and test client.
"""

from datetime import date
from decimal import Decimal

import pytest
from dsdrecon import create_app
from dsdrecon.extensions import db
from dsdrecon.models import Vendor, Product, PriceLedgerEntry


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'EXTRACTION_SERVICE_URL': None,
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
def vendor(db_session):
    """Create the Frito-Lay DSD vendor."""
    vendor = Vendor(name="Frito-Lay Inc", short_code="FRITOLAY")
    db_session.add(vendor)
    db_session.commit()
    return vendor


@pytest.fixture(scope='function')
def other_vendor(db_session):
    """Create a second vendor (Pepsi)."""
    vendor = Vendor(name="Pepsi Bottling", short_code="PEPSI")
    db_session.add(vendor)
    db_session.commit()
    return vendor


@pytest.fixture(scope='function')
def product(db_session, vendor):
    """Create a product with a UPC-A barcode."""
    product = Product(
        upc="028400090896",
        item_code="12345",
        description="Doritos Nacho Cheese 9.25oz",
        vendor_id=vendor.id,
        source="internal",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def priced_product(db_session, product):
    """Product with a ledger entry of 10.00 effective 2026-01-01."""
    entry = PriceLedgerEntry(
        product_id=product.id,
        effective_date=date(2026, 1, 1),
        unit_cost=Decimal("10.00"),
    )
    db_session.add(entry)
    db_session.commit()
    return product


def line_payload(**overrides) -> dict:
    """Helper to build a camelCase invoice line payload."""
    line = {
        "lineNumber": 1,
        "description": "Doritos Nacho Cheese 9.25oz",
        "quantity": 10,
        "unit": "EA",
        "unitPrice": 10.00,
        "amount": 100.00,
        "productCode": "028400090896",
    }
    line.update(overrides)
    return line


def submission_payload(**overrides) -> dict:
    """Helper to build a submission body."""
    payload = {
        "vendorName": "Frito-Lay",
        "invoiceHeader": {
            "invoiceNumber": "INV-1001",
            "invoiceDate": "2026-02-01",
            "subtotal": 100.00,
            "tax": 0,
            "invoiceTotal": 100.00,
        },
        "lineItems": [line_payload()],
    }
    payload.update(overrides)
    return payload
