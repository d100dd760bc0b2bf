"""
Concurrency tests against a file-backed SQLite database.

Each worker thread pushes its own app context, so it gets its own session
and its own connection, like two requests served at once.

Verifies:
- Two record_price() calls for the same change append exactly one entry
- Two upsert_product() calls for the same new UPC leave exactly one row
- Neither race surfaces an exception once lock retries are applied
"""

import threading
from datetime import date
from decimal import Decimal

import pytest

from dsdrecon import create_app
from dsdrecon.extensions import db
from dsdrecon.models import PriceLedgerEntry, Product
from dsdrecon.services import price_ledger
from dsdrecon.services.concurrency import run_with_retry
from dsdrecon.services.product_resolver import upsert_product


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {
            'connect_args': {'check_same_thread': False, 'timeout': 30},
        },
        'EXTRACTION_SERVICE_URL': None,
    })

    with app.app_context():
        db.create_all()
        db.session.remove()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def run_concurrently(app, work, workers=2):
    """Run `work` in `workers` threads started together; returns (results, errors)."""
    results = []
    errors = []
    lock = threading.Lock()
    barrier = threading.Barrier(workers)

    def worker():
        with app.app_context():
            try:
                barrier.wait()
                result = run_with_retry(work, attempts=5)
                with lock:
                    results.append(result)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


class TestLedgerRace:
    def test_same_change_recorded_once(self, file_app):
        with file_app.app_context():
            product = Product(upc="028400090896", description="Doritos Nacho Cheese 9.25oz", source="internal")
            db.session.add(product)
            db.session.flush()
            db.session.add(PriceLedgerEntry(
                product_id=product.id,
                effective_date=date(2026, 1, 1),
                unit_cost=Decimal("10.00"),
            ))
            db.session.commit()
            product_id = product.id

        def record():
            entry = price_ledger.record_price(
                product_id=product_id,
                effective_date=date(2026, 2, 1),
                unit_cost=Decimal("11.00"),
            )
            db.session.commit()
            return entry is not None

        results, errors = run_concurrently(file_app, record)

        assert errors == []
        assert sorted(results) == [False, True]
        with file_app.app_context():
            costs = [
                e.unit_cost
                for e in db.session.query(PriceLedgerEntry)
                .filter_by(product_id=product_id)
                .order_by(PriceLedgerEntry.id)
            ]
            assert costs == [Decimal("10.00"), Decimal("11.00")]


class TestProductRace:
    def test_same_upc_creates_one_row(self, file_app):
        def create():
            product = upsert_product(upc="012000171864", description="Pepsi Cola 12pk")
            db.session.commit()
            return product.id

        results, errors = run_concurrently(file_app, create)

        assert errors == []
        assert len(results) == 2
        assert results[0] == results[1]
        with file_app.app_context():
            assert db.session.query(Product).filter_by(upc="012000171864").count() == 1
