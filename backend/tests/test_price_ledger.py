"""
Price ledger tests.

Verifies:
- First observation always recorded (no previous, no percent change)
- Changes within 0.001 are not recorded; larger changes append exactly one entry
- percentChange computed from the current cost
- Repeated identical submissions are idempotent
- Retroactive observations do not displace the current price
"""

from datetime import date
from decimal import Decimal

import pytest

from dsdrecon.models import PriceLedgerEntry
from dsdrecon.services import price_ledger
from dsdrecon.services.price_ledger import LEDGER_EPSILON, percent_change


def entry_count(db_session, product_id):
    return db_session.query(PriceLedgerEntry).filter_by(product_id=product_id).count()


class TestPercentChange:
    def test_computed_from_previous(self):
        assert percent_change(Decimal("10.25"), Decimal("10.00")) == Decimal("2.5000")
        assert percent_change(Decimal("9.00"), Decimal("10.00")) == Decimal("-10.0000")

    def test_no_previous(self):
        assert percent_change(Decimal("5"), None) is None
        assert percent_change(Decimal("5"), Decimal("0")) is None


class TestRecord:
    def test_first_entry_recorded(self, db_session, product):
        entry = price_ledger.record_price(
            product_id=product.id,
            effective_date=date(2026, 1, 1),
            unit_cost="$10.00",
        )
        db_session.commit()

        assert entry is not None
        assert entry.unit_cost == Decimal("10.00")
        assert entry.previous_cost is None
        assert entry.change_pct is None
        assert price_ledger.current_price(product.id).id == entry.id

    @pytest.mark.parametrize("new_cost", ["10.00", "10.001", "9.999", "10.0005"])
    def test_within_epsilon_not_recorded(self, db_session, priced_product, new_cost):
        entry = price_ledger.record_price(
            product_id=priced_product.id,
            effective_date=date(2026, 2, 1),
            unit_cost=Decimal(new_cost),
        )
        db_session.commit()

        assert entry is None
        assert entry_count(db_session, priced_product.id) == 1

    @pytest.mark.parametrize("new_cost,expected_pct", [
        ("10.0011", Decimal("0.0110")),
        ("10.25", Decimal("2.5000")),
        ("8.00", Decimal("-20.0000")),
    ])
    def test_outside_epsilon_appends_one_entry(self, db_session, priced_product, new_cost, expected_pct):
        entry = price_ledger.record_price(
            product_id=priced_product.id,
            effective_date=date(2026, 2, 1),
            unit_cost=Decimal(new_cost),
            source_invoice_id=None,
        )
        db_session.commit()

        assert entry is not None
        assert entry.previous_cost == Decimal("10.00")
        assert entry.change_pct == expected_pct
        assert entry_count(db_session, priced_product.id) == 2
        assert price_ledger.current_price(priced_product.id).unit_cost == Decimal(new_cost)

    def test_epsilon_constant(self):
        assert LEDGER_EPSILON == Decimal("0.001")

    def test_same_day_resubmission_is_idempotent(self, db_session, priced_product):
        """Replaying the same observation leaves one new entry (last write is current)."""
        for _ in range(3):
            price_ledger.record_price(
                product_id=priced_product.id,
                effective_date=date(2026, 2, 1),
                unit_cost=Decimal("11.00"),
            )
        db_session.commit()

        assert entry_count(db_session, priced_product.id) == 2
        assert price_ledger.current_price(priced_product.id).unit_cost == Decimal("11.00")

    def test_same_day_second_price_becomes_current(self, db_session, priced_product):
        price_ledger.record_price(product_id=priced_product.id, effective_date=date(2026, 2, 1), unit_cost="11.00")
        price_ledger.record_price(product_id=priced_product.id, effective_date=date(2026, 2, 1), unit_cost="12.00")
        db_session.commit()

        current = price_ledger.current_price(priced_product.id)
        assert current.unit_cost == Decimal("12.00")
        assert current.previous_cost == Decimal("11.00")

    def test_retroactive_date_skipped(self, db_session, priced_product):
        entry = price_ledger.record_price(
            product_id=priced_product.id,
            effective_date=date(2025, 12, 1),
            unit_cost=Decimal("7.00"),
        )
        db_session.commit()

        assert entry is None
        assert price_ledger.current_price(priced_product.id).unit_cost == Decimal("10.00")

    def test_history_newest_first(self, db_session, priced_product):
        price_ledger.record_price(product_id=priced_product.id, effective_date=date(2026, 3, 1), unit_cost="10.50")
        price_ledger.record_price(product_id=priced_product.id, effective_date=date(2026, 4, 1), unit_cost="11.00")
        db_session.commit()

        history = price_ledger.price_history(priced_product.id)
        assert [h.effective_date for h in history] == [date(2026, 4, 1), date(2026, 3, 1), date(2026, 1, 1)]

    @pytest.mark.parametrize("bad_cost", [0, -1, "abc", None])
    def test_rejects_non_positive_cost(self, db_session, product, bad_cost):
        with pytest.raises(ValueError):
            price_ledger.record_price(product_id=product.id, effective_date=date(2026, 1, 1), unit_cost=bad_cost)

    def test_rejects_unknown_product(self, db_session):
        with pytest.raises(ValueError):
            price_ledger.record_price(product_id=9999, effective_date=date(2026, 1, 1), unit_cost="1.00")
