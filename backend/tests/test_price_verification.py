"""
Price verification tests.

Verifies:
- Discrepancy threshold: none iff |pct| <= 2.0, otherwise increase/decrease by sign
- Scenario A: ledger 10.00, invoiced 10.25 -> price_increase (0.25, 2.5 %)
- Scenario B: no ledger entry -> unmatched regardless of price
- Summary aggregation and hasIssues
"""

from decimal import Decimal

import pytest

from dsdrecon.services.line_items import parse_line_item
from dsdrecon.services.price_verification import (
    DISCREPANCY_DECREASE,
    DISCREPANCY_INCREASE,
    DISCREPANCY_NONE,
    DISCREPANCY_UNMATCHED,
    classify,
    summarize,
    verify_line,
)
from conftest import line_payload


class TestClassify:
    @pytest.mark.parametrize("actual,expected_type", [
        ("10.00", DISCREPANCY_NONE),
        ("10.20", DISCREPANCY_NONE),     # exactly +2.0 %
        ("9.80", DISCREPANCY_NONE),      # exactly -2.0 %
        ("10.2001", DISCREPANCY_INCREASE),
        ("9.7999", DISCREPANCY_DECREASE),
        ("15.00", DISCREPANCY_INCREASE),
        ("1.00", DISCREPANCY_DECREASE),
    ])
    def test_threshold(self, actual, expected_type):
        kind, discrepancy = classify(Decimal("10.00"), Decimal(actual))
        assert kind == expected_type
        assert (discrepancy is None) == (expected_type == DISCREPANCY_NONE)

    def test_custom_threshold(self):
        kind, _ = classify(Decimal("10.00"), Decimal("10.40"), threshold_pct=Decimal("5"))
        assert kind == DISCREPANCY_NONE


class TestVerifyLine:
    def test_scenario_a_price_increase(self, db_session, priced_product):
        line = parse_line_item(line_payload(unitPrice=10.25), 1)
        outcome = verify_line(line, priced_product, matched_by="upc")

        assert outcome.discrepancy_type == DISCREPANCY_INCREASE
        assert outcome.matched is True
        assert outcome.discrepancy.difference == Decimal("0.25")
        assert outcome.discrepancy.percent_change == Decimal("2.5")

        data = outcome.to_dict()
        assert data["hasDiscrepancy"] is True
        assert data["discrepancy"] == {
            "expected": 10.0,
            "actual": 10.25,
            "difference": 0.25,
            "percentChange": 2.5,
        }
        assert data["matchedProduct"]["productId"] == priced_product.id
        assert data["matchedProduct"]["lastPriceDate"] == "2026-01-01"

    def test_scenario_b_no_ledger_entry(self, db_session, product):
        line = parse_line_item(line_payload(unitPrice=5.00), 1)
        outcome = verify_line(line, product)

        assert outcome.discrepancy_type == DISCREPANCY_UNMATCHED
        assert outcome.matched is False
        assert outcome.product is product

    def test_no_product_is_unmatched(self):
        line = parse_line_item(line_payload(), 1)
        outcome = verify_line(line, None)
        assert outcome.discrepancy_type == DISCREPANCY_UNMATCHED
        assert outcome.to_dict()["matchedProduct"] is None

    def test_within_tolerance(self, db_session, priced_product):
        line = parse_line_item(line_payload(unitPrice="$10.15"), 1)
        outcome = verify_line(line, priced_product)
        assert outcome.discrepancy_type == DISCREPANCY_NONE
        assert outcome.matched is True
        assert outcome.expected_cost == Decimal("10.00")

    def test_missing_invoiced_price_not_flagged(self, db_session, priced_product):
        line = parse_line_item(line_payload(unitPrice=None), 1)
        outcome = verify_line(line, priced_product)
        assert outcome.discrepancy_type == DISCREPANCY_NONE
        assert outcome.discrepancy is None

    def test_credit_price_is_a_decrease(self, db_session, priced_product):
        line = parse_line_item(line_payload(unitPrice="(5.00)"), 1)
        assert line.unit_price == Decimal("-5.00")

        outcome = verify_line(line, priced_product)
        assert outcome.discrepancy_type == DISCREPANCY_DECREASE
        assert outcome.discrepancy.difference == Decimal("-15.00")
        assert outcome.discrepancy.percent_change == Decimal("-150")


class TestSummary:
    def test_aggregates(self, db_session, priced_product):
        outcomes = [
            verify_line(parse_line_item(line_payload(unitPrice=10.00), 1), priced_product),
            verify_line(parse_line_item(line_payload(unitPrice=11.00), 2), priced_product),
            verify_line(parse_line_item(line_payload(unitPrice=9.00), 3), priced_product),
            verify_line(parse_line_item(line_payload(), 4), None),
        ]
        summary = summarize(outcomes)

        assert summary.to_dict() == {
            "totalLines": 4,
            "matchedLines": 3,
            "unmatchedLines": 1,
            "priceIncreases": 1,
            "priceDecreases": 1,
            "discrepancies": 3,
            "hasIssues": True,
        }

    def test_clean_invoice_has_no_issues(self, db_session, priced_product):
        summary = summarize([verify_line(parse_line_item(line_payload(), 1), priced_product)])
        assert summary.has_issues is False
        assert summary.discrepancies == 0
