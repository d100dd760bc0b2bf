# Overview: Service-layer price verification; classifies invoiced unit prices against the price ledger.

"""
Price Verification

Compares the invoiced unit price of each line against the product's current
ledger cost:

- no product, or no ledger entry          -> unmatched (matched=False)
- |(price - expected) / expected| <= 2 %  -> none
- invoiced price of zero                  -> none (nothing to compare)
- otherwise                               -> price_increase / price_decrease

The 2 % tolerance absorbs rounding and unit-of-measure noise. It is a fixed
business constant, not a statistical estimate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from ..models import Product
from . import price_ledger
from .line_items import LineItem
from dsdrecon.time_utils import to_iso_date


DISCREPANCY_THRESHOLD_PCT = Decimal("2.0")

DISCREPANCY_NONE = "none"
DISCREPANCY_INCREASE = "price_increase"
DISCREPANCY_DECREASE = "price_decrease"
DISCREPANCY_UNMATCHED = "unmatched"


@dataclass
class Discrepancy:
    expected: Decimal
    actual: Decimal
    difference: Decimal
    percent_change: Decimal

    def to_dict(self) -> dict:
        return {
            "expected": float(self.expected),
            "actual": float(self.actual),
            "difference": float(self.difference),
            "percentChange": float(self.percent_change),
        }


@dataclass
class VerificationOutcome:
    line: LineItem
    matched: bool
    discrepancy_type: str
    product: Product | None = None
    expected_cost: Decimal | None = None
    last_price_date: date | None = None
    discrepancy: Discrepancy | None = None
    matched_by: str | None = None
    # pending | verified | short | over | missing (quantity mode only)
    line_status: str | None = None
    received_qty: int | None = None

    @property
    def has_discrepancy(self) -> bool:
        return self.discrepancy is not None

    def to_dict(self) -> dict:
        data = self.line.to_dict()
        data.update({
            "invoicedUnitPrice": float(self.line.unit_price),
            "invoicedAmount": float(self.line.amount),
            "matched": self.matched,
            "matchedBy": self.matched_by,
            "matchedProduct": {
                "productId": self.product.id,
                "upc": self.product.upc,
                "description": self.product.description,
                "itemCode": self.product.item_code,
                "expectedCost": float(self.expected_cost) if self.expected_cost is not None else None,
                "lastPriceDate": to_iso_date(self.last_price_date),
            } if self.product else None,
            "hasDiscrepancy": self.has_discrepancy,
            "discrepancyType": self.discrepancy_type,
            "discrepancy": self.discrepancy.to_dict() if self.discrepancy else None,
        })
        if self.line_status is not None:
            data["lineStatus"] = self.line_status
            data["receivedQty"] = self.received_qty
        return data


@dataclass
class VerificationSummary:
    total_lines: int = 0
    matched_lines: int = 0
    unmatched_lines: int = 0
    price_increases: int = 0
    price_decreases: int = 0
    has_issues: bool = False
    outcomes: list[VerificationOutcome] = field(default_factory=list, repr=False)

    @property
    def discrepancies(self) -> int:
        """Lines with any discrepancy, unmatched included."""
        return self.price_increases + self.price_decreases + self.unmatched_lines

    def to_dict(self) -> dict:
        return {
            "totalLines": self.total_lines,
            "matchedLines": self.matched_lines,
            "unmatchedLines": self.unmatched_lines,
            "priceIncreases": self.price_increases,
            "priceDecreases": self.price_decreases,
            "discrepancies": self.discrepancies,
            "hasIssues": self.has_issues,
        }


def classify(
    expected: Decimal,
    actual: Decimal,
    *,
    threshold_pct: Decimal = DISCREPANCY_THRESHOLD_PCT,
) -> tuple[str, Discrepancy | None]:
    """Pure threshold rule. `expected` must be positive."""
    difference = actual - expected
    pct = difference / expected * 100
    if abs(pct) > threshold_pct:
        kind = DISCREPANCY_INCREASE if difference > 0 else DISCREPANCY_DECREASE
        return kind, Discrepancy(expected, actual, difference, pct)
    return DISCREPANCY_NONE, None


def verify_line(
    line: LineItem,
    product: Product | None,
    *,
    matched_by: str | None = None,
    threshold_pct: Decimal = DISCREPANCY_THRESHOLD_PCT,
) -> VerificationOutcome:
    """Verify one line against the product's current ledger price. Never raises."""
    if product is None:
        return VerificationOutcome(line=line, matched=False, discrepancy_type=DISCREPANCY_UNMATCHED)

    current = price_ledger.current_price(product.id)
    if current is None or current.unit_cost is None or current.unit_cost <= 0:
        return VerificationOutcome(
            line=line,
            matched=False,
            discrepancy_type=DISCREPANCY_UNMATCHED,
            product=product,
            matched_by=matched_by,
        )

    expected = Decimal(current.unit_cost)
    outcome = VerificationOutcome(
        line=line,
        matched=True,
        discrepancy_type=DISCREPANCY_NONE,
        product=product,
        expected_cost=expected,
        last_price_date=current.effective_date,
        matched_by=matched_by,
    )

    # Zero means nothing was read to compare; negative credit prices still classify
    if line.unit_price is None or line.unit_price == 0:
        return outcome

    outcome.discrepancy_type, outcome.discrepancy = classify(
        expected, line.unit_price, threshold_pct=threshold_pct
    )
    return outcome


def summarize(outcomes: list[VerificationOutcome]) -> VerificationSummary:
    summary = VerificationSummary(total_lines=len(outcomes), outcomes=list(outcomes))
    for outcome in outcomes:
        if outcome.matched:
            summary.matched_lines += 1
        else:
            summary.unmatched_lines += 1
        if outcome.discrepancy_type == DISCREPANCY_INCREASE:
            summary.price_increases += 1
        elif outcome.discrepancy_type == DISCREPANCY_DECREASE:
            summary.price_decreases += 1
    summary.has_issues = any(o.has_discrepancy or not o.matched for o in outcomes)
    return summary
