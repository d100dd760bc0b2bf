# Overview: Service-layer operations for the effective-dated price ledger.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import PriceLedgerEntry, Product
from .concurrency import lock_row
from dsdrecon.validation import coerce_decimal

"""
Price Ledger Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- Current price = entry with the latest effective_date (ties: latest id).
- A new entry is appended only if the product has no entry, or the new unit
  cost differs from the current one by more than LEDGER_EPSILON.
- Entries are inserted in non-decreasing effective_date order per product;
  an observation dated before the current entry is not recorded.
- record() locks the product row (SELECT ... FOR UPDATE, or a no-op UPDATE
  on SQLite) before reading the current price, so concurrent submissions
  for the same product serialize and the "one entry per real price change"
  rule holds.
"""

LEDGER_EPSILON = Decimal("0.001")

PERCENT_PLACES = Decimal("0.0001")


def percent_change(new: Decimal, previous: Decimal | None) -> Decimal | None:
    if previous is None or previous == 0:
        return None
    return ((new - previous) / previous * 100).quantize(PERCENT_PLACES)


def current_price(product_id: int) -> PriceLedgerEntry | None:
    """Latest effective-dated entry for a product, or None."""
    return (
        db.session.query(PriceLedgerEntry)
        .filter(PriceLedgerEntry.product_id == product_id)
        .order_by(PriceLedgerEntry.effective_date.desc(), PriceLedgerEntry.id.desc())
        .first()
    )


def price_history(product_id: int, *, limit: int = 100) -> list[PriceLedgerEntry]:
    """Ledger entries for a product, newest first."""
    return (
        db.session.query(PriceLedgerEntry)
        .filter(PriceLedgerEntry.product_id == product_id)
        .order_by(PriceLedgerEntry.effective_date.desc(), PriceLedgerEntry.id.desc())
        .limit(limit)
        .all()
    )


def record_price(
    *,
    product_id: int,
    effective_date: date,
    unit_cost,
    source_invoice_id: int | None = None,
) -> PriceLedgerEntry | None:
    """
    Record an observed unit cost; returns the new entry or None if unchanged.

    Runs inside the caller's transaction (flush, no commit).

    Raises:
        ValueError: If unit_cost is not a positive number or the product
            does not exist
    """
    cost = coerce_decimal(unit_cost)
    if cost is None or cost <= 0:
        raise ValueError("unit_cost must be a positive number")

    # Serialize per product: concurrent record() calls for the same product
    # wait here until the first transaction commits.
    product = lock_row(Product, product_id)
    if not product:
        raise ValueError(f"Product {product_id} not found")

    current = current_price(product_id)
    previous = Decimal(current.unit_cost) if current else None

    if current is not None:
        if effective_date < current.effective_date:
            current_app.logger.info(
                "Skipping retroactive price for product %s: %s is before current entry %s",
                product_id, effective_date, current.effective_date,
            )
            return None
        if abs(cost - previous) <= LEDGER_EPSILON:
            return None

    entry = PriceLedgerEntry(
        product_id=product_id,
        effective_date=effective_date,
        unit_cost=cost,
        previous_cost=previous,
        change_pct=percent_change(cost, previous),
        source_invoice_id=source_invoice_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry
