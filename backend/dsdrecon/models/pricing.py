from __future__ import annotations

from ..extensions import db
from dsdrecon.time_utils import to_iso_date, to_utc_z
from dsdrecon.validation import decimal_to_json


class PriceLedgerEntry(db.Model):
    """
    Effective-dated cost observation for a product.

    APPEND-ONLY: rows are never updated or deleted by the engine.
    The current price of a product is its entry with the latest
    effective_date (ties broken by id, i.e. insertion order).

    INVARIANT: a row is appended only when the product has no entry yet or
    the new unit cost differs from the current one by more than the ledger
    epsilon. See services/price_ledger.py.
    """
    __tablename__ = "price_ledger_entries"
    __table_args__ = (
        db.Index("ix_price_ledger_product_effective", "product_id", "effective_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    effective_date = db.Column(db.Date, nullable=False)
    unit_cost = db.Column(db.Numeric(12, 4), nullable=False)
    previous_cost = db.Column(db.Numeric(12, 4), nullable=True)
    change_pct = db.Column(db.Numeric(10, 4), nullable=True)

    source_invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("price_entries", lazy="dynamic"))

    def __repr__(self) -> str:
        return (
            f"<PriceLedgerEntry id={self.id} product_id={self.product_id} "
            f"effective_date={self.effective_date} unit_cost={self.unit_cost}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "effective_date": to_iso_date(self.effective_date),
            "unit_cost": decimal_to_json(self.unit_cost),
            "previous_cost": decimal_to_json(self.previous_cost),
            "change_pct": decimal_to_json(self.change_pct),
            "source_invoice_id": self.source_invoice_id,
            "created_at": to_utc_z(self.created_at),
        }
