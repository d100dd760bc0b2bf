from __future__ import annotations

import json

from ..extensions import db
from dsdrecon.time_utils import to_iso_date, to_utc_z
from dsdrecon.validation import decimal_to_json


# =============================================================================
# VENDOR INVOICE (header + lines)
# =============================================================================

PAYMENT_STATUSES = {"pending", "needs_review", "received", "paid", "disputed"}


class Invoice(db.Model):
    """
    Vendor invoice header.

    IDEMPOTENT: (vendor_id, invoice_number) is unique. Resubmitting the same
    invoice number for the same vendor updates this row in place; the
    submission coordinator then replaces every line.

    LIFECYCLE (payment_status):
    - pending: verified by the associate, waiting for payment
    - needs_review: flagged (price/quantity issues) for manager review
    - received: quantity-verified receiving with no issues
    - paid: approved by a manager
    - disputed: rejected
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", "invoice_number", name="uq_invoices_vendor_number"),
        db.Index("ix_invoices_status_received", "payment_status", "received_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    invoice_number = db.Column(db.String(128), nullable=False)
    invoice_date = db.Column(db.Date, nullable=False)
    received_date = db.Column(db.Date, nullable=False)

    subtotal = db.Column(db.Numeric(12, 4), nullable=True)
    tax = db.Column(db.Numeric(12, 4), nullable=True)
    total_amount = db.Column(db.Numeric(12, 4), nullable=True)
    # Currently always zero; total_amount - promo_credits
    promo_credits = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    net_amount = db.Column(db.Numeric(12, 4), nullable=True)

    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    # Opaque archive pointer to the scanned source document; not validated
    document_url = db.Column(db.Text, nullable=True)
    document_filename = db.Column(db.String(255), nullable=True)

    # invoice | invoice-first | scan-first
    receiving_mode = db.Column(db.String(16), nullable=True)
    # JSON audit blob: scan events, unmatched scans and quantity stats
    receiving_log = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    vendor = db.relationship("Vendor", backref=db.backref("invoices", lazy=True))
    lines = db.relationship(
        "InvoiceLine",
        back_populates="invoice",
        order_by="InvoiceLine.line_number",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} vendor_id={self.vendor_id} number={self.invoice_number!r}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor.name if self.vendor else None,
            "invoice_number": self.invoice_number,
            "invoice_date": to_iso_date(self.invoice_date),
            "received_date": to_iso_date(self.received_date),
            "subtotal": decimal_to_json(self.subtotal),
            "tax": decimal_to_json(self.tax),
            "total_amount": decimal_to_json(self.total_amount),
            "promo_credits": decimal_to_json(self.promo_credits),
            "net_amount": decimal_to_json(self.net_amount),
            "payment_status": self.payment_status,
            "notes": self.notes,
            "document_url": self.document_url,
            "document_filename": self.document_filename,
            "receiving_mode": self.receiving_mode,
            "receiving_log": json.loads(self.receiving_log) if self.receiving_log else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """
    One priced row of an invoice.

    REPLACE-ONLY: on resubmission every line of the invoice is deleted and
    the submitted set inserted, inside the same transaction as the header
    upsert. Lines are never appended to an existing set.

    product_id is NULL when the line could not be resolved; the raw
    upc/item_code/description as extracted are always kept.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.Index("ix_invoice_lines_invoice_line", "invoice_id", "line_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    line_number = db.Column(db.Integer, nullable=False)

    upc = db.Column(db.String(32), nullable=True)
    item_code = db.Column(db.String(64), nullable=True)
    description = db.Column(db.String(255), nullable=True)
    unit = db.Column(db.String(32), nullable=True)

    quantity = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    extended_cost = db.Column(db.Numeric(12, 4), nullable=False, default=0)

    # none | price_increase | price_decrease | unmatched
    discrepancy_type = db.Column(db.String(16), nullable=True)
    expected_cost = db.Column(db.Numeric(12, 4), nullable=True)

    # Quantity reconciliation (invoice-first receiving only)
    received_quantity = db.Column(db.Integer, nullable=True)
    line_status = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "line_number": self.line_number,
            "upc": self.upc,
            "item_code": self.item_code,
            "description": self.description,
            "unit": self.unit,
            "quantity": decimal_to_json(self.quantity),
            "unit_cost": decimal_to_json(self.unit_cost),
            "extended_cost": decimal_to_json(self.extended_cost),
            "discrepancy_type": self.discrepancy_type,
            "expected_cost": decimal_to_json(self.expected_cost),
            "received_quantity": self.received_quantity,
            "line_status": self.line_status,
        }
