# Overview: Invoice submission coordinator; resolves, verifies and persists a full invoice in one unit of work.

"""
Invoice Submission Service

WHY: A receiving submission touches vendors, products, the invoice header,
its lines and the price ledger. Either all of it lands or none of it does;
a reader must never see a header without its lines.

UNIT OF WORK (one transaction, retried on lock/deadlock errors):
1. Resolve or create the vendor (fuzzy first-token match)
2. Resolve every line to a product and verify its price against the ledger
   (before this invoice's own prices are recorded)
3. Invoice-first mode: replay scans through the quantity state machine
4. Upsert the header keyed by (vendor_id, invoice_number)
5. Delete all existing lines, insert the submitted set
6. Record each resolved, positively-priced line in the price ledger
7. Commit

FAILURES:
- Missing vendor / invoice number / lines: SubmissionValidationError before
  any write
- A line that cannot be resolved or verified: folded into the summary as
  unmatched, persisted with a NULL product
- Database errors: rollback, propagate; no partial invoice remains
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Invoice, InvoiceLine, Product, Vendor
from ..models.invoices import PAYMENT_STATUSES
from . import price_ledger
from .concurrency import run_with_retry, upsert
from .line_items import LineItem, parse_line_items, quantity_as_units
from .matching import DEFAULT_VENDOR_MATCH, VendorMatchStrategy
from .price_verification import (
    DISCREPANCY_UNMATCHED,
    VerificationOutcome,
    VerificationSummary,
    summarize,
    verify_line,
)
from .product_resolver import ProductResolver, ResolutionResult
from .reconciliation import ReceivingLine, ReceivingSession, ReconciliationError
from .vendor_service import find_vendor, resolve_or_create_vendor
from dsdrecon.time_utils import parse_iso_datetime, today, utcnow
from dsdrecon.validation import (
    ValidationError,
    clean_str,
    coerce_date,
    coerce_decimal,
    coerce_int,
    require_fields,
)


MODE_INVOICE = "invoice"
MODE_INVOICE_FIRST = "invoice-first"
MODE_SCAN_FIRST = "scan-first"
MODES = {MODE_INVOICE, MODE_INVOICE_FIRST, MODE_SCAN_FIRST}

# Associate's explicit verification decision -> payment_status
DECISION_STATUS = {
    "verified": "pending",
    "flagged": "needs_review",
    "rejected": "disputed",
}

APPROVAL_STATUS = {
    "approve": "paid",
    "reject": "disputed",
}

MAX_SCAN_QUANTITY = 9999

# Promotional allowances are not applied to invoice totals
PROMO_CREDITS = Decimal("0")


class SubmissionValidationError(ValidationError):
    """Raised when a submission is structurally invalid (nothing was written)."""


class InvoiceNotFoundError(Exception):
    """Raised when an invoice is not found."""
    pass


@dataclass
class SubmissionRequest:
    vendor_name: str
    vendor_code: str | None
    invoice_number: str
    invoice_date: date
    subtotal: Decimal | None
    tax: Decimal | None
    total: Decimal | None
    notes: str | None
    document_url: str | None
    document_filename: str | None
    mode: str
    decision: str | None
    lines: list[LineItem]
    receiving: ReceivingSession | None = None
    raw_scans: list[dict] = field(default_factory=list)


@dataclass
class SubmissionResult:
    invoice: Invoice
    vendor: Vendor
    vendor_created: bool
    summary: VerificationSummary
    payment_status: str
    verification_status: str
    receiving: ReceivingSession | None = None
    ledger_entries: int = 0

    @property
    def needs_review(self) -> bool:
        return self.payment_status == "needs_review"

    def to_dict(self) -> dict:
        summary = self.summary.to_dict()
        summary.update({
            "invoiceId": self.invoice.id,
            "invoiceNumber": self.invoice.invoice_number,
            "vendorId": self.vendor.id,
            "verificationStatus": self.verification_status,
            "paymentStatus": self.payment_status,
            "ledgerEntries": self.ledger_entries,
        })
        if self.receiving is not None:
            summary["receiving"] = self.receiving.stats().to_dict()
        return {
            "invoiceId": self.invoice.id,
            "vendorId": self.vendor.id,
            "vendorCreated": self.vendor_created,
            "needsReview": self.needs_review,
            "summary": summary,
            "lineItems": [o.to_dict() for o in self.summary.outcomes],
        }


# =============================================================================
# REQUEST PARSING (no side effects)
# =============================================================================

def _build_receiving_session(lines: list[LineItem], payload: dict) -> ReceivingSession:
    session = ReceivingSession(lines=[
        ReceivingLine(
            line_number=line.line_number,
            expected_qty=quantity_as_units(line.quantity),
            upc=line.identifier(None).upc,
            item_code=line.product_code,
            description=line.description,
        )
        for line in lines
    ])

    for raw in payload.get("scanEvents") or payload.get("scannedItems") or []:
        if not isinstance(raw, dict):
            continue
        barcode = clean_str(raw.get("barcode"))
        if not barcode:
            continue
        try:
            scanned_at = parse_iso_datetime(raw.get("timestamp")) if isinstance(raw.get("timestamp"), str) else None
        except ValueError:
            scanned_at = None
        repeat = min(max(coerce_int(raw.get("quantity"), default=1), 1), MAX_SCAN_QUANTITY)
        for _ in range(repeat):
            session.scan(barcode, symbology=clean_str(raw.get("format")), scanned_at=scanned_at)

    adjustments = payload.get("adjustments") or []
    missing_lines = payload.get("missingLines") or []
    if not isinstance(adjustments, list) or not isinstance(missing_lines, list):
        raise SubmissionValidationError("adjustments and missingLines must be lists")

    try:
        for adj in adjustments:
            session.adjust(coerce_int(adj.get("lineNumber"), default=0), coerce_int(adj.get("delta"), default=0))
        for line_number in missing_lines:
            session.mark_missing(coerce_int(line_number, default=0))
    except (ReconciliationError, AttributeError) as exc:
        raise SubmissionValidationError(f"Invalid receiving adjustment: {exc}")

    if payload.get("markRemainingVerified"):
        session.mark_remaining_verified()

    return session


def parse_submission(payload: dict) -> SubmissionRequest:
    """
    Validate and normalize a submission payload.

    Accepts the header either flat or nested under "invoiceHeader".

    Raises:
        SubmissionValidationError: On missing vendor, invoice number or lines,
            unknown mode/decision, or a malformed invoice date
    """
    if not isinstance(payload, dict):
        raise SubmissionValidationError("Request body must be a JSON object")

    header = payload.get("invoiceHeader") or {}
    merged = {**payload, **header}

    mode = merged.get("mode") or MODE_INVOICE
    if mode not in MODES:
        raise SubmissionValidationError(f"mode must be one of: {', '.join(sorted(MODES))}")

    decision = merged.get("verificationDecision") or merged.get("status")
    if decision is not None and decision not in DECISION_STATUS:
        raise SubmissionValidationError(
            f"verificationDecision must be one of: {', '.join(sorted(DECISION_STATUS))}"
        )

    vendor_name = clean_str(merged.get("vendorName") or merged.get("vendor"), max_length=255)
    invoice_number = clean_str(merged.get("invoiceNumber"), max_length=128)
    if not invoice_number and mode == MODE_SCAN_FIRST:
        # Scan-first receiving can start before the paper invoice is in hand
        invoice_number = f"RCV-{utcnow():%Y%m%d%H%M%S}"

    lines = parse_line_items(merged.get("lineItems"))

    try:
        require_fields(
            {"vendorName": vendor_name, "invoiceNumber": invoice_number, "lineItems": lines},
            "vendorName", "invoiceNumber", "lineItems",
        )
    except ValidationError as exc:
        raise SubmissionValidationError(str(exc))

    try:
        invoice_date = coerce_date(merged.get("invoiceDate"), field="invoiceDate") or today()
    except ValidationError as exc:
        raise SubmissionValidationError(str(exc))

    total = coerce_decimal(merged.get("invoiceTotal"))
    request = SubmissionRequest(
        vendor_name=vendor_name,
        vendor_code=clean_str(merged.get("vendorCode"), max_length=64),
        invoice_number=invoice_number,
        invoice_date=invoice_date,
        subtotal=coerce_decimal(merged.get("subtotal")) or total,
        tax=coerce_decimal(merged.get("tax", merged.get("totalTax"))) or Decimal("0"),
        total=total,
        notes=clean_str(merged.get("notes")),
        document_url=clean_str(merged.get("blobUrl") or merged.get("documentUrl")),
        document_filename=clean_str(merged.get("filename"), max_length=255),
        mode=mode,
        decision=decision,
        lines=lines,
        raw_scans=[s for s in (merged.get("scanEvents") or merged.get("scannedItems") or []) if isinstance(s, dict)],
    )

    if mode == MODE_INVOICE_FIRST:
        request.receiving = _build_receiving_session(lines, merged)

    return request


# =============================================================================
# COORDINATOR
# =============================================================================

def derive_payment_status(
    decision: str | None,
    mode: str,
    summary: VerificationSummary,
    receiving: ReceivingSession | None,
) -> str:
    """Explicit decision wins; otherwise computed from the reconciliation."""
    if decision:
        return DECISION_STATUS[decision]
    if receiving is not None:
        return "needs_review" if receiving.needs_review else "received"
    if mode == MODE_SCAN_FIRST:
        return "received"
    return "needs_review" if summary.has_issues else "pending"


class SubmissionCoordinator:
    def __init__(
        self,
        resolver: ProductResolver | None = None,
        vendor_strategy: VendorMatchStrategy = DEFAULT_VENDOR_MATCH,
    ):
        self.resolver = resolver or ProductResolver()
        self.vendor_strategy = vendor_strategy

    # -- per line -------------------------------------------------------------

    def _resolve(self, line: LineItem, vendor_id: int | None, *, create: bool, source: str) -> ResolutionResult:
        if line.product_id:
            product = db.session.get(Product, line.product_id)
            if product:
                return ResolutionResult(product, "hint")
        return self.resolver.resolve(line.identifier(vendor_id), create=create, source=source)

    def verify_lines(
        self,
        lines: list[LineItem],
        vendor_id: int | None,
        *,
        create: bool,
        source: str = "invoice",
    ) -> list[VerificationOutcome]:
        """
        Resolve and verify each line independently.

        A non-database failure on one line marks that line unmatched and the
        rest carry on. Database errors propagate and abort the unit of work.
        """
        outcomes = []
        for line in lines:
            try:
                result = self._resolve(line, vendor_id, create=create, source=source)
                outcome = verify_line(line, result.product, matched_by=result.matched_by)
            except SQLAlchemyError:
                raise
            except (ValueError, ArithmeticError) as exc:
                current_app.logger.warning("Line %s could not be verified: %s", line.line_number, exc)
                outcome = VerificationOutcome(line=line, matched=False, discrepancy_type=DISCREPANCY_UNMATCHED)
            if not outcome.product:
                current_app.logger.info(
                    "Line %s unresolved (%r)", line.line_number, line.description[:40]
                )
            outcomes.append(outcome)
        return outcomes

    # -- persistence ----------------------------------------------------------

    def _upsert_invoice(self, request: SubmissionRequest, vendor: Vendor, payment_status: str) -> Invoice:
        receiving_log = None
        if request.receiving is not None:
            receiving_log = json.dumps(request.receiving.to_dict(), separators=(",", ":"))
        elif request.raw_scans:
            receiving_log = json.dumps({"scanEvents": request.raw_scans}, separators=(",", ":"), default=str)

        notes = request.notes
        if notes is None and request.mode != MODE_INVOICE:
            notes = f"Receiving mode: {request.mode}"

        values = {
            "vendor_id": vendor.id,
            "invoice_number": request.invoice_number,
            "invoice_date": request.invoice_date,
            "received_date": today(),
            "subtotal": request.subtotal,
            "tax": request.tax,
            "total_amount": request.total,
            "promo_credits": PROMO_CREDITS,
            "net_amount": request.total - PROMO_CREDITS if request.total is not None else None,
            "payment_status": payment_status,
            "notes": notes,
            "document_url": request.document_url,
            "document_filename": request.document_filename,
            "receiving_mode": request.mode,
            "receiving_log": receiving_log,
        }
        table = Invoice.__table__

        def build_update(excluded):
            set_ = {
                name: getattr(excluded, name)
                for name in (
                    "invoice_date", "subtotal", "tax", "total_amount", "promo_credits",
                    "net_amount", "payment_status", "notes", "receiving_mode", "receiving_log",
                )
            }
            # Keep the archived document when the resubmission has none
            set_["document_url"] = db.func.coalesce(excluded.document_url, table.c.document_url)
            set_["document_filename"] = db.func.coalesce(excluded.document_filename, table.c.document_filename)
            set_["updated_at"] = db.func.now()
            return set_

        invoice_id = upsert(
            Invoice, values, conflict_columns=["vendor_id", "invoice_number"], build_update=build_update
        )
        return db.session.get(Invoice, invoice_id, populate_existing=True)

    def _replace_lines(self, invoice: Invoice, outcomes: list[VerificationOutcome]) -> None:
        db.session.query(InvoiceLine).filter(
            InvoiceLine.invoice_id == invoice.id
        ).delete(synchronize_session=False)
        db.session.expire(invoice, ["lines"])

        for outcome in outcomes:
            line = outcome.line
            db.session.add(InvoiceLine(
                invoice_id=invoice.id,
                product_id=outcome.product.id if outcome.product else None,
                line_number=line.line_number,
                upc=line.identifier(None).upc,
                item_code=line.product_code,
                description=line.description,
                unit=line.unit,
                quantity=line.quantity,
                unit_cost=line.unit_price,
                extended_cost=line.extended_cost,
                discrepancy_type=outcome.discrepancy_type,
                expected_cost=outcome.expected_cost,
                received_quantity=outcome.received_qty,
                line_status=outcome.line_status,
            ))
        db.session.flush()

    def _record_prices(self, invoice: Invoice, outcomes: list[VerificationOutcome]) -> int:
        recorded = 0
        for outcome in outcomes:
            if not outcome.product or outcome.line.unit_price <= 0:
                continue
            entry = price_ledger.record_price(
                product_id=outcome.product.id,
                effective_date=invoice.invoice_date,
                unit_cost=outcome.line.unit_price,
                source_invoice_id=invoice.id,
            )
            if entry:
                recorded += 1
        return recorded

    # -- entry points -------------------------------------------------------------

    def submit(self, payload: dict) -> SubmissionResult:
        """Validate, then run the whole submission as one retried transaction."""
        request = parse_submission(payload)
        return run_with_retry(lambda: self._submit(request))

    def _submit(self, request: SubmissionRequest) -> SubmissionResult:
        try:
            vendor, vendor_created = resolve_or_create_vendor(
                request.vendor_name,
                short_code=request.vendor_code,
                strategy=self.vendor_strategy,
            )

            outcomes = self.verify_lines(request.lines, vendor.id, create=True)

            if request.receiving is not None:
                # Receiving lines are built one per request line, in order;
                # OCR output can repeat a line number
                for outcome, rline in zip(outcomes, request.receiving.lines):
                    outcome.line_status = rline.status
                    outcome.received_qty = rline.received_qty

            summary = summarize(outcomes)
            payment_status = derive_payment_status(request.decision, request.mode, summary, request.receiving)

            invoice = self._upsert_invoice(request, vendor, payment_status)
            self._replace_lines(invoice, outcomes)
            recorded = self._record_prices(invoice, outcomes)

            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        verification_status = request.decision or (
            "flagged" if payment_status == "needs_review" else "verified"
        )
        current_app.logger.info(
            "Invoice %s (%s) saved: %s lines, %s discrepancies, status=%s",
            invoice.id, invoice.invoice_number, summary.total_lines, summary.discrepancies, payment_status,
        )
        return SubmissionResult(
            invoice=invoice,
            vendor=vendor,
            vendor_created=vendor_created,
            summary=summary,
            payment_status=payment_status,
            verification_status=verification_status,
            receiving=request.receiving,
            ledger_entries=recorded,
        )

    def check_prices(self, vendor_name: str | None, raw_lines: list) -> dict:
        """
        Price check without persistence: no vendor, product or ledger writes.

        Raises:
            ValidationError: If line items are missing
        """
        if not isinstance(raw_lines, list) or not raw_lines:
            raise ValidationError("Line items required")

        vendor = find_vendor(vendor_name, strategy=self.vendor_strategy)
        outcomes = self.verify_lines(parse_line_items(raw_lines), vendor.id if vendor else None, create=False)
        summary = summarize(outcomes)
        return {
            "vendor": vendor.to_dict() if vendor else None,
            "lineItems": [o.to_dict() for o in outcomes],
            "summary": summary.to_dict(),
        }


def submit_invoice(payload: dict) -> SubmissionResult:
    return SubmissionCoordinator().submit(payload)


# =============================================================================
# APPROVAL QUEUE
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(*, status: str = "pending", limit: int = 50) -> list[dict]:
    """
    Invoices in a payment status, newest received first, with line counts.

    Raises:
        ValidationError: If status is not a known payment status
    """
    if status not in PAYMENT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(sorted(PAYMENT_STATUSES))}")

    line_count = (
        db.session.query(db.func.count(InvoiceLine.id))
        .filter(InvoiceLine.invoice_id == Invoice.id)
        .correlate(Invoice)
        .scalar_subquery()
    )
    rows = (
        db.session.query(Invoice, line_count)
        .filter(Invoice.payment_status == status)
        .order_by(Invoice.received_date.desc(), Invoice.id.desc())
        .limit(limit)
        .all()
    )
    items = []
    for invoice, count in rows:
        data = invoice.to_dict()
        data["line_count"] = count
        items.append(data)
    return items


def approve_invoice(invoice_id: int, action: str, *, notes: str | None = None) -> Invoice:
    """
    Manager approval: approve -> paid, reject -> disputed.

    Raises:
        ValidationError: If action is not approve/reject
        InvoiceNotFoundError: If invoice not found
    """
    if action not in APPROVAL_STATUS:
        raise ValidationError(f"action must be one of: {', '.join(sorted(APPROVAL_STATUS))}")

    invoice = get_invoice(invoice_id)
    invoice.payment_status = APPROVAL_STATUS[action]
    if notes:
        invoice.notes = notes
    db.session.commit()
    return invoice
