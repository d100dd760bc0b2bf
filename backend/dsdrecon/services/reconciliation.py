# Overview: Quantity reconciliation state machine for invoice-first receiving.

"""
Quantity Reconciliation

Invoice-first receiving: the associate scans every case/unit coming off the
truck against an invoice that is already known. Each scan bumps the
received count of the line it matches (by UPC or item code); the line
status is then re-derived from received vs expected:

    received == 0          -> pending
    received <  expected   -> short
    received == expected   -> verified
    received >  expected   -> over

The rule is applied on every change in either direction, so a line moves
back out of `verified` into `over` on an extra scan, and a manual decrement
to zero returns it to `pending` rather than `short`.

A barcode matching no line is an unmatched ("not on invoice") scan. It never
touches a line; repeated scans of it bump its own counter. Zero-padded and
unpadded renderings of one UPC count as the same barcode.

`missing` is never derived: the associate sets it explicitly when an item
was not delivered at all.

Scan-first receiving performs no per-line quantity check and does not use
this module.

The session is in-memory and lives for one receiving submission; the
coordinator serializes it onto the invoice for audit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from dsdrecon.time_utils import to_utc_z, utcnow
from .product_resolver import looks_like_upc, normalize_item_code, normalize_upc, upc_candidates


STATUS_PENDING = "pending"
STATUS_VERIFIED = "verified"
STATUS_SHORT = "short"
STATUS_OVER = "over"
STATUS_MISSING = "missing"


class ReconciliationError(ValueError):
    """Raised for operations on a line that is not part of the session."""


def derive_status(received_qty: int, expected_qty: int) -> str:
    if received_qty == 0:
        return STATUS_PENDING
    if received_qty < expected_qty:
        return STATUS_SHORT
    if received_qty > expected_qty:
        return STATUS_OVER
    return STATUS_VERIFIED


def barcode_key(barcode: str) -> str:
    """
    One key per physical code: UPC/EAN renderings collapse to the 12-digit
    zero-padded form, anything else is kept as scanned.
    """
    if looks_like_upc(barcode):
        return normalize_upc(barcode).lstrip("0").rjust(12, "0")
    return barcode


@dataclass
class ReceivingLine:
    line_number: int
    expected_qty: int
    upc: str | None = None
    item_code: str | None = None
    description: str | None = None
    received_qty: int = 0
    status: str = STATUS_PENDING

    def __post_init__(self):
        self.upc = normalize_upc(self.upc)
        self.item_code = normalize_item_code(self.item_code)

    def matches(self, barcode_forms: set[str], code: str | None) -> bool:
        if self.upc and self.upc in barcode_forms:
            return True
        return bool(code and self.item_code and self.item_code == code)

    def _set_received(self, qty: int) -> None:
        self.received_qty = max(qty, 0)
        self.status = derive_status(self.received_qty, self.expected_qty)

    def to_dict(self) -> dict:
        return {
            "lineNumber": self.line_number,
            "upc": self.upc,
            "itemCode": self.item_code,
            "description": self.description,
            "expectedQty": self.expected_qty,
            "receivedQty": self.received_qty,
            "status": self.status,
        }


@dataclass
class ScanEvent:
    barcode: str
    symbology: str | None = None
    scanned_at: datetime | None = None
    # Running count of this barcode within the session, including this scan
    count: int = 1
    matched_line_number: int | None = None

    def to_dict(self) -> dict:
        return {
            "barcode": self.barcode,
            "format": self.symbology,
            "timestamp": to_utc_z(self.scanned_at),
            "count": self.count,
            "matchedLineNumber": self.matched_line_number,
        }


@dataclass
class UnmatchedScan:
    barcode: str
    symbology: str | None = None
    count: int = 0
    first_seen: datetime | None = None
    last_seen: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "barcode": self.barcode,
            "format": self.symbology,
            "count": self.count,
            "firstSeen": to_utc_z(self.first_seen),
            "lastSeen": to_utc_z(self.last_seen),
        }


@dataclass
class ReceivingStats:
    verified: int = 0
    short: int = 0
    over: int = 0
    missing: int = 0
    pending: int = 0
    not_on_invoice: int = 0

    @property
    def needs_review(self) -> bool:
        return bool(self.short or self.over or self.missing or self.not_on_invoice)

    def to_dict(self) -> dict:
        return {
            "verified": self.verified,
            "short": self.short,
            "over": self.over,
            "missing": self.missing,
            "pending": self.pending,
            "notOnInvoice": self.not_on_invoice,
        }


@dataclass
class ReceivingSession:
    lines: list[ReceivingLine] = field(default_factory=list)
    events: list[ScanEvent] = field(default_factory=list)
    unmatched: dict[str, UnmatchedScan] = field(default_factory=dict)

    def line(self, line_number: int) -> ReceivingLine:
        for line in self.lines:
            if line.line_number == line_number:
                return line
        raise ReconciliationError(f"Line {line_number} is not on this invoice")

    def _match(self, barcode: str) -> ReceivingLine | None:
        upc = normalize_upc(barcode)
        forms = set(upc_candidates(upc)) if upc else set()
        code = normalize_item_code(barcode)
        candidates = [line for line in self.lines if line.matches(forms, code)]
        if not candidates:
            return None
        # Same product on two invoice lines: fill them in order
        for line in candidates:
            if line.received_qty < line.expected_qty:
                return line
        return candidates[0]

    def scan(
        self,
        barcode: str,
        *,
        symbology: str | None = None,
        scanned_at: datetime | None = None,
    ) -> ScanEvent:
        """Apply one scan. Returns the recorded event (matched or not)."""
        barcode = (barcode or "").strip()
        if not barcode:
            raise ReconciliationError("barcode is required")
        scanned_at = scanned_at or utcnow()
        key = barcode_key(barcode)
        count = sum(1 for e in self.events if barcode_key(e.barcode) == key) + 1

        line = self._match(barcode)
        if line is None:
            entry = self.unmatched.get(key)
            if entry is None:
                entry = UnmatchedScan(barcode=barcode, symbology=symbology, first_seen=scanned_at)
                self.unmatched[key] = entry
            entry.count += 1
            entry.last_seen = scanned_at
            event = ScanEvent(barcode, symbology, scanned_at, count)
        else:
            # A line marked missing that gets scanned was delivered after all
            line._set_received(line.received_qty + 1)
            event = ScanEvent(barcode, symbology, scanned_at, count, line.line_number)

        self.events.append(event)
        return event

    def adjust(self, line_number: int, delta: int) -> ReceivingLine:
        """Manual correction of a line's received count (either direction)."""
        line = self.line(line_number)
        line._set_received(line.received_qty + delta)
        return line

    def mark_missing(self, line_number: int) -> ReceivingLine:
        line = self.line(line_number)
        line.received_qty = 0
        line.status = STATUS_MISSING
        return line

    def mark_remaining_verified(self) -> list[ReceivingLine]:
        """
        Bulk override: every still-pending line is taken as fully received.

        Lines already flagged short/over (or marked missing) are left alone.
        """
        changed = []
        for line in self.lines:
            if line.status == STATUS_PENDING:
                line.received_qty = line.expected_qty
                line.status = STATUS_VERIFIED
                changed.append(line)
        return changed

    def stats(self) -> ReceivingStats:
        stats = ReceivingStats(not_on_invoice=len(self.unmatched))
        for line in self.lines:
            setattr(stats, line.status, getattr(stats, line.status) + 1)
        return stats

    @property
    def needs_review(self) -> bool:
        return self.stats().needs_review

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self.lines],
            "scanEvents": [event.to_dict() for event in self.events],
            "unmatchedScans": [u.to_dict() for u in self.unmatched.values()],
            "stats": self.stats().to_dict(),
            "needsReview": self.needs_review,
        }
