# Overview: HTTP client for the external document extraction (OCR/vision) service.

"""
Extraction Service Client

The OCR/vision service turns an invoice image/PDF into JSON:

    {vendorName, invoiceNumber, invoiceDate, subtotal, totalTax, invoiceTotal,
     lineItems: [{lineNumber, description, quantity, unit, unitPrice, amount, productCode}]}

Its output is untrusted: numbers may arrive as "$1,234.50", fields may be
missing, and the JSON may be wrapped in prose. normalize_extraction() makes
the payload safe for the engine without ever raising on dirty values.

FAILURES: transport errors, timeouts, non-200 responses and bodies with no
JSON object raise UpstreamServiceError. Nothing is fabricated on failure.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx
from flask import current_app

from dsdrecon.time_utils import parse_iso_date
from dsdrecon.validation import clean_str, coerce_decimal
from .line_items import LineItem, parse_line_items


_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class UpstreamServiceError(Exception):
    """An external collaborator (extraction/catalog service) failed."""

    def __init__(self, service: str, message: str, status_code: int | None = None):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code


@dataclass
class ExtractedInvoice:
    vendor_name: str | None = None
    vendor_address: str | None = None
    invoice_number: str | None = None
    invoice_date: str | None = None
    due_date: str | None = None
    purchase_order: str | None = None
    subtotal: Decimal | None = None
    total_tax: Decimal | None = None
    invoice_total: Decimal | None = None
    line_items: list[LineItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        def num(value):
            return float(value) if value is not None else None

        return {
            "vendorName": self.vendor_name,
            "vendorAddress": self.vendor_address,
            "invoiceNumber": self.invoice_number,
            "invoiceDate": self.invoice_date,
            "dueDate": self.due_date,
            "purchaseOrder": self.purchase_order,
            "subtotal": num(self.subtotal),
            "totalTax": num(self.total_tax),
            "invoiceTotal": num(self.invoice_total),
            "lineItems": [item.to_dict() for item in self.line_items],
        }


def _safe_date(value: Any) -> str | None:
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        return None
    return parsed.isoformat() if parsed else None


def normalize_extraction(payload: Any) -> ExtractedInvoice:
    """Coerce an extraction payload into an ExtractedInvoice. Never raises."""
    if isinstance(payload, dict) and isinstance(payload.get("invoice"), dict):
        payload = payload["invoice"]
    if not isinstance(payload, dict):
        return ExtractedInvoice()

    return ExtractedInvoice(
        vendor_name=clean_str(payload.get("vendorName"), max_length=255),
        vendor_address=clean_str(payload.get("vendorAddress")),
        invoice_number=clean_str(payload.get("invoiceNumber"), max_length=128),
        invoice_date=_safe_date(payload.get("invoiceDate")),
        due_date=_safe_date(payload.get("dueDate")),
        purchase_order=clean_str(payload.get("purchaseOrder"), max_length=128),
        subtotal=coerce_decimal(payload.get("subtotal")),
        total_tax=coerce_decimal(payload.get("totalTax", payload.get("tax"))),
        invoice_total=coerce_decimal(payload.get("invoiceTotal", payload.get("total"))),
        line_items=parse_line_items(payload.get("lineItems")),
    )


def _parse_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        pass
    # Model output sometimes wraps the JSON in markdown or prose
    match = _JSON_OBJECT.search(response.text or "")
    if not match:
        raise UpstreamServiceError("extraction", "response contained no JSON object", response.status_code)
    try:
        return json.loads(match.group(0))
    except ValueError as exc:
        raise UpstreamServiceError("extraction", "response JSON could not be parsed", response.status_code) from exc


class ExtractionClient:
    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not base_url:
            raise ValueError("Extraction service URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config, **kwargs) -> "ExtractionClient":
        return cls(
            config.get("EXTRACTION_SERVICE_URL"),
            api_key=config.get("EXTRACTION_SERVICE_KEY"),
            timeout=config.get("EXTRACTION_TIMEOUT_SECONDS", 60.0),
            **kwargs,
        )

    def extract(self, content: bytes, content_type: str, filename: str | None = None) -> ExtractedInvoice:
        """Send a document for extraction and return the normalized invoice."""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        files = {"file": (filename or "invoice", content, content_type or "application/octet-stream")}

        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.post("/extract", files=files, headers=headers)
        except httpx.TimeoutException as exc:
            raise UpstreamServiceError("extraction", "request timed out") from exc
        except httpx.HTTPError as exc:
            raise UpstreamServiceError("extraction", f"request failed: {exc}") from exc

        if response.status_code != 200:
            current_app.logger.warning(
                "Extraction service returned %s for %s", response.status_code, filename
            )
            raise UpstreamServiceError(
                "extraction",
                f"unexpected status {response.status_code}",
                response.status_code,
            )

        return normalize_extraction(_parse_body(response))
