"""
Extraction client tests (httpx.MockTransport, no network).

Verifies:
- Dirty numeric fields are coerced, never raised on
- JSON wrapped in prose is recovered
- Timeouts and non-200 responses raise UpstreamServiceError
"""

import json
from decimal import Decimal

import httpx
import pytest

from dsdrecon.services.extraction_client import (
    ExtractionClient,
    UpstreamServiceError,
    normalize_extraction,
)


EXTRACTED = {
    "vendorName": "Frito-Lay Inc",
    "invoiceNumber": "INV-1001",
    "invoiceDate": "2026-02-01",
    "subtotal": "$1,234.50",
    "totalTax": None,
    "invoiceTotal": "1234.50",
    "lineItems": [
        {"lineNumber": 1, "description": "Doritos", "quantity": "10", "unitPrice": "$10.25", "amount": "102.50",
         "productCode": "028400090896"},
        {"description": "Fritos", "quantity": "N/A", "unitPrice": None, "sku": "A-77"},
    ],
}


def client_for(handler):
    return ExtractionClient(
        "https://extract.example",
        api_key="secret",
        transport=httpx.MockTransport(handler),
    )


class TestNormalize:
    def test_coerces_dirty_values(self):
        invoice = normalize_extraction(EXTRACTED)

        assert invoice.subtotal == Decimal("1234.50")
        assert invoice.total_tax is None
        assert invoice.invoice_total == Decimal("1234.50")
        assert invoice.invoice_date == "2026-02-01"

        first, second = invoice.line_items
        assert first.unit_price == Decimal("10.25")
        assert first.quantity == Decimal("10")
        assert second.line_number == 2
        assert second.quantity == Decimal("0")
        assert second.unit_price == Decimal("0")
        assert second.product_code == "A-77"

    def test_unwraps_invoice_key(self):
        assert normalize_extraction({"invoice": EXTRACTED}).invoice_number == "INV-1001"

    @pytest.mark.parametrize("payload", [None, [], "text", {"invoiceDate": "31/02/2026", "lineItems": "x"}])
    def test_never_raises(self, payload):
        invoice = normalize_extraction(payload)
        assert invoice.line_items == []
        assert invoice.invoice_date is None

    def test_to_dict_is_json_safe(self):
        data = normalize_extraction(EXTRACTED).to_dict()
        json.dumps(data)
        assert data["subtotal"] == 1234.5
        assert data["lineItems"][0]["unitPrice"] == 10.25


class TestClient:
    def test_posts_document(self, app):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["path"] = request.url.path
            seen["body"] = request.read()
            return httpx.Response(200, json=EXTRACTED)

        invoice = client_for(handler).extract(b"%PDF-1.4", "application/pdf", "inv.pdf")

        assert seen["auth"] == "Bearer secret"
        assert seen["path"] == "/extract"
        assert b"inv.pdf" in seen["body"]
        assert invoice.vendor_name == "Frito-Lay Inc"
        assert len(invoice.line_items) == 2

    def test_json_wrapped_in_prose(self, app):
        def handler(request):
            return httpx.Response(200, text="Here is the invoice:\n```json\n" + json.dumps(EXTRACTED) + "\n```")

        invoice = client_for(handler).extract(b"img", "image/jpeg")
        assert invoice.invoice_number == "INV-1001"

    def test_no_json_raises(self, app):
        def handler(request):
            return httpx.Response(200, text="I could not read this document.")

        with pytest.raises(UpstreamServiceError):
            client_for(handler).extract(b"img", "image/jpeg")

    @pytest.mark.parametrize("status", [400, 500, 503])
    def test_non_200_raises(self, app, status):
        def handler(request):
            return httpx.Response(status, json={"error": "nope"})

        with pytest.raises(UpstreamServiceError) as exc:
            client_for(handler).extract(b"img", "image/jpeg")
        assert exc.value.status_code == status
        assert exc.value.service == "extraction"

    def test_timeout_raises(self, app):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamServiceError):
            client_for(handler).extract(b"img", "image/jpeg")

    def test_requires_url(self):
        with pytest.raises(ValueError):
            ExtractionClient("")
