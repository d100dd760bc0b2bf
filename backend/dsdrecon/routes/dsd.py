# Overview: Flask API routes for DSD invoice submission, price checks, approval and extraction.

"""
DSD Routes

- POST  /api/dsd/receiving    submit an invoice (resolve, verify, persist)
- GET   /api/dsd/receiving    approval queue by payment status
- PATCH /api/dsd/receiving    manager approve/reject
- POST  /api/dsd/price-check  verify prices without writing anything
- POST  /api/dsd/extract      send a document to the extraction service
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import submission_service
from ..services.extraction_client import ExtractionClient, UpstreamServiceError
from ..services.submission_service import InvoiceNotFoundError, SubmissionCoordinator
from dsdrecon.validation import ValidationError, coerce_int


dsd_bp = Blueprint("dsd", __name__, url_prefix="/api/dsd")


@dsd_bp.post("/receiving")
def submit_invoice_route():
    """
    Submit a verified invoice.

    Request body:
    {
        "vendorName": "Frito Lay",        // required
        "invoiceHeader": {                // or the same keys at top level
            "invoiceNumber": "INV-1001",  // required
            "invoiceDate": "2026-01-15",
            "subtotal": 100.00, "tax": 0, "invoiceTotal": 100.00
        },
        "lineItems": [...],               // required, non-empty
        "verificationDecision": "verified" | "flagged" | "rejected",
        "mode": "invoice" | "invoice-first" | "scan-first",
        "blobUrl": "...", "filename": "..."
    }

    Returns:
        {invoiceId, vendorId, needsReview, summary, lineItems}
    """
    data = request.get_json(silent=True) or {}

    try:
        result = submission_service.submit_invoice(data)
        return jsonify(result.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Invoice submission failed")
        return jsonify({"error": "Failed to save invoice"}), 500


@dsd_bp.get("/receiving")
def list_invoices_route():
    """
    List invoices awaiting action.

    Query parameters:
    - status: payment status (default: pending)
    - limit: Maximum results (default: 50)

    Returns:
        {invoices: Invoice[], count: int}
    """
    status = request.args.get("status", "pending")
    limit = request.args.get("limit", 50, type=int)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    try:
        invoices = submission_service.list_invoices(status=status, limit=limit)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"invoices": invoices, "count": len(invoices)})


@dsd_bp.patch("/receiving")
def approve_invoice_route():
    """
    Approve or reject an invoice.

    Request body:
    {
        "invoiceId": 1,      // required
        "action": "approve", // required: approve | reject
        "notes": "..."       // optional, replaces existing notes
    }
    """
    data = request.get_json(silent=True) or {}

    invoice_id = coerce_int(data.get("invoiceId"))
    if not invoice_id:
        return jsonify({"error": "invoiceId is required"}), 400

    try:
        invoice = submission_service.approve_invoice(
            invoice_id,
            data.get("action"),
            notes=data.get("notes"),
        )
        return jsonify({"success": True, "invoice": invoice.to_dict()})
    except InvoiceNotFoundError:
        return jsonify({"error": "Invoice not found"}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@dsd_bp.post("/price-check")
def price_check_route():
    """
    Verify extracted line items against the price ledger.

    Read-only: no vendor, product or ledger rows are created.

    Request body:
        {vendorName, lineItems: [...]}
    """
    data = request.get_json(silent=True) or {}

    try:
        result = SubmissionCoordinator().check_prices(data.get("vendorName"), data.get("lineItems"))
        return jsonify(result)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Price check failed")
        return jsonify({"error": "Price check failed"}), 500


@dsd_bp.post("/extract")
def extract_route():
    """
    Extract invoice data from an uploaded document (multipart field "file").

    Returns:
        {success: true, invoice: {...normalized extraction...}}
    """
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return jsonify({"error": "No file provided"}), 400

    if not current_app.config.get("EXTRACTION_SERVICE_URL"):
        return jsonify({"error": "Extraction service is not configured"}), 503

    client = ExtractionClient.from_config(
        current_app.config,
        transport=current_app.config.get("EXTRACTION_TRANSPORT"),
    )

    try:
        extracted = client.extract(upload.read(), upload.mimetype, upload.filename)
        return jsonify({"success": True, "invoice": extracted.to_dict()})
    except UpstreamServiceError as e:
        current_app.logger.warning("Extraction failed: %s", e)
        return jsonify({"error": "Extraction service failed", "details": str(e)}), 502
