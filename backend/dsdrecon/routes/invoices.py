# Overview: Flask API routes for reading persisted invoices.

from flask import Blueprint, jsonify

from ..services import submission_service
from ..services.submission_service import InvoiceNotFoundError


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    """
    Get an invoice with lines.

    Returns:
        Invoice with lines array
    """
    try:
        invoice = submission_service.get_invoice(invoice_id)
        return jsonify(invoice.to_dict(include_lines=True))
    except InvoiceNotFoundError:
        return jsonify({"error": "Invoice not found"}), 404
