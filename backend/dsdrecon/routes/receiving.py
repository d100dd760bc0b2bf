# Overview: Flask API route for barcode receiving sessions (invoice-first / scan-first).

from flask import Blueprint, request, jsonify, current_app

from ..services import submission_service
from ..services.submission_service import MODE_INVOICE_FIRST
from dsdrecon.validation import ValidationError


receiving_bp = Blueprint("receiving", __name__, url_prefix="/api/receiving")


@receiving_bp.post("/submit")
def submit_receiving_route():
    """
    Submit a receiving session.

    Same body as POST /api/dsd/receiving plus:
    {
        "mode": "invoice-first",  // default; or "scan-first"
        "scanEvents": [{"barcode": "...", "format": "upc_a", "timestamp": "...", "quantity": 1}],
        "adjustments": [{"lineNumber": 2, "delta": -1}],
        "missingLines": [3],
        "markRemainingVerified": false
    }

    Returns:
        Submission result with summary.receiving stats
    """
    data = request.get_json(silent=True) or {}
    data.setdefault("mode", MODE_INVOICE_FIRST)

    try:
        result = submission_service.submit_invoice(data)
        return jsonify(result.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Receiving submission failed")
        return jsonify({"error": "Failed to submit receiving"}), 500
