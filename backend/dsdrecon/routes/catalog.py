# Overview: Flask API route for bulk catalog import.

from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from dsdrecon.validation import ValidationError


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.post("/import")
def import_catalog_route():
    """
    Bulk import catalog rows.

    Request body:
    {
        "source": "awg" | "internal",
        "products": [{upc, description, item_number|item_code, ...}]
    }

    Returns:
        {success, imported, skipped, errors}
    """
    data = request.get_json(silent=True) or {}

    try:
        result = catalog_service.import_catalog(data.get("source"), data.get("products"))
        payload = result.to_dict()
        payload["success"] = True
        return jsonify(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Catalog import failed")
        return jsonify({"error": "Import failed"}), 500
