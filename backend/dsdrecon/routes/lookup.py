# Overview: Flask API routes for advisory UPC lookup and manual product entry.

from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from dsdrecon.validation import ValidationError


lookup_bp = Blueprint("lookup", __name__, url_prefix="/api/lookup")


@lookup_bp.get("/upc")
def lookup_upc_route():
    """
    Look up a UPC in the internal products table, then the wholesale catalog.

    Query parameters:
    - upc: barcode value (required)

    Returns:
        {found, source, product, vendor, confidence, note}
    """
    upc = request.args.get("upc")
    if not upc:
        return jsonify({"error": "UPC required"}), 400

    try:
        result = catalog_service.lookup_upc(upc)
        return jsonify(result.to_dict())
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@lookup_bp.post("/upc")
def save_product_route():
    """
    Save a manually entered product.

    Request body:
    {
        "upc": "012000171864",   // required
        "description": "...",    // required
        "vendorId": 1,           // required
        "itemCode": "...", "packSize": "...", "category": "...",
        "source": "manual" | "promo"
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        product = catalog_service.save_manual_product(
            upc=data.get("upc"),
            description=data.get("description"),
            vendor_id=data.get("vendorId"),
            item_code=data.get("itemCode"),
            pack_size=data.get("packSize"),
            category=data.get("category"),
            source=data.get("source") or "manual",
        )
        return jsonify({"success": True, "product": product.to_dict()})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Manual product save failed")
        return jsonify({"error": "Failed to save product"}), 500
