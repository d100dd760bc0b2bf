# Overview: Flask API routes for product price history.

from flask import Blueprint, request, jsonify

from ..extensions import db
from ..models import Product
from ..services import price_ledger


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/<int:product_id>/prices")
def price_history_route(product_id: int):
    """
    Effective-dated cost history, newest first.

    Query parameters:
    - limit: Maximum results (default: 100)
    """
    product = db.session.get(Product, product_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404

    limit = request.args.get("limit", 100, type=int)
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    entries = price_ledger.price_history(product_id, limit=limit)
    current = entries[0] if entries else None
    return jsonify({
        "product": product.to_dict(),
        "currentPrice": current.to_dict() if current else None,
        "items": [e.to_dict() for e in entries],
        "count": len(entries),
    })
