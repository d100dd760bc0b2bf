# Overview: Flask API routes for vendor lookup; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import vendor_service
from ..services.vendor_service import VendorNotFoundError


vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")


@vendors_bp.get("")
def list_vendors_route():
    """
    List vendors.

    Query parameters:
    - search: Search term for name or short code
    - limit: Maximum results (default: 100)
    - offset: Pagination offset (default: 0)

    Returns:
        {items: Vendor[], count: int, limit: int, offset: int}
    """
    search = request.args.get("search")
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500
    if offset < 0:
        offset = 0

    vendors, total = vendor_service.list_vendors(search=search, limit=limit, offset=offset)

    return jsonify({
        "items": [v.to_dict() for v in vendors],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@vendors_bp.get("/<int:vendor_id>")
def get_vendor_route(vendor_id: int):
    try:
        vendor = vendor_service.get_vendor(vendor_id)
        return jsonify(vendor.to_dict())
    except VendorNotFoundError:
        return jsonify({"error": "Vendor not found"}), 404
