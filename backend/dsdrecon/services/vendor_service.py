# Overview: Service-layer operations for vendors; encapsulates business logic and database work.

"""
Vendor Service

WHY: Every invoice references exactly one vendor. Drivers' paperwork spells
vendor names inconsistently ("Coca-Cola Bottling", "COCA-COLA BTLG CO"), so
receiving resolves vendors with a fuzzy match before creating a new one.

DESIGN:
- Fuzzy match policy is a VendorMatchStrategy (default: first name token)
- Vendors are created on first mention, never deleted by the engine
- Short code defaults to the first 10 characters of the name, uppercased
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Vendor
from .matching import DEFAULT_VENDOR_MATCH, VendorMatchStrategy, like_contains


SHORT_CODE_LENGTH = 10


class VendorNotFoundError(Exception):
    """Raised when a vendor is not found."""
    pass


class VendorValidationError(ValueError):
    """Raised when vendor data fails validation."""
    pass


def derive_short_code(name: str) -> str:
    return name.strip()[:SHORT_CODE_LENGTH].upper()


def create_vendor(
    *,
    name: str,
    short_code: str | None = None,
    contact_name: str | None = None,
    contact_phone: str | None = None,
    notes: str | None = None,
) -> Vendor:
    """
    Create a new vendor (flushed, not committed).

    Args:
        name: Vendor name (required)
        short_code: Optional short code; derived from name when omitted
        contact_name: Driver / rep contact
        contact_phone: Contact phone
        notes: Additional notes

    Returns:
        Created Vendor object

    Raises:
        VendorValidationError: If name is blank
    """
    if not name or not name.strip():
        raise VendorValidationError("Vendor name is required")
    name = name.strip()

    if short_code:
        short_code = short_code.strip().upper() or None
    if not short_code:
        short_code = derive_short_code(name)

    vendor = Vendor(
        name=name,
        short_code=short_code,
        contact_name=contact_name,
        contact_phone=contact_phone,
        notes=notes,
    )
    db.session.add(vendor)
    db.session.flush()
    return vendor


def get_vendor(vendor_id: int) -> Vendor:
    """
    Get a vendor by ID.

    Raises:
        VendorNotFoundError: If vendor not found
    """
    vendor = db.session.get(Vendor, vendor_id)
    if not vendor:
        raise VendorNotFoundError(f"Vendor {vendor_id} not found")
    return vendor


def find_vendor(
    vendor_name: str | None,
    *,
    strategy: VendorMatchStrategy = DEFAULT_VENDOR_MATCH,
) -> Vendor | None:
    """
    Fuzzy vendor lookup; never creates.

    Matches the strategy's search term as a case-insensitive substring of the
    vendor name or short code. Oldest vendor wins when several match.
    """
    term = strategy.search_term(vendor_name)
    if not term:
        return None

    pattern = like_contains(term)
    return (
        db.session.query(Vendor)
        .filter(
            db.or_(
                Vendor.name.ilike(pattern, escape="\\"),
                Vendor.short_code.ilike(pattern, escape="\\"),
            )
        )
        .order_by(Vendor.id.asc())
        .first()
    )


def resolve_or_create_vendor(
    vendor_name: str,
    *,
    short_code: str | None = None,
    strategy: VendorMatchStrategy = DEFAULT_VENDOR_MATCH,
) -> tuple[Vendor, bool]:
    """
    Resolve a vendor by fuzzy match, creating one when nothing matches.

    Returns:
        Tuple of (Vendor, created)
    """
    vendor = find_vendor(vendor_name, strategy=strategy)
    if vendor:
        return vendor, False

    vendor = create_vendor(name=vendor_name, short_code=short_code)
    current_app.logger.info("Created vendor %s (%s) on first mention", vendor.id, vendor.name)
    return vendor, True


def list_vendors(
    *,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Vendor], int]:
    """
    List vendors.

    Args:
        search: Optional search term for name or short code
        limit: Maximum number of results
        offset: Offset for pagination

    Returns:
        Tuple of (list of Vendor objects, total count)
    """
    query = db.session.query(Vendor)

    if search:
        pattern = like_contains(search)
        query = query.filter(
            db.or_(
                Vendor.name.ilike(pattern, escape="\\"),
                Vendor.short_code.ilike(pattern, escape="\\"),
            )
        )

    total = query.count()

    query = query.order_by(Vendor.name.asc())
    query = query.offset(offset).limit(limit)

    return query.all(), total
