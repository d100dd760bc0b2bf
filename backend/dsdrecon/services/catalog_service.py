# Overview: Service-layer operations for catalog lookup, manual product entry and bulk import.

"""
Catalog Service

LOOKUP PRIORITY (advisory UPC lookup):
1. Internal products table (our verified data)
2. Wholesale (AWG) catalog, DSD items and vendor-linked rows first
3. Not found -> manual entry

The wholesale path never creates a Product. It exists to pre-fill manual
entry during receiving, not to auto-resolve a line.

CONFIDENCE:
- internal: high when the product is verified, else medium
- wholesale: medium when the catalog row links a vendor, else low
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Vendor, WholesaleCatalogItem
from .concurrency import upsert
from .product_resolver import find_by_upc, normalize_upc, upc_candidates, upsert_product
from dsdrecon.validation import ValidationError, clean_str, coerce_decimal, coerce_int


CATALOG_SOURCES = {"awg", "internal"}
MANUAL_SOURCES = {"manual", "promo"}

MAX_REPORTED_ERRORS = 10


@dataclass
class UpcLookupResult:
    found: bool
    source: str | None = None
    product: dict | None = None
    vendor: dict | None = None
    confidence: str | None = None
    note: str | None = None

    def to_dict(self) -> dict:
        return {
            "found": self.found,
            "source": self.source,
            "product": self.product,
            "vendor": self.vendor,
            "confidence": self.confidence,
            "note": self.note,
        }


def lookup_upc(upc: str) -> UpcLookupResult:
    """Advisory lookup across the internal table and the wholesale catalog."""
    normalized = normalize_upc(upc)
    if not normalized:
        raise ValidationError("UPC must contain digits")

    product = find_by_upc(normalized)
    if product:
        return UpcLookupResult(
            found=True,
            source="internal",
            product=product.to_dict(),
            vendor=product.vendor.to_dict() if product.vendor else None,
            confidence="high" if product.verified else "medium",
        )

    item = (
        db.session.query(WholesaleCatalogItem)
        .filter(WholesaleCatalogItem.upc.in_(upc_candidates(normalized)))
        .order_by(
            WholesaleCatalogItem.is_dsd.desc(),
            WholesaleCatalogItem.vendor_id.is_(None).asc(),
            WholesaleCatalogItem.id.asc(),
        )
        .first()
    )
    if item:
        return UpcLookupResult(
            found=True,
            source="awg",
            product=item.to_dict(),
            vendor=item.vendor.to_dict() if item.vendor else None,
            confidence="medium" if item.vendor_id else "low",
            note="Common DSD item" if item.is_dsd else "Wholesale catalog match - verify vendor",
        )

    return UpcLookupResult(found=False, note="UPC not in catalog - manual entry required")


def save_manual_product(
    *,
    upc: str,
    description: str,
    vendor_id: int,
    item_code: str | None = None,
    pack_size: str | None = None,
    category: str | None = None,
    source: str = "manual",
) -> Product:
    """
    Save a product entered by hand during receiving (UPC upsert, committed).

    Raises:
        ValidationError: If required fields are missing or the vendor is unknown
    """
    if not normalize_upc(upc) or not clean_str(description) or not vendor_id:
        raise ValidationError("UPC, description, and vendor_id required")
    if source not in MANUAL_SOURCES:
        raise ValidationError(f"source must be one of: {', '.join(sorted(MANUAL_SOURCES))}")
    if not db.session.get(Vendor, vendor_id):
        raise ValidationError(f"Vendor {vendor_id} not found")

    product = upsert_product(
        upc=upc,
        description=clean_str(description, max_length=255),
        vendor_id=vendor_id,
        item_code=item_code,
        source=source,
        overwrite=True,
        pack_size=clean_str(pack_size, max_length=64),
        category=clean_str(category, max_length=128),
    )
    db.session.commit()
    return product


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.skipped += 1
        if len(self.errors) < MAX_REPORTED_ERRORS:
            self.errors.append(message)

    def to_dict(self) -> dict:
        return {"imported": self.imported, "skipped": self.skipped, "errors": self.errors}


def _import_awg_row(row: dict) -> None:
    upc = normalize_upc(row.get("upc"))
    description = clean_str(row.get("description"), max_length=255)
    if not upc or not description:
        raise ValueError("upc and description are required")

    values = {
        "upc": upc,
        "item_number": clean_str(row.get("item_number"), max_length=64) or "",
        "description": description,
        "brand": clean_str(row.get("brand"), max_length=128),
        "vendor_name": clean_str(row.get("vendor_name"), max_length=255),
        "vendor_id": coerce_int(row.get("vendor_id")),
        "pack_size": clean_str(row.get("pack_size"), max_length=64),
        "case_cost": coerce_decimal(row.get("case_cost")),
        "category": clean_str(row.get("category"), max_length=128),
        "is_dsd": str(row.get("is_dsd", "")).strip().lower() in {"1", "true", "yes", "y"},
    }
    mutable = ["description", "brand", "vendor_name", "vendor_id", "pack_size", "case_cost", "category", "is_dsd"]

    def build_update(excluded):
        set_ = {name: getattr(excluded, name) for name in mutable}
        set_["last_synced"] = db.func.now()
        return set_

    upsert(WholesaleCatalogItem, values, conflict_columns=["upc", "item_number"], build_update=build_update)


def _import_internal_row(row: dict) -> None:
    upc = normalize_upc(row.get("upc"))
    description = clean_str(row.get("description"), max_length=255)
    if not upc or not description:
        raise ValueError("upc and description are required")

    upsert_product(
        upc=upc,
        description=description,
        vendor_id=coerce_int(row.get("vendor_id")),
        item_code=row.get("item_code"),
        source="internal",
        overwrite=True,
        pack_size=clean_str(row.get("pack_size"), max_length=64),
        unit_of_measure=clean_str(row.get("unit_of_measure"), max_length=32) or "case",
        category=clean_str(row.get("category"), max_length=128),
    )


def import_catalog(source: str, rows: list[dict]) -> ImportResult:
    """
    Bulk import catalog rows (committed once at the end).

    Each row runs in its own SAVEPOINT so one bad row is skipped and
    reported without discarding the rest.
    """
    if source not in CATALOG_SOURCES:
        raise ValidationError(f"source must be one of: {', '.join(sorted(CATALOG_SOURCES))}")
    if not isinstance(rows, list):
        raise ValidationError("products must be a list")

    importer = _import_awg_row if source == "awg" else _import_internal_row
    result = ImportResult()

    for position, row in enumerate(rows, start=1):
        label = (row or {}).get("upc") if isinstance(row, dict) else None
        try:
            if not isinstance(row, dict):
                raise ValueError("row must be an object")
            with db.session.begin_nested():
                importer(row)
            result.imported += 1
        except (ValueError, IntegrityError) as exc:
            result.add_error(f"{label or f'row {position}'}: {exc}")

    db.session.commit()
    return result
