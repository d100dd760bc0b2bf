# Overview: Service-layer product resolution; maps barcodes, item codes and descriptions to products.

"""
Product Resolver - deterministic identifier lookup

WHY: Invoice lines arrive with whatever the driver's paperwork or the OCR
service produced: sometimes a UPC, sometimes a vendor item code, often only
a description. Every line must land on one canonical Product (or be
explicitly unresolved) without creating garbage duplicates.

PRIORITY (first match wins):
1. UPC against products.upc, tolerant of zero-padding drift (UPC-A/EAN-13)
2. Item code within the vendor's products (vendor must be known)
3. Description prefix substring, vendor-scoped when the vendor is known
4. Create a new Product (UPC creation is an atomic upsert)

Resolution never raises for a miss. A line with no usable identifiers is
returned unresolved instead of creating an empty record.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Product
from .concurrency import upsert
from .matching import DEFAULT_DESCRIPTION_MATCH, DescriptionMatchStrategy, like_contains


# UPC-A, EAN-13, GTIN-14 canonical widths
UPC_WIDTHS = (12, 13, 14)

_NON_DIGITS = re.compile(r"\D")


def normalize_upc(value) -> str | None:
    """Digits only ("0-12000-17186-4" -> "012000171864"); None when no digits."""
    if value is None:
        return None
    digits = _NON_DIGITS.sub("", str(value))
    return digits or None


def normalize_item_code(value) -> str | None:
    """Normalize to uppercase, no spaces."""
    if value is None:
        return None
    code = str(value).upper().strip().replace(" ", "")
    return code or None


def looks_like_upc(value) -> bool:
    """Extracted product codes that are 11-14 digits are barcodes, not vendor codes."""
    if value is None:
        return False
    text = str(value).strip().replace("-", "")
    return text.isdigit() and 11 <= len(text) <= 14


def upc_candidates(upc: str) -> list[str]:
    """
    Representations of one physical barcode to try, in priority order.

    Literal value, leading zeros stripped, and the stripped value re-padded to
    12/13/14 digits. Any stored form of the same code is in this set whether
    the caller scanned the UPC-A or the EAN-13 rendering.
    """
    candidates = [upc]
    stripped = upc.lstrip("0")
    if stripped:
        candidates.append(stripped)
        candidates.append(upc.rjust(12, "0"))
        for width in UPC_WIDTHS:
            candidates.append(stripped.rjust(width, "0"))

    seen = set()
    ordered = []
    for c in candidates:
        if c not in seen:
            seen.add(c)
            ordered.append(c)
    return ordered


@dataclass
class LineIdentifier:
    """What an invoice line or scan tells us about its product."""
    description: str | None = None
    upc: str | None = None
    item_code: str | None = None
    vendor_id: int | None = None

    def __post_init__(self):
        self.upc = normalize_upc(self.upc)
        self.item_code = normalize_item_code(self.item_code)
        self.description = (self.description or "").strip() or None

    @property
    def usable(self) -> bool:
        return bool(self.upc or self.item_code or self.description)


@dataclass
class ResolutionResult:
    product: Product | None
    # upc | item_code | description | created; None when unresolved
    matched_by: str | None = None

    @property
    def resolved(self) -> bool:
        return self.product is not None

    @property
    def created(self) -> bool:
        return self.matched_by == "created"

    def to_dict(self) -> dict:
        return {
            "resolved": self.resolved,
            "matched_by": self.matched_by,
            "product": self.product.to_dict() if self.product else None,
        }


UNRESOLVED = ResolutionResult(product=None, matched_by=None)


def find_by_upc(upc: str | None) -> Product | None:
    upc = normalize_upc(upc)
    if not upc:
        return None
    candidates = upc_candidates(upc)
    matches = db.session.query(Product).filter(Product.upc.in_(candidates)).all()
    if not matches:
        return None
    # Prefer the most literal representation when drift produced two rows
    rank = {value: i for i, value in enumerate(candidates)}
    return min(matches, key=lambda p: (rank.get(p.upc, len(rank)), p.id))


def find_by_item_code(item_code: str | None, vendor_id: int | None) -> Product | None:
    item_code = normalize_item_code(item_code)
    if not item_code or not vendor_id:
        return None
    return (
        db.session.query(Product)
        .filter(Product.vendor_id == vendor_id, Product.item_code == item_code)
        .order_by(Product.id.asc())
        .first()
    )


def find_by_description(
    description: str | None,
    vendor_id: int | None,
    *,
    strategy: DescriptionMatchStrategy = DEFAULT_DESCRIPTION_MATCH,
) -> Product | None:
    term = strategy.search_term(description)
    if not term:
        return None
    q = db.session.query(Product).filter(
        Product.description.ilike(like_contains(term), escape="\\")
    )
    if vendor_id:
        q = q.filter(Product.vendor_id == vendor_id)
    return q.order_by(Product.id.asc()).first()


def upsert_product(
    *,
    upc: str,
    description: str,
    vendor_id: int | None = None,
    item_code: str | None = None,
    source: str = "invoice",
    overwrite: bool = False,
    **extra,
) -> Product:
    """
    Create-or-update a product keyed by UPC (atomic, race-safe).

    overwrite=False (resolver path): an existing row keeps its own values and
    only fills blanks. overwrite=True (manual entry, catalog import): supplied
    values replace existing ones.
    """
    upc = normalize_upc(upc)
    if not upc:
        raise ValueError("UPC is required for upsert")

    values = {
        "upc": upc,
        "item_code": normalize_item_code(item_code),
        "description": description,
        "vendor_id": vendor_id,
        "source": source,
        "verified": False,
    }
    values.update({k: v for k, v in extra.items() if k in Product.__table__.c})

    table = Product.__table__

    def build_update(excluded):
        mutable = ["description", "vendor_id", "item_code"] + [k for k in extra if k in table.c]
        if overwrite:
            set_ = {name: db.func.coalesce(getattr(excluded, name), table.c[name]) for name in mutable}
        else:
            set_ = {name: db.func.coalesce(table.c[name], getattr(excluded, name)) for name in mutable}
        set_["updated_at"] = db.func.now()
        return set_

    product_id = upsert(Product, values, conflict_columns=["upc"], build_update=build_update)
    return db.session.get(Product, product_id, populate_existing=True)


class ProductResolver:
    """
    Resolves LineIdentifiers to Products using the fixed priority order.

    The description match policy is injectable; the priority order and the
    UPC normalization are not.
    """

    def __init__(self, description_strategy: DescriptionMatchStrategy = DEFAULT_DESCRIPTION_MATCH):
        self.description_strategy = description_strategy

    def find(self, identifier: LineIdentifier) -> ResolutionResult:
        """Lookup only; never creates."""
        product = find_by_upc(identifier.upc)
        if product:
            return ResolutionResult(product, "upc")

        product = find_by_item_code(identifier.item_code, identifier.vendor_id)
        if product:
            return ResolutionResult(product, "item_code")

        product = find_by_description(
            identifier.description,
            identifier.vendor_id,
            strategy=self.description_strategy,
        )
        if product:
            return ResolutionResult(product, "description")

        return UNRESOLVED

    def resolve(
        self,
        identifier: LineIdentifier,
        *,
        create: bool = True,
        source: str = "invoice",
    ) -> ResolutionResult:
        """
        Resolve to a product, creating one when nothing matches.

        Returns UNRESOLVED (never raises) when the identifier carries no UPC,
        no item code and no description, or when create=False and nothing
        matches.
        """
        if not identifier.usable:
            return UNRESOLVED

        result = self.find(identifier)
        if result.resolved or not create:
            return result

        return ResolutionResult(self._create(identifier, source), "created")

    def _create(self, identifier: LineIdentifier, source: str) -> Product:
        description = identifier.description or identifier.item_code or identifier.upc

        if identifier.upc:
            product = upsert_product(
                upc=identifier.upc,
                description=description,
                vendor_id=identifier.vendor_id,
                item_code=identifier.item_code,
                source=source,
            )
        else:
            product = Product(
                item_code=identifier.item_code,
                description=description,
                vendor_id=identifier.vendor_id,
                source=source,
            )
            db.session.add(product)
            db.session.flush()

        current_app.logger.info(
            "Created product %s from %s line (upc=%s item_code=%s)",
            product.id, source, identifier.upc, identifier.item_code,
        )
        return product
