from __future__ import annotations

from ..extensions import db
from dsdrecon.time_utils import to_utc_z
from dsdrecon.validation import decimal_to_json


class Vendor(db.Model):
    """
    DSD vendor (the company whose driver delivers and invoices the store).

    Created on first mention by the receiving submission when no fuzzy
    name/short-code match exists. Never deleted by the engine.

    DESIGN:
    - short_code is a quick-lookup handle; derived from the name when not supplied
    - short_code is indexed but not unique: derived codes can collide
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.Index("ix_vendors_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    short_code = db.Column(db.String(64), nullable=True, index=True)

    contact_name = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} name={self.name!r} short_code={self.short_code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "short_code": self.short_code,
            "contact_name": self.contact_name,
            "contact_phone": self.contact_phone,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Canonical product record.

    UPC DESIGN DECISION:
    Product.upc is stored digits-only and is globally unique (nullable).
    - UNIQUE(upc) is the conflict target for the atomic create-or-update
      used by the resolver, which absorbs duplicate-creation races
    - Lookups tolerate UPC-A / EAN-13 zero padding drift by querying a
      small candidate set (see product_resolver.upc_candidates)

    vendor_id is nullable: wholesale/internal catalog rows can be vendor-agnostic.

    Products are never merged automatically once created.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("upc", name="uq_products_upc"),
        db.Index("ix_products_vendor_item_code", "vendor_id", "item_code"),
        db.Index("ix_products_vendor", "vendor_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    upc = db.Column(db.String(32), nullable=True)
    item_code = db.Column(db.String(64), nullable=True)
    description = db.Column(db.String(255), nullable=False)

    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True)

    # internal | awg | invoice | manual | promo
    source = db.Column(db.String(16), nullable=False, default="invoice")

    pack_size = db.Column(db.String(64), nullable=True)
    unit_of_measure = db.Column(db.String(32), nullable=True)
    category = db.Column(db.String(128), nullable=True)

    # Set by back office once the record has been checked against the shelf
    verified = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    vendor = db.relationship("Vendor", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} upc={self.upc!r} description={self.description!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "upc": self.upc,
            "item_code": self.item_code,
            "description": self.description,
            "vendor_id": self.vendor_id,
            "source": self.source,
            "pack_size": self.pack_size,
            "unit_of_measure": self.unit_of_measure,
            "category": self.category,
            "verified": self.verified,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class WholesaleCatalogItem(db.Model):
    """
    Read-only wholesale (AWG) catalog reference row.

    Populated by periodic bulk import. Consulted only by the advisory UPC
    lookup; never used to auto-resolve a receiving line.
    """
    __tablename__ = "wholesale_catalog_items"
    __table_args__ = (
        db.UniqueConstraint("upc", "item_number", name="uq_wholesale_catalog_upc_item"),
        db.Index("ix_wholesale_catalog_upc", "upc"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    upc = db.Column(db.String(32), nullable=False)
    # Empty string rather than NULL so the (upc, item_number) conflict target works
    item_number = db.Column(db.String(64), nullable=False, default="")
    description = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(128), nullable=True)

    vendor_name = db.Column(db.String(255), nullable=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True)

    pack_size = db.Column(db.String(64), nullable=True)
    case_cost = db.Column(db.Numeric(12, 4), nullable=True)
    category = db.Column(db.String(128), nullable=True)
    is_dsd = db.Column(db.Boolean, nullable=False, default=False)

    last_synced = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    vendor = db.relationship("Vendor")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "upc": self.upc,
            "item_number": self.item_number or None,
            "description": self.description,
            "brand": self.brand,
            "vendor_name": self.vendor_name,
            "vendor_id": self.vendor_id,
            "pack_size": self.pack_size,
            "case_cost": decimal_to_json(self.case_cost),
            "category": self.category,
            "is_dsd": self.is_dsd,
            "last_synced": to_utc_z(self.last_synced),
        }
