"""
Catalog service tests.

Verifies:
- UPC lookup: internal table first, then wholesale catalog, with confidence tags
- Wholesale lookup never creates a product
- Manual product entry upserts by UPC
- Bulk import skips and reports bad rows
"""

from decimal import Decimal

import pytest

from dsdrecon.models import Product, WholesaleCatalogItem
from dsdrecon.services import catalog_service
from dsdrecon.validation import ValidationError


class TestLookup:
    def test_internal_unverified_is_medium(self, db_session, product):
        result = catalog_service.lookup_upc("0028400090896")
        assert result.found
        assert result.source == "internal"
        assert result.confidence == "medium"
        assert result.product["id"] == product.id
        assert result.vendor["id"] == product.vendor_id

    def test_internal_verified_is_high(self, db_session, product):
        product.verified = True
        db_session.commit()
        assert catalog_service.lookup_upc("028400090896").confidence == "high"

    def test_wholesale_with_vendor_is_medium(self, db_session, vendor):
        db_session.add(WholesaleCatalogItem(
            upc="012000171864", item_number="4411", description="Pepsi 12pk", vendor_id=vendor.id, is_dsd=True,
        ))
        db_session.commit()

        result = catalog_service.lookup_upc("12000171864")
        assert result.source == "awg"
        assert result.confidence == "medium"
        assert result.note == "Common DSD item"
        assert db_session.query(Product).count() == 0

    def test_wholesale_without_vendor_is_low(self, db_session):
        db_session.add(WholesaleCatalogItem(upc="012000171864", description="Pepsi 12pk"))
        db_session.commit()

        result = catalog_service.lookup_upc("012000171864")
        assert result.confidence == "low"
        assert result.vendor is None

    def test_not_found(self, db_session):
        result = catalog_service.lookup_upc("000000000001")
        assert result.found is False
        assert result.to_dict()["product"] is None

    def test_rejects_non_numeric(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.lookup_upc("abc")


class TestManualEntry:
    def test_creates_then_updates(self, db_session, vendor):
        first = catalog_service.save_manual_product(
            upc="041196910759", description="Chex Mix", vendor_id=vendor.id,
        )
        second = catalog_service.save_manual_product(
            upc="0041196910759", description="Chex Mix Traditional", vendor_id=vendor.id, source="promo",
        )

        assert first.id == second.id
        assert second.description == "Chex Mix Traditional"
        assert db_session.query(Product).count() == 1

    @pytest.mark.parametrize("kwargs", [
        {"upc": "", "description": "x", "vendor_id": 1},
        {"upc": "041196910759", "description": " ", "vendor_id": 1},
        {"upc": "041196910759", "description": "x", "vendor_id": None},
    ])
    def test_required_fields(self, db_session, kwargs):
        with pytest.raises(ValidationError):
            catalog_service.save_manual_product(**kwargs)

    def test_unknown_vendor(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.save_manual_product(upc="041196910759", description="x", vendor_id=999)

    def test_bad_source(self, db_session, vendor):
        with pytest.raises(ValidationError):
            catalog_service.save_manual_product(
                upc="041196910759", description="x", vendor_id=vendor.id, source="invoice",
            )


class TestImport:
    def test_awg_import_upserts(self, db_session):
        rows = [
            {"upc": "012000171864", "item_number": "4411", "description": "Pepsi 12pk", "case_cost": "$5.99",
             "is_dsd": "Y"},
            {"upc": "012000171864", "item_number": "4411", "description": "Pepsi 12pk Cans", "case_cost": "6.49"},
            {"upc": "", "description": "no upc"},
            "not a row",
        ]
        result = catalog_service.import_catalog("awg", rows)

        assert result.imported == 2
        assert result.skipped == 2
        assert len(result.errors) == 2

        item = db_session.query(WholesaleCatalogItem).one()
        assert item.description == "Pepsi 12pk Cans"
        assert item.case_cost == Decimal("6.49")

    def test_internal_import_creates_products(self, db_session, vendor):
        result = catalog_service.import_catalog("internal", [
            {"upc": "028400090896", "description": "Doritos", "item_code": "12345", "vendor_id": str(vendor.id)},
            {"upc": "028400040112", "description": "Fritos"},
        ])

        assert result.to_dict() == {"imported": 2, "skipped": 0, "errors": []}
        doritos = db_session.query(Product).filter_by(upc="028400090896").one()
        assert doritos.source == "internal"
        assert doritos.vendor_id == vendor.id
        assert doritos.unit_of_measure == "case"

    def test_error_report_capped(self, db_session):
        result = catalog_service.import_catalog("internal", [{"upc": ""}] * 25)
        assert result.skipped == 25
        assert len(result.errors) == catalog_service.MAX_REPORTED_ERRORS

    def test_unknown_source(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.import_catalog("nielsen", [])
