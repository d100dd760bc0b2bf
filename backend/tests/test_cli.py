"""
CLI command tests (Flask CLI runner).
"""

from datetime import date
from decimal import Decimal

from dsdrecon.models import Product, WholesaleCatalogItem
from dsdrecon.services import price_ledger


class TestCatalogImportCommand:
    def test_imports_csv(self, app, db_session, tmp_path):
        csv_file = tmp_path / "awg.csv"
        csv_file.write_text(
            "upc,item_number,description,case_cost,is_dsd\n"
            "012000171864,4411,Pepsi 12pk,$5.99,yes\n"
            ",4412,Missing UPC,1.00,no\n",
            encoding="utf-8",
        )

        result = app.test_cli_runner().invoke(args=["catalog", "import", "--source", "awg", str(csv_file)])

        assert result.exit_code == 0, result.output
        assert "Imported: 1" in result.output
        assert "Skipped: 1" in result.output
        assert db_session.query(WholesaleCatalogItem).count() == 1

    def test_rejects_unknown_source(self, app, db_session, tmp_path):
        csv_file = tmp_path / "x.csv"
        csv_file.write_text("upc\n", encoding="utf-8")
        result = app.test_cli_runner().invoke(args=["catalog", "import", "--source", "nielsen", str(csv_file)])
        assert result.exit_code != 0


class TestLedgerShowCommand:
    def test_shows_history(self, app, db_session, priced_product):
        price_ledger.record_price(product_id=priced_product.id, effective_date=date(2026, 2, 1), unit_cost=Decimal("10.50"))
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["ledger", "show", str(priced_product.id)])

        assert result.exit_code == 0, result.output
        assert "2026-02-01" in result.output
        assert "10.5000" in result.output
        assert "5.00" in result.output

    def test_unknown_product(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["ledger", "show", "9999"])
        assert result.exit_code != 0
        assert "not found" in result.output


class TestSystemCommands:
    def test_init_db_is_idempotent(self, app, db_session, product):
        result = app.test_cli_runner().invoke(args=["system", "init-db"])
        assert result.exit_code == 0
        assert db_session.query(Product).count() == 1
