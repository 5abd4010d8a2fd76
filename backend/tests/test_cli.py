# Overview: Pytest coverage for the Flask CLI commands.

from decimal import Decimal

from shoppos.extensions import db
from shoppos.models import Shop


class TestShopCommands:

    def test_create_shop(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "shop", "create", "--name", "Corner Store", "--timezone", "Asia/Dhaka",
            "--invoices", "--invoice-prefix", "inv",
        ])

        assert result.exit_code == 0, result.output
        assert "PASS Created shop: Corner Store" in result.output

        shop = db.session.query(Shop).filter_by(name="Corner Store").one()
        assert shop.sales_invoice_enabled is True
        assert shop.sales_invoice_prefix == "INV"

    def test_create_shop_rejects_unknown_timezone(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["shop", "create", "--name", "Nowhere", "--timezone", "Mars/Olympus"])

        assert result.exit_code != 0
        assert "unknown timezone" in result.output
        assert db.session.query(Shop).filter_by(name="Nowhere").count() == 0


class TestLedgerAudit:

    def test_clean_ledger_passes(self, app, shop, make_customer):
        make_customer(shop)
        result = app.test_cli_runner().invoke(args=["ledger", "audit"])

        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_mismatch_fails(self, app, shop, make_customer, db_session):
        customer = make_customer(shop, name="Rahim")
        customer.total_due = Decimal("99.00")
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["ledger", "audit", "--shop-id", str(shop.id)])

        assert result.exit_code == 1
        assert "Rahim" in result.output
        assert "FAIL 1 customer balance(s)" in result.output
