# Overview: Pytest coverage for customer due payments, statements and audits.

from decimal import Decimal

import pytest

from shoppos.extensions import db
from shoppos.errors import NotFound, ValidationError
from shoppos.models import CashEntry, Customer
from shoppos.services import customer_ledger_service, sales_service
from shoppos.services.customer_ledger_service import audit_customer_balances, ledger_balance


@pytest.fixture
def indebted_customer(db_session, shop, make_product, make_customer, cart_line):
    fan = make_product(shop, sell_price="300.00")
    customer = make_customer(shop, name="Rahim")
    sales_service.create_sale(
        shop_id=shop.id, items=[cart_line(fan, 1)], payment_method="due", customer_id=customer.id,
    )
    return customer


class TestCustomerPayments:

    def test_payment_lowers_due_and_fills_drawer(self, db_session, shop, indebted_customer, events):
        entry = customer_ledger_service.record_customer_payment(
            shop_id=shop.id, customer_id=indebted_customer.id, amount="120.50",
        )

        assert entry.entry_type == "PAYMENT"
        assert entry.amount == Decimal("120.50")
        customer = db.session.get(Customer, indebted_customer.id)
        assert customer.total_due == Decimal("179.50")
        assert customer.last_payment_at is not None

        cash = db.session.query(CashEntry).one()
        assert (cash.entry_type, cash.amount) == ("IN", Decimal("120.50"))
        assert cash.reason == "Due payment from Rahim"
        assert {kind for kind, _, _ in events} == {"ledger:updated", "cash:updated"}

    def test_overpayment_is_rejected(self, db_session, shop, indebted_customer):
        with pytest.raises(ValidationError, match="exceeds outstanding"):
            customer_ledger_service.record_customer_payment(
                shop_id=shop.id, customer_id=indebted_customer.id, amount="300.01",
            )
        assert db.session.get(Customer, indebted_customer.id).total_due == Decimal("300.00")
        assert db.session.query(CashEntry).count() == 0

    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    def test_amount_must_be_positive_number(self, db_session, shop, indebted_customer, amount):
        with pytest.raises(ValidationError):
            customer_ledger_service.record_customer_payment(
                shop_id=shop.id, customer_id=indebted_customer.id, amount=amount,
            )

    def test_other_shops_customer(self, db_session, other_shop, indebted_customer):
        with pytest.raises(NotFound):
            customer_ledger_service.record_customer_payment(
                shop_id=other_shop.id, customer_id=indebted_customer.id, amount="10",
            )


class TestStatementsAndSummaries:

    def test_statement_running_balance(self, db_session, shop, indebted_customer):
        customer_ledger_service.record_customer_payment(
            shop_id=shop.id, customer_id=indebted_customer.id, amount="100",
        )
        statement = customer_ledger_service.get_customer_statement(shop.id, indebted_customer.id)

        assert [row["balance"] for row in statement["entries"]] == ["300.00", "200.00"]
        assert statement["balance"] == "200.00"
        assert statement["customer"]["total_due"] == "200.00"

    def test_due_summary_orders_by_due(self, db_session, shop, indebted_customer, make_customer):
        make_customer(shop, name="Zero Due")
        summary = customer_ledger_service.get_due_summary(shop.id)
        assert summary["total_due"] == "300.00"
        assert summary["top_due"][0]["name"] == "Rahim"
        assert len(summary["customers"]) == 2

    def test_create_customer(self, db_session, shop):
        customer = customer_ledger_service.create_customer(shop_id=shop.id, name="  Nadia ", phone=" ")
        assert customer.name == "Nadia"
        assert customer.phone is None
        assert customer.total_due == Decimal("0.00")
        with pytest.raises(ValidationError):
            customer_ledger_service.create_customer(shop_id=shop.id, name=" ")


class TestAudit:

    def test_clean_ledger_passes(self, db_session, shop, indebted_customer):
        assert audit_customer_balances() == []
        assert ledger_balance(indebted_customer.id) == Decimal("300.00")

    def test_tampered_balance_is_reported(self, db_session, shop, indebted_customer):
        customer = db.session.get(Customer, indebted_customer.id)
        customer.total_due = Decimal("250.00")
        db.session.commit()

        mismatches = audit_customer_balances(shop.id)
        assert mismatches == [{
            "customer_id": indebted_customer.id,
            "shop_id": shop.id,
            "name": "Rahim",
            "total_due": "250.00",
            "ledger_balance": "300.00",
        }]
