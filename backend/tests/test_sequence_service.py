# Overview: Pytest coverage for invoice and return numbering.

from datetime import date

from shoppos.extensions import db
from shoppos.models import DocumentSequence
from shoppos.services.sequence_service import (
    DOC_TYPE_SALES_INVOICE,
    allocate_invoice_number,
    allocate_return_number,
    format_document_number,
    next_sequence,
    sanitize_prefix,
)


class TestFormatting:

    def test_sanitize_prefix(self):
        assert sanitize_prefix(" inv-01 ") == "INV01"
        assert sanitize_prefix("a very long prefix indeed") == "AVERYLONGPRE"
        assert sanitize_prefix("---") is None
        assert sanitize_prefix(None) is None

    def test_format_document_number(self):
        assert format_document_number("INV", date(2026, 3, 1), 1) == "INV-260301-0001"
        assert format_document_number("RET", date(2026, 12, 31), 42) == "RET-261231-0042"


class TestNextSequence:

    def test_numbers_are_sequential_per_day(self, db_session, shop):
        day = date(2026, 3, 1)
        taken = [
            next_sequence(shop_id=shop.id, document_type=DOC_TYPE_SALES_INVOICE, business_date=day)
            for _ in range(3)
        ]
        db.session.commit()
        assert taken == [1, 2, 3]

    def test_new_business_day_restarts_at_one(self, db_session, shop):
        next_sequence(shop_id=shop.id, document_type=DOC_TYPE_SALES_INVOICE, business_date=date(2026, 3, 1))
        next_sequence(shop_id=shop.id, document_type=DOC_TYPE_SALES_INVOICE, business_date=date(2026, 3, 1))
        first_next_day = next_sequence(
            shop_id=shop.id, document_type=DOC_TYPE_SALES_INVOICE, business_date=date(2026, 3, 2)
        )
        db.session.commit()
        assert first_next_day == 1

    def test_shops_do_not_share_counters(self, db_session, shop, other_shop):
        day = date(2026, 3, 1)
        next_sequence(shop_id=shop.id, document_type=DOC_TYPE_SALES_INVOICE, business_date=day)
        assert next_sequence(shop_id=other_shop.id, document_type=DOC_TYPE_SALES_INVOICE, business_date=day) == 1

    def test_rollback_releases_the_number(self, db_session, shop):
        """Numbers are gap-free: a rolled back document gives its number back."""
        day = date(2026, 3, 1)
        next_sequence(shop_id=shop.id, document_type=DOC_TYPE_SALES_INVOICE, business_date=day)
        db.session.commit()
        next_sequence(shop_id=shop.id, document_type=DOC_TYPE_SALES_INVOICE, business_date=day)
        db.session.rollback()

        assert next_sequence(shop_id=shop.id, document_type=DOC_TYPE_SALES_INVOICE, business_date=day) == 2
        db.session.commit()
        row = db.session.query(DocumentSequence).filter_by(shop_id=shop.id).one()
        assert row.next_number == 3


class TestAllocators:

    def test_invoice_and_return_numbers_use_shop_prefixes(self, db_session, invoice_shop):
        day = date(2026, 3, 1)
        assert allocate_invoice_number(invoice_shop, day) == "INV-260301-0001"
        assert allocate_return_number(invoice_shop, day) == "RET-260301-0001"
        assert allocate_invoice_number(invoice_shop, day) == "INV-260301-0002"
        db.session.commit()

    def test_default_prefix_when_shop_has_none(self, db_session, shop):
        assert allocate_invoice_number(shop, date(2026, 3, 1)).startswith("INV-")
        assert allocate_return_number(shop, date(2026, 3, 1)).startswith("RET-")
        db.session.commit()
