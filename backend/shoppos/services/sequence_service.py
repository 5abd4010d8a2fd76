# Overview: Shop-scoped sequential numbers for invoices and returns.

from __future__ import annotations

import re
from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence, Shop


DOC_TYPE_SALES_INVOICE = "SALES_INVOICE"
DOC_TYPE_SALE_RETURN = "SALE_RETURN"

_PREFIX_JUNK = re.compile(r"[^A-Z0-9]")


def sanitize_prefix(value: str | None) -> str | None:
    """Upper-case, alphanumerics only, at most 12 chars; None when nothing is left."""
    raw = (value or "").strip().upper()
    cleaned = _PREFIX_JUNK.sub("", raw)[:12]
    return cleaned or None


def format_document_number(prefix: str, business_date: date, sequence: int) -> str:
    """INV-260301-0001: prefix, business day (YYMMDD), serial within that day."""
    seq = max(1, int(sequence))
    return f"{prefix}-{business_date:%y%m%d}-{seq:04d}"


def next_sequence(*, shop_id: int, document_type: str, business_date: date) -> int:
    """
    Atomically take the next number for (shop, type, business day).

    Must be called inside the caller's unit of work: the counter bump
    commits or rolls back with the document it numbers, so numbers stay
    gap-free. Does not commit.
    """
    if not shop_id:
        raise ValueError("shop_id is required")
    if not document_type:
        raise ValueError("document_type is required")

    period_key = business_date.isoformat()
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.shop_id == shop_id,
            DocumentSequence.document_type == document_type,
            DocumentSequence.period_key == period_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _read_taken() -> int:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(shop_id=shop_id, document_type=document_type, period_key=period_key)
            .scalar()
        )
        return current - 1

    if db.session.execute(stmt).rowcount:
        return _read_taken()

    # First number of the day. A concurrent creator may win the insert; the
    # savepoint keeps the outer transaction usable so we fall back to UPDATE.
    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(
                shop_id=shop_id,
                document_type=document_type,
                period_key=period_key,
                next_number=2,
            ))
        return 1
    except IntegrityError:
        if not db.session.execute(stmt).rowcount:
            raise
        return _read_taken()


def allocate_invoice_number(shop: Shop, business_date: date) -> str:
    prefix = sanitize_prefix(shop.sales_invoice_prefix) or current_app.config["SALES_INVOICE_DEFAULT_PREFIX"]
    seq = next_sequence(shop_id=shop.id, document_type=DOC_TYPE_SALES_INVOICE, business_date=business_date)
    return format_document_number(prefix, business_date, seq)


def allocate_return_number(shop: Shop, business_date: date) -> str:
    prefix = sanitize_prefix(shop.sale_return_prefix) or current_app.config["SALE_RETURN_DEFAULT_PREFIX"]
    seq = next_sequence(shop_id=shop.id, document_type=DOC_TYPE_SALE_RETURN, business_date=business_date)
    return format_document_number(prefix, business_date, seq)
