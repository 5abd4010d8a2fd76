# Overview: Cash drawer ledger (IN/OUT entries bucketed by business date).

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..errors import ValidationError
from ..models import CashEntry
from ..models.cash import CASH_IN, CASH_OUT
from ..money import ZERO, money_str, to_money
from .concurrency import run_with_retry
from .notifier import CASH_UPDATED, PendingEvents, publish_pending
from .shop_service import business_date_for, get_shop


VALID_ENTRY_TYPES = (CASH_IN, CASH_OUT)


def append_cash_entry(
    *,
    shop_id: int,
    entry_type: str,
    amount,
    reason: str | None,
    business_date: date,
    sale_id: int | None = None,
    sale_return_id: int | None = None,
) -> CashEntry:
    """
    Append one drawer movement inside the caller's unit of work.

    Amounts are positive; the entry type carries the direction. Does not commit.
    """
    if entry_type not in VALID_ENTRY_TYPES:
        raise ValidationError(f"Invalid cash entry type: {entry_type}. Must be one of {list(VALID_ENTRY_TYPES)}")
    value = to_money(amount)
    if value <= ZERO:
        raise ValidationError("Cash amount must be positive")

    entry = CashEntry(
        shop_id=shop_id,
        entry_type=entry_type,
        amount=value,
        reason=reason,
        business_date=business_date,
        sale_id=sale_id,
        sale_return_id=sale_return_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def create_cash_entry(*, shop_id: int, entry_type: str, amount, reason: str | None = None) -> CashEntry:
    """Manual cash book entry (owner puts in float, takes out expenses...). Commits."""
    entry_type = (entry_type or "").strip().upper()
    shop = get_shop(shop_id)
    pending = PendingEvents(shop_id=shop.id)

    def _op() -> CashEntry:
        entry = append_cash_entry(
            shop_id=shop.id,
            entry_type=entry_type,
            amount=amount,
            reason=(reason or "").strip() or None,
            business_date=business_date_for(shop),
        )
        db.session.commit()
        pending.add(CASH_UPDATED, {"amount": money_str(entry.amount), "entryType": entry.entry_type})
        return entry

    entry = run_with_retry(_op)
    publish_pending(pending)
    return entry


def list_cash_entries(shop_id: int, business_date: date | None = None) -> list[CashEntry]:
    q = db.session.query(CashEntry).filter(CashEntry.shop_id == shop_id)
    if business_date is not None:
        q = q.filter(CashEntry.business_date == business_date)
    return q.order_by(CashEntry.created_at.asc(), CashEntry.id.asc()).all()


def get_cash_summary(shop_id: int, business_date: date) -> dict:
    """Totals in/out and the drawer balance for one business day."""
    rows = (
        db.session.query(CashEntry.entry_type, func.coalesce(func.sum(CashEntry.amount), 0))
        .filter(CashEntry.shop_id == shop_id, CashEntry.business_date == business_date)
        .group_by(CashEntry.entry_type)
        .all()
    )
    totals = {entry_type: to_money(total) for entry_type, total in rows}
    cash_in = totals.get(CASH_IN, ZERO)
    cash_out = totals.get(CASH_OUT, ZERO)
    return {
        "shop_id": shop_id,
        "business_date": business_date.isoformat(),
        "total_in": money_str(cash_in),
        "total_out": money_str(cash_out),
        "balance": money_str(cash_in - cash_out),
    }
