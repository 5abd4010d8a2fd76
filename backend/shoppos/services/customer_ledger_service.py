# Overview: Customer credit ("due") ledger and its materialized balance.

"""
Customer Ledger Invariants (authoritative)

- customer_ledger is append-only; amounts are positive, entry_type signs them
  (SALE adds to the balance, PAYMENT subtracts).
- Customer.total_due == SUM(SALE) - SUM(PAYMENT) for that customer, always.
- Every writer locks the customer row, appends entries and moves total_due
  in the same unit of work. total_due is never taken from a client.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import case, func

from ..extensions import db
from ..errors import InvalidCustomer, NotFound, ValidationError
from ..models import Customer, CustomerLedgerEntry
from ..models.cash import CASH_IN
from ..models.customers import LEDGER_ENTRY_PAYMENT, LEDGER_ENTRY_SALE
from ..money import ZERO, money_str, to_money
from ..time_utils import utcnow
from .cash_service import append_cash_entry
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .notifier import CASH_UPDATED, LEDGER_UPDATED, PendingEvents, publish_pending
from .shop_service import business_date_for, get_shop


# =============================================================================
# LOW-LEVEL WRITERS (used inside other services' units of work)
# =============================================================================

def lock_customer(customer_id: int) -> Customer | None:
    """Load the customer row with a write lock and fresh column values."""
    return (
        lock_for_update(db.session.query(Customer).filter_by(id=customer_id))
        .populate_existing()
        .first()
    )


def require_shop_customer(customer_id: int | None, shop_id: int, *, lock: bool = False) -> Customer:
    """Customer must exist and belong to the shop; anything else is InvalidCustomer."""
    if not customer_id:
        raise InvalidCustomer("Select a customer for due sale")
    if lock:
        customer = lock_customer(customer_id)
    else:
        customer = db.session.get(Customer, customer_id)
    if customer is None or customer.shop_id != shop_id:
        raise InvalidCustomer("Customer not found for this shop", details={"customer_id": customer_id})
    return customer


def _append_entry(
    customer: Customer,
    *,
    entry_type: str,
    amount: Decimal,
    description: str | None,
    business_date,
    sale_id: int | None,
    sale_return_id: int | None,
) -> CustomerLedgerEntry:
    entry = CustomerLedgerEntry(
        shop_id=customer.shop_id,
        customer_id=customer.id,
        entry_type=entry_type,
        amount=amount,
        description=description,
        entry_date=utcnow(),
        business_date=business_date,
        sale_id=sale_id,
        sale_return_id=sale_return_id,
    )
    db.session.add(entry)
    return entry


def post_sale_entry(
    customer: Customer,
    amount,
    *,
    description: str | None,
    business_date,
    sale_id: int | None = None,
    sale_return_id: int | None = None,
) -> CustomerLedgerEntry | None:
    """Customer owes `amount` more. Zero amounts write nothing."""
    value = to_money(amount)
    if value <= ZERO:
        return None
    entry = _append_entry(
        customer,
        entry_type=LEDGER_ENTRY_SALE,
        amount=value,
        description=description,
        business_date=business_date,
        sale_id=sale_id,
        sale_return_id=sale_return_id,
    )
    customer.total_due = to_money(customer.total_due) + value
    return entry


def post_payment_entry(
    customer: Customer,
    amount,
    *,
    description: str | None,
    business_date,
    sale_id: int | None = None,
    sale_return_id: int | None = None,
    mark_payment: bool = True,
) -> CustomerLedgerEntry | None:
    """
    Customer owes `amount` less.

    Callers size the amount against the locked balance; the clamp at zero is
    a last guard, not a way to record more than is owed.
    """
    value = to_money(amount)
    if value <= ZERO:
        return None
    entry = _append_entry(
        customer,
        entry_type=LEDGER_ENTRY_PAYMENT,
        amount=value,
        description=description,
        business_date=business_date,
        sale_id=sale_id,
        sale_return_id=sale_return_id,
    )
    customer.total_due = max(ZERO, to_money(customer.total_due) - value)
    if mark_payment:
        customer.last_payment_at = utcnow()
    return entry


def ledger_balance(customer_id: int) -> Decimal:
    """Signed sum of the customer's ledger (the number total_due must equal)."""
    signed = case(
        (CustomerLedgerEntry.entry_type == LEDGER_ENTRY_SALE, CustomerLedgerEntry.amount),
        else_=-CustomerLedgerEntry.amount,
    )
    total = (
        db.session.query(func.coalesce(func.sum(signed), 0))
        .filter(CustomerLedgerEntry.customer_id == customer_id)
        .scalar()
    )
    return to_money(total or 0)


# =============================================================================
# CUSTOMER OPERATIONS
# =============================================================================

def create_customer(*, shop_id: int, name: str, phone: str | None = None, address: str | None = None) -> Customer:
    shop = get_shop(shop_id)
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")

    customer = Customer(
        shop_id=shop.id,
        name=name,
        phone=(phone or "").strip() or None,
        address=(address or "").strip() or None,
        total_due=ZERO,
    )
    db.session.add(customer)
    db.session.commit()
    return customer


def get_customer(shop_id: int, customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None or customer.shop_id != shop_id:
        raise NotFound("Customer not found in this shop")
    return customer


def record_customer_payment(
    *,
    shop_id: int,
    customer_id: int,
    amount,
    description: str | None = None,
) -> CustomerLedgerEntry:
    """
    Customer pays down their due in cash.

    Appends a PAYMENT entry, lowers total_due and puts the cash in the
    drawer, all in one transaction. Paying more than is owed is rejected.
    """
    value = to_money(amount)
    if value <= ZERO:
        raise ValidationError("Amount must be positive")

    shop = get_shop(shop_id)
    pending = PendingEvents(shop_id=shop.id)

    def _op() -> CustomerLedgerEntry:
        begin_write_transaction()
        customer = lock_customer(customer_id)
        if customer is None or customer.shop_id != shop.id:
            raise NotFound("Customer not found in this shop")

        outstanding = to_money(customer.total_due)
        if value > outstanding:
            raise ValidationError(
                "Payment exceeds outstanding due",
                details={"outstanding_due": money_str(outstanding), "amount": money_str(value)},
            )

        business_date = business_date_for(shop)
        entry = post_payment_entry(
            customer,
            value,
            description=(description or "").strip() or "Payment",
            business_date=business_date,
        )
        append_cash_entry(
            shop_id=shop.id,
            entry_type=CASH_IN,
            amount=value,
            reason=f"Due payment from {customer.name}",
            business_date=business_date,
        )
        db.session.commit()

        pending.add(LEDGER_UPDATED, {"customerId": customer.id})
        pending.add(CASH_UPDATED, {"amount": money_str(value), "entryType": CASH_IN})
        return entry

    entry = run_with_retry(_op)
    publish_pending(pending)
    return entry


def get_customer_statement(shop_id: int, customer_id: int) -> dict:
    """Ledger entries oldest first, each with the running balance after it."""
    customer = get_customer(shop_id, customer_id)
    entries = (
        db.session.query(CustomerLedgerEntry)
        .filter_by(shop_id=shop_id, customer_id=customer_id)
        .order_by(CustomerLedgerEntry.entry_date.asc(), CustomerLedgerEntry.id.asc())
        .all()
    )

    balance = ZERO
    rows = []
    for entry in entries:
        balance = balance + to_money(entry.signed_amount)
        row = entry.to_dict()
        row["balance"] = money_str(balance)
        rows.append(row)

    return {
        "customer": customer.to_dict(),
        "entries": rows,
        "balance": money_str(balance),
    }


def get_due_summary(shop_id: int, top: int = 5) -> dict:
    get_shop(shop_id)
    customers = (
        db.session.query(Customer)
        .filter(Customer.shop_id == shop_id)
        .order_by(Customer.total_due.desc(), Customer.id.asc())
        .all()
    )
    total_due = sum((to_money(c.total_due) for c in customers), ZERO)
    return {
        "total_due": money_str(total_due),
        "top_due": [
            {"id": c.id, "name": c.name, "phone": c.phone, "total_due": money_str(c.total_due)}
            for c in customers[:top]
        ],
        "customers": [c.to_dict() for c in customers],
    }


def audit_customer_balances(shop_id: int | None = None) -> list[dict]:
    """
    Customers whose total_due disagrees with their ledger.

    An empty list means the ledger and the materialized balances reconcile.
    """
    signed = case(
        (CustomerLedgerEntry.entry_type == LEDGER_ENTRY_SALE, CustomerLedgerEntry.amount),
        else_=-CustomerLedgerEntry.amount,
    )
    sums = (
        db.session.query(
            CustomerLedgerEntry.customer_id.label("customer_id"),
            func.sum(signed).label("ledger_total"),
        )
        .group_by(CustomerLedgerEntry.customer_id)
        .subquery()
    )
    q = db.session.query(Customer, sums.c.ledger_total).outerjoin(
        sums, sums.c.customer_id == Customer.id
    )
    if shop_id is not None:
        q = q.filter(Customer.shop_id == shop_id)

    mismatches = []
    for customer, ledger_total in q.order_by(Customer.id.asc()).all():
        expected = to_money(ledger_total or 0)
        actual = to_money(customer.total_due)
        if expected != actual:
            mismatches.append({
                "customer_id": customer.id,
                "shop_id": customer.shop_id,
                "name": customer.name,
                "total_due": money_str(actual),
                "ledger_balance": money_str(expected),
            })
    return mismatches
