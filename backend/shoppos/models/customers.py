from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


LEDGER_ENTRY_SALE = "SALE"
LEDGER_ENTRY_PAYMENT = "PAYMENT"


class Customer(db.Model):
    """
    Credit ("due") customer of a shop.

    total_due is a materialized running balance of the customer's ledger:
    SUM(SALE amounts) - SUM(PAYMENT amounts). Every writer updates it in the
    same transaction as the ledger row it appends, under a row lock.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_shop_due", "shop_id", "total_due"),
        db.CheckConstraint("total_due >= 0", name="ck_customers_total_due_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    total_due = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    last_payment_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shop = db.relationship("Shop", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "total_due": money_str(self.total_due),
            "last_payment_at": to_utc_z(self.last_payment_at) if self.last_payment_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CustomerLedgerEntry(db.Model):
    """
    Append-only customer credit ledger.

    ENTRY TYPES:
    - SALE: customer owes more (due sale, additional due on exchange)
    - PAYMENT: customer owes less (cash payment, partial payment at sale,
      due adjustment on return, void reversal)

    amount is always positive; the entry type carries the sign.
    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "customer_ledger"
    __table_args__ = (
        db.Index("ix_customer_ledger_customer_entry_date", "customer_id", "entry_date"),
        db.Index("ix_customer_ledger_shop_business_date", "shop_id", "business_date"),
        db.CheckConstraint("amount > 0", name="ck_customer_ledger_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    entry_type = db.Column(db.String(16), nullable=False, index=True)  # SALE, PAYMENT
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.String(255), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    sale_return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=True, index=True)

    entry_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    business_date = db.Column(db.Date, nullable=False)

    customer = db.relationship("Customer", backref=db.backref("ledger_entries", lazy=True))

    @property
    def signed_amount(self):
        return self.amount if self.entry_type == LEDGER_ENTRY_SALE else -self.amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "entry_type": self.entry_type,
            "amount": money_str(self.amount),
            "description": self.description,
            "sale_id": self.sale_id,
            "sale_return_id": self.sale_return_id,
            "entry_date": to_utc_z(self.entry_date),
            "business_date": self.business_date.isoformat() if self.business_date else None,
        }
