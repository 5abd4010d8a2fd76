from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


SALE_STATUS_ACTIVE = "ACTIVE"
SALE_STATUS_VOIDED = "VOIDED"

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_DUE = "due"


class Sale(db.Model):
    """
    A committed sale.

    LIFECYCLE: created ACTIVE by services/sales_service.py; moves to VOIDED
    exactly once through the conditional claim in services/void_service.py.
    Never hard-deleted.

    paid_amount is the cash collected at sale time (full total for cash
    sales, the clamped paid-now for due sales, zero for card/mobile), kept
    so a void can recompute the outstanding due from the sale itself.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "invoice_no", name="uq_sales_shop_invoice_no"),
        db.UniqueConstraint("client_sale_id", name="uq_sales_client_sale_id"),
        db.Index("ix_sales_shop_status_sale_date", "shop_id", "status", "sale_date"),
        db.Index("ix_sales_shop_business_date", "shop_id", "business_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    payment_method = db.Column(db.String(32), nullable=False, default=PAYMENT_METHOD_CASH)
    note = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_ACTIVE, index=True)
    void_reason = db.Column(db.String(255), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by_user_id = db.Column(db.String(64), nullable=True)

    invoice_no = db.Column(db.String(40), nullable=True)
    invoice_issued_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Idempotency key supplied by the client (offline queue retries)
    client_sale_id = db.Column(db.String(64), nullable=True)
    reissued_from_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)
    business_date = db.Column(db.Date, nullable=False)

    created_by_user_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))

    @property
    def is_due(self) -> bool:
        return self.payment_method == PAYMENT_METHOD_DUE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "total_amount": money_str(self.total_amount),
            "paid_amount": money_str(self.paid_amount),
            "payment_method": self.payment_method,
            "note": self.note,
            "status": self.status,
            "void_reason": self.void_reason,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "voided_by_user_id": self.voided_by_user_id,
            "invoice_no": self.invoice_no,
            "invoice_issued_at": to_utc_z(self.invoice_issued_at) if self.invoice_issued_at else None,
            "client_sale_id": self.client_sale_id,
            "reissued_from_sale_id": self.reissued_from_sale_id,
            "sale_date": to_utc_z(self.sale_date),
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    """
    Line item of a sale. Immutable after creation.

    product_name_snapshot and cost_at_sale freeze the catalog values at sale
    time so later renames and price changes do not rewrite history.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name_snapshot = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    cost_at_sale = db.Column(db.Numeric(12, 2), nullable=True)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, order_by="SaleItem.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name_snapshot": self.product_name_snapshot,
            "quantity": money_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "cost_at_sale": money_str(self.cost_at_sale),
            "line_total": money_str(self.line_total),
            "created_at": to_utc_z(self.created_at),
        }
