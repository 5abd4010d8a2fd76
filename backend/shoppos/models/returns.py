from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


RETURN_TYPE_REFUND = "refund"
RETURN_TYPE_EXCHANGE = "exchange"

RETURN_STATUS_COMPLETED = "completed"
RETURN_STATUS_CANCELED = "canceled"


class SaleReturn(db.Model):
    """
    Settlement of a refund or exchange against one sale.

    AMOUNTS (all two-decimal money):
    - subtotal: value of the returned lines at their original unit price
    - exchange_subtotal: value of the replacement lines
    - net_amount: exchange_subtotal - subtotal (negative = shop owes customer)
    - refund_amount / due_adjustment_amount: how a negative net was paid out
    - additional_due_amount / additional_cash_in_amount: how a positive net
      was collected

    Only `completed` returns count against a sale item's returnable quantity.
    """
    __tablename__ = "sale_returns"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "return_no", name="uq_sale_returns_shop_return_no"),
        db.Index("ix_sale_returns_shop_business_date", "shop_id", "business_date"),
        db.Index("ix_sale_returns_shop_status_created", "shop_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    return_no = db.Column(db.String(40), nullable=False)
    type = db.Column(db.String(16), nullable=False)  # refund, exchange
    status = db.Column(db.String(16), nullable=False, default=RETURN_STATUS_COMPLETED)
    settlement_mode = db.Column(db.String(16), nullable=False)  # cash, due
    reason = db.Column(db.String(255), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    exchange_subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_amount = db.Column(db.Numeric(12, 2), nullable=False)
    refund_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    additional_cash_in_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    due_adjustment_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    additional_due_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    business_date = db.Column(db.Date, nullable=False)
    created_by_user_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "sale_id": self.sale_id,
            "return_no": self.return_no,
            "type": self.type,
            "status": self.status,
            "settlement_mode": self.settlement_mode,
            "reason": self.reason,
            "note": self.note,
            "subtotal": money_str(self.subtotal),
            "exchange_subtotal": money_str(self.exchange_subtotal),
            "net_amount": money_str(self.net_amount),
            "refund_amount": money_str(self.refund_amount),
            "additional_cash_in_amount": money_str(self.additional_cash_in_amount),
            "due_adjustment_amount": money_str(self.due_adjustment_amount),
            "additional_due_amount": money_str(self.additional_due_amount),
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class SaleReturnItem(db.Model):
    """Returned quantity of one original sale item, priced at the original unit price."""
    __tablename__ = "sale_return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=False, index=True)
    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name_snapshot = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)
    cost_at_return = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale_return = db.relationship("SaleReturn", backref=db.backref("items", lazy=True, order_by="SaleReturnItem.id"))
    sale_item = db.relationship("SaleItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_return_id": self.sale_return_id,
            "sale_item_id": self.sale_item_id,
            "product_id": self.product_id,
            "product_name_snapshot": self.product_name_snapshot,
            "quantity": money_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "line_total": money_str(self.line_total),
            "cost_at_return": money_str(self.cost_at_return),
        }


class SaleReturnExchangeItem(db.Model):
    """Replacement line handed out in an exchange."""
    __tablename__ = "sale_return_exchange_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name_snapshot = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)
    cost_at_return = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale_return = db.relationship(
        "SaleReturn",
        backref=db.backref("exchange_items", lazy=True, order_by="SaleReturnExchangeItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_return_id": self.sale_return_id,
            "product_id": self.product_id,
            "product_name_snapshot": self.product_name_snapshot,
            "quantity": money_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "line_total": money_str(self.line_total),
            "cost_at_return": money_str(self.cost_at_return),
        }
