from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


CASH_IN = "IN"
CASH_OUT = "OUT"


class CashEntry(db.Model):
    """
    Cash drawer movement, bucketed by business date for end-of-day counts.

    IMMUTABLE: corrections are new entries in the opposite direction.
    """
    __tablename__ = "cash_entries"
    __table_args__ = (
        db.Index("ix_cash_entries_shop_business_date", "shop_id", "business_date"),
        db.CheckConstraint("amount > 0", name="ck_cash_entries_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    entry_type = db.Column(db.String(8), nullable=False, index=True)  # IN, OUT
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    sale_return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=True, index=True)

    business_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "entry_type": self.entry_type,
            "amount": money_str(self.amount),
            "reason": self.reason,
            "sale_id": self.sale_id,
            "sale_return_id": self.sale_return_id,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "created_at": to_utc_z(self.created_at),
        }
