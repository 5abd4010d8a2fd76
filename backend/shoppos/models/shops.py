from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Shop(db.Model):
    """
    A retail shop: the tenant boundary for every other row.

    Products, customers, sales, cash entries and document sequences are all
    shop-scoped; no operation may reference rows of another shop.
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    owner_user_id = db.Column(db.String(64), nullable=True, index=True)

    # Business dates (cash book, numbering) are bucketed in this timezone
    timezone = db.Column(db.String(64), nullable=True)

    # Invoicing is an owner policy; numbers are issued only when enabled
    sales_invoice_enabled = db.Column(db.Boolean, nullable=False, default=False)
    sales_invoice_prefix = db.Column(db.String(12), nullable=True)
    sale_return_prefix = db.Column(db.String(12), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_user_id": self.owner_user_id,
            "timezone": self.timezone,
            "sales_invoice_enabled": self.sales_invoice_enabled,
            "sales_invoice_prefix": self.sales_invoice_prefix,
            "sale_return_prefix": self.sale_return_prefix,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class DocumentSequence(db.Model):
    """
    Per-shop, per-document-type, per-business-day counters.

    Updated inside the same transaction as the document being numbered, so a
    rolled-back sale or return gives its number back.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "document_type", "period_key", name="uq_doc_sequences_shop_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False)
    period_key = db.Column(db.String(10), nullable=False)  # business date, YYYY-MM-DD
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("document_sequences", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "document_type": self.document_type,
            "period_key": self.period_key,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
