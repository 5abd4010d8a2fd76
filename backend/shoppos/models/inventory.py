from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog item of a shop.

    STOCK: stock_qty is authoritative only while track_stock is true. It is
    mutated exclusively through services/inventory_service.py, whose
    decrement is a guarded UPDATE (never read-then-write), so the value can
    not go negative through a sale or exchange.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_shop_name", "shop_id", "name"),
        db.Index("ix_products_shop_active", "shop_id", "is_active"),
        db.CheckConstraint("stock_qty >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=True)

    sell_price = db.Column(db.Numeric(12, 2), nullable=False)
    buy_price = db.Column(db.Numeric(12, 2), nullable=True)

    stock_qty = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    track_stock = db.Column(db.Boolean, nullable=False, default=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shop = db.relationship("Shop", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} shop_id={self.shop_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "category": self.category,
            "sell_price": money_str(self.sell_price),
            "buy_price": money_str(self.buy_price),
            "stock_qty": money_str(self.stock_qty),
            "track_stock": self.track_stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
