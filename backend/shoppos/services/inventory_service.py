# Overview: Stock deltas for tracked products; the only writer of Product.stock_qty.

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from sqlalchemy import update

from ..extensions import db
from ..errors import InsufficientStock, NotFound, ValidationError
from ..models import Product
from ..money import ZERO, to_quantity
from .concurrency import begin_write_transaction, run_with_retry
"""
Inventory Invariants (authoritative)

- stock_qty is meaningful only when track_stock is true; untracked products
  are never written here.
- Decrements are compare-and-decrement UPDATEs guarded by
  "stock_qty >= requested". Zero rows affected means another writer got
  there first (or there was never enough): the caller's unit of work aborts.
- Increments (returns, voids) are unconditional.
- Nothing here commits.
"""


def aggregate_quantities(lines: Iterable[tuple[int, Decimal]]) -> dict[int, Decimal]:
    """Sum quantities per product id, preserving first-seen order."""
    totals: dict[int, Decimal] = {}
    for product_id, quantity in lines:
        totals[product_id] = totals.get(product_id, ZERO) + to_quantity(quantity)
    return totals


def decrement_stock(product: Product, quantity) -> bool:
    """
    Conditionally take `quantity` out of a tracked product's stock.

    Returns False (and writes nothing) for untracked products.
    Raises InsufficientStock when the guard rejects the write.
    """
    if not product.track_stock:
        return False
    qty = to_quantity(quantity)
    if qty <= ZERO:
        return False

    stmt = (
        update(Product)
        .where(
            Product.id == product.id,
            Product.track_stock.is_(True),
            Product.stock_qty >= qty,
        )
        .values(stock_qty=Product.stock_qty - qty)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        available = (
            db.session.query(Product.stock_qty).filter(Product.id == product.id).scalar()
        )
        raise InsufficientStock(
            product.name,
            product_id=product.id,
            requested=qty,
            available=available,
        )
    return True


def restore_stock(product: Product, quantity) -> bool:
    """Put `quantity` back into a tracked product's stock."""
    if not product.track_stock:
        return False
    qty = to_quantity(quantity)
    if qty <= ZERO:
        return False

    stmt = (
        update(Product)
        .where(Product.id == product.id, Product.track_stock.is_(True))
        .values(stock_qty=Product.stock_qty + qty)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount == 1


def get_stock_level(product_id: int) -> Decimal | None:
    """Current stock straight from the store (bypasses the identity map)."""
    value = db.session.query(Product.stock_qty).filter(Product.id == product_id).scalar()
    return to_quantity(value) if value is not None else None


def adjust_stock(*, shop_id: int, product_id: int, delta) -> Product:
    """
    Manual stock correction (receive or write-off).

    Negative deltas go through the same guard as sales. Commits.
    """
    qty = to_quantity(delta, "delta")
    if qty == ZERO:
        raise ValidationError("delta must be non-zero")

    def _op() -> Product:
        begin_write_transaction()
        product = db.session.query(Product).filter_by(id=product_id).first()
        if product is None or product.shop_id != shop_id:
            raise NotFound("Product not found")
        if not product.track_stock:
            raise ValidationError(f'Stock is not tracked for product "{product.name}"')

        if qty > ZERO:
            restore_stock(product, qty)
        else:
            decrement_stock(product, -qty)
        db.session.commit()
        return product

    return run_with_retry(_op)
