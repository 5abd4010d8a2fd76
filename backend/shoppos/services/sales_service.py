"""
Sale Transaction Orchestrator

Creates a sale as one unit of work: the sale row, its line items, the cash
drawer entry, the guarded stock decrements and the customer credit entries
either all commit or none do. Events are published only after the commit.

FLOW:
1. prepare_sale(): pure validation and pricing (no writes). Also used by
   the reissue saga to validate a replacement cart before voiding.
2. create_sale(): opens the transaction, numbers the invoice, writes,
   commits, then notifies.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import InvalidCart, NotFound, ValidationError
from ..models import Customer, Product, Sale, SaleItem, Shop
from ..models.cash import CASH_IN
from ..models.sales import PAYMENT_METHOD_CASH, PAYMENT_METHOD_DUE, SALE_STATUS_ACTIVE
from ..money import ZERO, clamp_money, line_total, money_str, to_money, to_quantity
from ..time_utils import utcnow
from . import inventory_service
from .cash_service import append_cash_entry
from .concurrency import begin_write_transaction, run_with_retry
from .customer_ledger_service import post_payment_entry, post_sale_entry, require_shop_customer
from .notifier import (
    CASH_UPDATED,
    LEDGER_UPDATED,
    SALE_COMMITTED,
    STOCK_UPDATED,
    PendingEvents,
    publish_pending,
)
from .sequence_service import allocate_invoice_number
from .shop_service import business_date_for, get_shop


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: Decimal
    unit_price: Decimal


@dataclass
class PreparedSale:
    shop: Shop
    lines: list[CartLine]
    products: dict[int, Product]
    total: Decimal
    payment_method: str
    customer: Customer | None
    paid_now: Decimal


# =============================================================================
# INPUT PARSING
# =============================================================================

def _pick(raw: dict, *keys):
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def parse_cart_items(items: Iterable) -> list[CartLine]:
    """
    Accepts CartLine objects or dicts using either snake_case or the
    camelCase keys of the POS client (productId, qty/quantity, unitPrice).
    """
    if items is None:
        return []
    if isinstance(items, (str, bytes, dict)):
        raise ValidationError("items must be a list")

    lines: list[CartLine] = []
    for index, raw in enumerate(items):
        if isinstance(raw, CartLine):
            line = raw
        elif isinstance(raw, dict):
            product_id = _pick(raw, "product_id", "productId")
            if product_id is None or isinstance(product_id, bool):
                raise ValidationError(f"Item {index + 1}: productId is required")
            try:
                product_id = int(product_id)
            except (TypeError, ValueError):
                raise ValidationError(f"Item {index + 1}: productId must be an integer")
            line = CartLine(
                product_id=product_id,
                quantity=to_quantity(_pick(raw, "quantity", "qty"), f"Item {index + 1} quantity"),
                unit_price=to_money(_pick(raw, "unit_price", "unitPrice"), f"Item {index + 1} unitPrice"),
            )
        else:
            raise ValidationError(f"Item {index + 1} is malformed")

        if line.quantity <= ZERO:
            raise ValidationError(f"Item {index + 1}: quantity must be positive")
        if line.unit_price < ZERO:
            raise ValidationError(f"Item {index + 1}: unitPrice cannot be negative")
        lines.append(line)
    return lines


def normalize_payment_method(value: str | None) -> str:
    method = (value or PAYMENT_METHOD_CASH).strip().lower()
    if not method:
        return PAYMENT_METHOD_CASH
    if len(method) > 32:
        raise ValidationError("paymentMethod is too long")
    return method


def load_shop_products(shop_id: int, product_ids: Iterable[int]) -> dict[int, Product]:
    """
    Batch-load products and check they can be sold by this shop.

    Missing ids -> NotFound; other shop's or archived products -> InvalidCart.
    """
    wanted = list(dict.fromkeys(product_ids))
    products = db.session.query(Product).filter(Product.id.in_(wanted)).all() if wanted else []
    by_id = {p.id: p for p in products}

    missing = [pid for pid in wanted if pid not in by_id]
    if missing:
        raise NotFound("One or more products not found", details={"product_ids": missing})

    for product in products:
        if product.shop_id != shop_id:
            raise InvalidCart(
                "Product does not belong to this shop",
                details={"product_id": product.id},
            )
        if not product.is_active:
            raise InvalidCart(
                f"Inactive product in cart: {product.name}",
                details={"product_id": product.id},
            )
    return by_id


# =============================================================================
# PREPARATION (no writes)
# =============================================================================

def prepare_sale(
    *,
    shop_id: int,
    items,
    payment_method: str | None = PAYMENT_METHOD_CASH,
    customer_id: int | None = None,
    paid_now=None,
) -> PreparedSale:
    shop = get_shop(shop_id)
    lines = parse_cart_items(items)
    if not lines:
        raise ValidationError("Cart is empty")

    products = load_shop_products(shop.id, (line.product_id for line in lines))

    # Sum of the rounded line totals stored on the items; a client-supplied
    # total is never used
    total = sum((line_total(line.quantity, line.unit_price) for line in lines), ZERO)

    method = normalize_payment_method(payment_method)
    customer = None
    if method == PAYMENT_METHOD_DUE or customer_id:
        customer = require_shop_customer(customer_id, shop.id)

    if method == PAYMENT_METHOD_DUE:
        paid = clamp_money(paid_now if paid_now is not None else ZERO, ZERO, total)
    elif method == PAYMENT_METHOD_CASH:
        paid = total
    else:
        # Card / mobile wallet: settled outside the cash drawer
        paid = ZERO

    return PreparedSale(
        shop=shop,
        lines=lines,
        products=products,
        total=total,
        payment_method=method,
        customer=customer,
        paid_now=paid,
    )


# =============================================================================
# CREATE SALE
# =============================================================================

def _find_by_client_id(client_sale_id: str) -> Sale | None:
    return db.session.query(Sale).filter_by(client_sale_id=client_sale_id).first()


def _existing_for_client_id(shop_id: int, client_sale_id: str | None) -> Sale | None:
    if not client_sale_id:
        return None
    existing = _find_by_client_id(client_sale_id)
    if existing is not None and existing.shop_id != shop_id:
        raise ValidationError("Sale id conflict", details={"client_sale_id": client_sale_id})
    return existing


def create_sale(
    *,
    shop_id: int,
    items,
    payment_method: str | None = PAYMENT_METHOD_CASH,
    customer_id: int | None = None,
    paid_now=None,
    note: str | None = None,
    client_sale_id: str | None = None,
    issue_invoice: bool = True,
    sale_date: datetime | None = None,
    user_id: str | None = None,
    reissued_from_sale_id: int | None = None,
) -> Sale:
    """
    Create and commit a sale.

    Returns the committed Sale. A repeated call with the same client_sale_id
    returns the sale that was already committed and writes nothing.

    Raises:
        ValidationError / InvalidCart / NotFound / InvalidCustomer before any
        write; InsufficientStock from inside the transaction (all writes
        rolled back).
    """
    client_sale_id = (client_sale_id or "").strip() or None
    existing = _existing_for_client_id(shop_id, client_sale_id)
    if existing is not None:
        return existing

    prepared = prepare_sale(
        shop_id=shop_id,
        items=items,
        payment_method=payment_method,
        customer_id=customer_id,
        paid_now=paid_now,
    )
    shop = prepared.shop
    note = (note or "").strip() or None
    pending = PendingEvents(shop_id=shop.id)

    def _op() -> Sale:
        begin_write_transaction()

        customer = None
        if prepared.customer is not None:
            # Re-read under lock; the balance we add to must be current
            customer = require_shop_customer(prepared.customer.id, shop.id, lock=True)

        occurred_at = sale_date or utcnow()
        business_date = business_date_for(shop, occurred_at)

        invoice_no = None
        if issue_invoice and shop.sales_invoice_enabled:
            invoice_no = allocate_invoice_number(shop, business_date)

        sale = Sale(
            shop_id=shop.id,
            customer_id=customer.id if customer else None,
            total_amount=prepared.total,
            paid_amount=prepared.paid_now,
            payment_method=prepared.payment_method,
            note=note,
            status=SALE_STATUS_ACTIVE,
            invoice_no=invoice_no,
            invoice_issued_at=occurred_at if invoice_no else None,
            client_sale_id=client_sale_id,
            reissued_from_sale_id=reissued_from_sale_id,
            sale_date=occurred_at,
            business_date=business_date,
            created_by_user_id=user_id,
        )
        db.session.add(sale)
        db.session.flush()

        for line in prepared.lines:
            product = prepared.products[line.product_id]
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                product_name_snapshot=product.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                cost_at_sale=product.buy_price,
                line_total=line_total(line.quantity, line.unit_price),
            ))

        cash_collected = prepared.paid_now
        if cash_collected > ZERO:
            reason = (
                f"Cash sale #{sale.id}"
                if prepared.payment_method == PAYMENT_METHOD_CASH
                else f"Partial cash received for due sale #{sale.id}"
            )
            append_cash_entry(
                shop_id=shop.id,
                entry_type=CASH_IN,
                amount=cash_collected,
                reason=reason,
                business_date=business_date,
                sale_id=sale.id,
            )

        # Lowest id first so concurrent sales lock rows in the same order
        sold = inventory_service.aggregate_quantities(
            (line.product_id, line.quantity) for line in prepared.lines
        )
        stock_touched = []
        for product_id in sorted(sold):
            if inventory_service.decrement_stock(prepared.products[product_id], sold[product_id]):
                stock_touched.append(product_id)

        if prepared.payment_method == PAYMENT_METHOD_DUE:
            post_sale_entry(
                customer,
                prepared.total,
                description=note or "Due sale",
                business_date=business_date,
                sale_id=sale.id,
            )
            post_payment_entry(
                customer,
                prepared.paid_now,
                description="Partial payment at sale",
                business_date=business_date,
                sale_id=sale.id,
            )

        db.session.commit()

        pending.add(SALE_COMMITTED, {
            "saleId": sale.id,
            "totalAmount": money_str(prepared.total),
            "paymentMethod": prepared.payment_method,
            "invoiceNo": invoice_no,
        })
        if cash_collected > ZERO:
            pending.add(CASH_UPDATED, {"amount": money_str(cash_collected), "entryType": CASH_IN})
        if stock_touched:
            pending.add(STOCK_UPDATED, {"productIds": stock_touched})
        if prepared.payment_method == PAYMENT_METHOD_DUE:
            pending.add(LEDGER_UPDATED, {"customerId": customer.id})
        return sale

    try:
        sale = run_with_retry(_op)
    except IntegrityError:
        # Lost a race on client_sale_id: the other request committed this sale
        existing = _existing_for_client_id(shop.id, client_sale_id)
        if existing is None:
            raise
        return existing

    current_app.logger.info(
        "Sale %s committed for shop %s: total=%s method=%s invoice=%s",
        sale.id, shop.id, money_str(sale.total_amount), sale.payment_method, sale.invoice_no,
    )
    publish_pending(pending)
    return sale


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(shop_id: int, sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None or sale.shop_id != shop_id:
        raise NotFound(f"Sale {sale_id} not found")
    return sale


def list_sales(shop_id: int, *, limit: int = 50, status: str | None = None) -> list[Sale]:
    q = db.session.query(Sale).filter(Sale.shop_id == shop_id)
    if status:
        q = q.filter(Sale.status == status.upper())
    return q.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(max(1, min(limit, 500))).all()


def get_sale_detail(shop_id: int, sale_id: int) -> dict:
    sale = get_sale(shop_id, sale_id)
    return {
        "sale": sale.to_dict(),
        "items": [item.to_dict() for item in sale.items],
        "returns": [ret.to_dict() for ret in sale.returns],
        "customer": sale.customer.to_dict() if sale.customer else None,
    }
