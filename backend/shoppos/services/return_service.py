"""
Return / Exchange Settlement Engine

A return gives back some quantity of a sale's line items; an exchange also
hands out replacement products. The difference between the two values is
the net amount, settled against the customer's due balance and the cash
drawer.

DESIGN PRINCIPLES:
- Returned lines are priced at the ORIGINAL unit price of the sale item,
  never the current catalog price.
- Cumulative returned quantity per sale item never exceeds the sold
  quantity; only `completed` returns count.
- The settlement split is computed by a pure function (compute_settlement)
  and then persisted as-is.
- Restock, exchange stock consumption, numbering, cash and ledger entries
  all commit together or not at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import ExceedsRemainingQuantity, NotFound, ValidationError, VoidedSaleReturnRejected
from ..models import Sale, SaleReturn, SaleReturnExchangeItem, SaleReturnItem
from ..models.cash import CASH_IN, CASH_OUT
from ..models.returns import RETURN_STATUS_COMPLETED, RETURN_TYPE_EXCHANGE, RETURN_TYPE_REFUND
from ..models.sales import PAYMENT_METHOD_CASH, PAYMENT_METHOD_DUE, SALE_STATUS_VOIDED
from ..money import ZERO, line_total, money_str, to_money, to_quantity
from . import inventory_service
from .cash_service import append_cash_entry
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .customer_ledger_service import lock_customer, post_payment_entry, post_sale_entry
from .notifier import (
    CASH_UPDATED,
    LEDGER_UPDATED,
    SALE_RETURNED,
    STOCK_UPDATED,
    PendingEvents,
    publish_pending,
)
from .sales_service import load_shop_products
from .sequence_service import allocate_return_number
from .shop_service import business_date_for, get_shop


RETURN_TYPES = (RETURN_TYPE_REFUND, RETURN_TYPE_EXCHANGE)
SETTLEMENT_MODES = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_DUE)


@dataclass(frozen=True)
class ReturnLine:
    sale_item_id: int
    quantity: Decimal


@dataclass(frozen=True)
class ExchangeLine:
    product_id: int
    quantity: Decimal
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class Settlement:
    settlement_mode: str
    subtotal: Decimal
    exchange_subtotal: Decimal
    net_amount: Decimal
    refund_amount: Decimal = ZERO
    additional_cash_in_amount: Decimal = ZERO
    due_adjustment_amount: Decimal = ZERO
    additional_due_amount: Decimal = ZERO


# =============================================================================
# SETTLEMENT ARITHMETIC (pure)
# =============================================================================

def compute_settlement(
    *,
    returned_subtotal,
    exchange_subtotal,
    settlement_mode: str,
    sale_is_due: bool,
    has_customer: bool,
    customer_due=ZERO,
) -> Settlement:
    """
    Split the net amount of a return into cash and due movements.

    net < 0 (shop owes customer): reduce the linked customer's due first,
    refund the rest in cash.
    net > 0 (customer owes shop): add to the customer's due when settling on
    due (or the sale was a due sale) and a customer is linked; otherwise
    collect cash.
    """
    subtotal = to_money(returned_subtotal)
    exchange = to_money(exchange_subtotal)
    net = to_money(exchange - subtotal)

    refund = cash_in = due_adjustment = additional_due = ZERO

    if net < ZERO:
        owed = -net
        if has_customer:
            due_adjustment = min(owed, max(ZERO, to_money(customer_due)))
        refund = owed - due_adjustment
    elif net > ZERO:
        if has_customer and (settlement_mode == PAYMENT_METHOD_DUE or sale_is_due):
            additional_due = net
        else:
            cash_in = net

    return Settlement(
        settlement_mode=settlement_mode,
        subtotal=subtotal,
        exchange_subtotal=exchange,
        net_amount=net,
        refund_amount=refund,
        additional_cash_in_amount=cash_in,
        due_adjustment_amount=due_adjustment,
        additional_due_amount=additional_due,
    )


# =============================================================================
# INPUT PARSING
# =============================================================================

def _first(raw: dict, *keys):
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _as_id(value, label: str) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{label} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be an integer")


def parse_return_lines(items) -> list[ReturnLine]:
    if not items:
        raise ValidationError("Select at least one item to return")
    lines = []
    for index, raw in enumerate(items):
        if isinstance(raw, ReturnLine):
            line = raw
        elif isinstance(raw, dict):
            line = ReturnLine(
                sale_item_id=_as_id(_first(raw, "sale_item_id", "saleItemId"), f"Item {index + 1} saleItemId"),
                quantity=to_quantity(_first(raw, "quantity", "qty"), f"Item {index + 1} quantity"),
            )
        else:
            raise ValidationError(f"Item {index + 1} is malformed")
        if line.quantity <= ZERO:
            raise ValidationError(f"Item {index + 1}: quantity must be positive")
        lines.append(line)
    return lines


def parse_exchange_lines(items) -> list[ExchangeLine]:
    lines = []
    for index, raw in enumerate(items or []):
        if isinstance(raw, ExchangeLine):
            line = raw
        elif isinstance(raw, dict):
            price = _first(raw, "unit_price", "unitPrice")
            line = ExchangeLine(
                product_id=_as_id(_first(raw, "product_id", "productId"), f"Exchange item {index + 1} productId"),
                quantity=to_quantity(_first(raw, "quantity", "qty"), f"Exchange item {index + 1} quantity"),
                unit_price=to_money(price, f"Exchange item {index + 1} unitPrice") if price is not None else None,
            )
        else:
            raise ValidationError(f"Exchange item {index + 1} is malformed")
        if line.quantity <= ZERO:
            raise ValidationError(f"Exchange item {index + 1}: quantity must be positive")
        if line.unit_price is not None and line.unit_price < ZERO:
            raise ValidationError(f"Exchange item {index + 1}: unitPrice cannot be negative")
        lines.append(line)
    return lines


# =============================================================================
# RETURNABLE QUANTITIES
# =============================================================================

def returned_quantities(sale_id: int) -> dict[int, Decimal]:
    """Completed-return quantity per sale item of one sale."""
    rows = (
        db.session.query(SaleReturnItem.sale_item_id, func.sum(SaleReturnItem.quantity))
        .join(SaleReturn, SaleReturn.id == SaleReturnItem.sale_return_id)
        .filter(
            SaleReturn.sale_id == sale_id,
            SaleReturn.status == RETURN_STATUS_COMPLETED,
        )
        .group_by(SaleReturnItem.sale_item_id)
        .all()
    )
    return {sale_item_id: to_quantity(total or 0) for sale_item_id, total in rows}


def _get_shop_sale(shop_id: int, sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None or sale.shop_id != shop_id:
        raise NotFound(f"Sale {sale_id} not found")
    return sale


def get_returnable_items(shop_id: int, sale_id: int) -> list[dict]:
    sale = _get_shop_sale(shop_id, sale_id)
    returned = returned_quantities(sale.id)
    rows = []
    for item in sale.items:
        sold = to_quantity(item.quantity)
        already = returned.get(item.id, ZERO)
        rows.append({
            "sale_item_id": item.id,
            "product_id": item.product_id,
            "product_name": item.product_name_snapshot,
            "unit_price": money_str(item.unit_price),
            "sold_quantity": money_str(sold),
            "returned_quantity": money_str(already),
            "remaining_quantity": money_str(max(ZERO, sold - already)),
        })
    return rows


# =============================================================================
# PROCESS RETURN
# =============================================================================

def process_sale_return(
    *,
    shop_id: int,
    sale_id: int,
    return_type: str,
    returned_items,
    exchange_items=None,
    settlement_mode: str | None = None,
    reason: str | None = None,
    note: str | None = None,
    user_id: str | None = None,
) -> SaleReturn:
    """
    Settle a refund or exchange against a sale and commit it.

    Raises:
        ValidationError: bad type/mode, malformed lines, refund with
            exchange lines or exchange without them
        NotFound: sale, sale item or exchange product missing
        VoidedSaleReturnRejected: the sale is voided
        ExceedsRemainingQuantity: more than sold minus already returned
        InsufficientStock: an exchanged product ran out (nothing written)
    """
    kind = (return_type or "").strip().lower()
    if kind not in RETURN_TYPES:
        raise ValidationError("type must be 'refund' or 'exchange'")

    mode = (settlement_mode or "").strip().lower() or None
    if mode is not None and mode not in SETTLEMENT_MODES:
        raise ValidationError("settlementMode must be 'cash' or 'due'")

    lines = parse_return_lines(returned_items)
    exchange_lines = parse_exchange_lines(exchange_items)
    if kind == RETURN_TYPE_REFUND and exchange_lines:
        raise ValidationError("A refund cannot include exchange items")
    if kind == RETURN_TYPE_EXCHANGE and not exchange_lines:
        raise ValidationError("An exchange needs at least one exchange item")

    shop = get_shop(shop_id)
    sale = _get_shop_sale(shop.id, sale_id)
    if sale.status == SALE_STATUS_VOIDED:
        raise VoidedSaleReturnRejected("Voided sale cannot be returned", details={"sale_id": sale.id})

    exchange_products = load_shop_products(shop.id, (line.product_id for line in exchange_lines))
    reason = (reason or "").strip() or None
    note = (note or "").strip() or None
    pending = PendingEvents(shop_id=shop.id)

    def _op() -> SaleReturn:
        begin_write_transaction()

        locked = (
            lock_for_update(db.session.query(Sale).filter_by(id=sale.id))
            .populate_existing()
            .first()
        )
        # A void may have committed since the pre-check
        if locked.status == SALE_STATUS_VOIDED:
            raise VoidedSaleReturnRejected("Voided sale cannot be returned", details={"sale_id": locked.id})

        items_by_id = {item.id: item for item in locked.items}
        requested: dict[int, Decimal] = {}
        for line in lines:
            if line.sale_item_id not in items_by_id:
                raise NotFound(
                    f"Sale item {line.sale_item_id} not found on sale {locked.id}",
                    details={"sale_item_id": line.sale_item_id},
                )
            requested[line.sale_item_id] = requested.get(line.sale_item_id, ZERO) + line.quantity

        already = returned_quantities(locked.id)
        for sale_item_id, qty in requested.items():
            item = items_by_id[sale_item_id]
            remaining = to_quantity(item.quantity) - already.get(sale_item_id, ZERO)
            if qty > remaining:
                raise ExceedsRemainingQuantity(
                    f'Return quantity exceeds remaining for "{item.product_name_snapshot}"',
                    details={
                        "sale_item_id": sale_item_id,
                        "requested_quantity": money_str(qty),
                        "remaining_quantity": money_str(max(ZERO, remaining)),
                    },
                )

        returned_subtotal = sum(
            (line_total(qty, items_by_id[sid].unit_price) for sid, qty in requested.items()),
            ZERO,
        )
        exchange_prices = [
            (line, line.unit_price if line.unit_price is not None
             else to_money(exchange_products[line.product_id].sell_price))
            for line in exchange_lines
        ]
        exchange_subtotal = sum(
            (line_total(line.quantity, price) for line, price in exchange_prices),
            ZERO,
        )

        customer = lock_customer(locked.customer_id) if locked.customer_id else None
        effective_mode = mode or (PAYMENT_METHOD_DUE if locked.is_due else PAYMENT_METHOD_CASH)
        settlement = compute_settlement(
            returned_subtotal=returned_subtotal,
            exchange_subtotal=exchange_subtotal,
            settlement_mode=effective_mode,
            sale_is_due=locked.is_due,
            has_customer=customer is not None,
            customer_due=customer.total_due if customer is not None else ZERO,
        )

        business_date = business_date_for(shop)
        return_no = allocate_return_number(shop, business_date)

        sale_return = SaleReturn(
            shop_id=shop.id,
            sale_id=locked.id,
            return_no=return_no,
            type=kind,
            status=RETURN_STATUS_COMPLETED,
            settlement_mode=settlement.settlement_mode,
            reason=reason,
            note=note,
            subtotal=settlement.subtotal,
            exchange_subtotal=settlement.exchange_subtotal,
            net_amount=settlement.net_amount,
            refund_amount=settlement.refund_amount,
            additional_cash_in_amount=settlement.additional_cash_in_amount,
            due_adjustment_amount=settlement.due_adjustment_amount,
            additional_due_amount=settlement.additional_due_amount,
            business_date=business_date,
            created_by_user_id=user_id,
        )
        db.session.add(sale_return)
        db.session.flush()

        for sale_item_id, qty in requested.items():
            item = items_by_id[sale_item_id]
            db.session.add(SaleReturnItem(
                sale_return_id=sale_return.id,
                sale_item_id=item.id,
                product_id=item.product_id,
                product_name_snapshot=item.product_name_snapshot,
                quantity=qty,
                unit_price=item.unit_price,
                line_total=line_total(qty, item.unit_price),
                cost_at_return=item.cost_at_sale,
            ))
        for line, price in exchange_prices:
            product = exchange_products[line.product_id]
            db.session.add(SaleReturnExchangeItem(
                sale_return_id=sale_return.id,
                product_id=product.id,
                product_name_snapshot=product.name,
                quantity=line.quantity,
                unit_price=price,
                line_total=line_total(line.quantity, price),
                cost_at_return=product.buy_price,
            ))

        # Restock first so an exchange for the same product can use it
        stock_touched = set()
        restocked = inventory_service.aggregate_quantities(
            (items_by_id[sid].product_id, qty) for sid, qty in requested.items()
        )
        sold_products = {item.product_id: item.product for item in items_by_id.values()}
        for product_id in sorted(restocked):
            if inventory_service.restore_stock(sold_products[product_id], restocked[product_id]):
                stock_touched.add(product_id)

        consumed = inventory_service.aggregate_quantities(
            (line.product_id, line.quantity) for line in exchange_lines
        )
        for product_id in sorted(consumed):
            if inventory_service.decrement_stock(exchange_products[product_id], consumed[product_id]):
                stock_touched.add(product_id)

        cash_moved = False
        if settlement.refund_amount > ZERO:
            append_cash_entry(
                shop_id=shop.id,
                entry_type=CASH_OUT,
                amount=settlement.refund_amount,
                reason=f"Refund for return {return_no} (sale #{locked.id})",
                business_date=business_date,
                sale_id=locked.id,
                sale_return_id=sale_return.id,
            )
            cash_moved = True
        if settlement.additional_cash_in_amount > ZERO:
            append_cash_entry(
                shop_id=shop.id,
                entry_type=CASH_IN,
                amount=settlement.additional_cash_in_amount,
                reason=f"Exchange difference for return {return_no} (sale #{locked.id})",
                business_date=business_date,
                sale_id=locked.id,
                sale_return_id=sale_return.id,
            )
            cash_moved = True

        ledger_moved = False
        if settlement.due_adjustment_amount > ZERO:
            post_payment_entry(
                customer,
                settlement.due_adjustment_amount,
                description=f"Return adjustment {return_no}",
                business_date=business_date,
                sale_id=locked.id,
                sale_return_id=sale_return.id,
                mark_payment=False,
            )
            ledger_moved = True
        if settlement.additional_due_amount > ZERO:
            post_sale_entry(
                customer,
                settlement.additional_due_amount,
                description=f"Exchange due {return_no}",
                business_date=business_date,
                sale_id=locked.id,
                sale_return_id=sale_return.id,
            )
            ledger_moved = True

        db.session.commit()

        pending.add(SALE_RETURNED, {
            "saleId": locked.id,
            "returnId": sale_return.id,
            "returnNo": return_no,
            "netAmount": money_str(settlement.net_amount),
        })
        if cash_moved:
            pending.add(CASH_UPDATED, {"saleReturnId": sale_return.id})
        if stock_touched:
            pending.add(STOCK_UPDATED, {"productIds": sorted(stock_touched)})
        if ledger_moved:
            pending.add(LEDGER_UPDATED, {"customerId": customer.id})
        return sale_return

    sale_return = run_with_retry(_op)
    current_app.logger.info(
        "Sale return %s settled for sale %s (shop %s): net=%s refund=%s due_adjustment=%s",
        sale_return.return_no, sale_return.sale_id, shop.id,
        money_str(sale_return.net_amount), money_str(sale_return.refund_amount),
        money_str(sale_return.due_adjustment_amount),
    )
    publish_pending(pending)
    return sale_return


# =============================================================================
# QUERIES
# =============================================================================

def get_sale_return(shop_id: int, return_id: int) -> SaleReturn:
    sale_return = db.session.get(SaleReturn, return_id)
    if sale_return is None or sale_return.shop_id != shop_id:
        raise NotFound(f"Sale return {return_id} not found")
    return sale_return


def list_sale_returns(shop_id: int, *, sale_id: int | None = None, limit: int = 50) -> list[SaleReturn]:
    q = db.session.query(SaleReturn).filter(SaleReturn.shop_id == shop_id)
    if sale_id is not None:
        q = q.filter(SaleReturn.sale_id == sale_id)
    return q.order_by(SaleReturn.created_at.desc(), SaleReturn.id.desc()).limit(max(1, min(limit, 500))).all()


def get_sale_return_detail(shop_id: int, return_id: int) -> dict:
    sale_return = get_sale_return(shop_id, return_id)
    return {
        "sale_return": sale_return.to_dict(),
        "items": [item.to_dict() for item in sale_return.items],
        "exchange_items": [item.to_dict() for item in sale_return.exchange_items],
    }
