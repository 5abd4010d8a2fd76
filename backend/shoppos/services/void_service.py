"""
Void / Reversal Engine

A void takes a committed sale back out of the books: stock goes back on
the shelf, collected cash leaves the drawer and the unpaid part of a due
sale is written off the customer's balance.

IDEMPOTENCY:
The first statement of the transaction is a conditional claim
(UPDATE sales SET status='VOIDED' WHERE id=? AND status!='VOIDED').
Only the caller whose claim affects a row performs the reversal; everyone
else gets already_voided=True and writes nothing.

POLICY:
A sale with completed returns is never voided (ReturnHistoryBlocksVoid).
A due sale is only voided while its outstanding amount is still fully
owed (DueAlreadySettled otherwise). Either refusal rolls the claim back.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..errors import DueAlreadySettled, NotFound, ReturnHistoryBlocksVoid
from ..models import Sale, SaleReturn
from ..models.cash import CASH_OUT
from ..models.returns import RETURN_STATUS_COMPLETED
from ..models.sales import PAYMENT_METHOD_CASH, SALE_STATUS_VOIDED
from ..money import ZERO, money_str, to_money
from ..time_utils import utcnow
from . import inventory_service
from .cash_service import append_cash_entry
from .concurrency import begin_write_transaction, run_with_retry
from .customer_ledger_service import lock_customer, post_payment_entry
from .notifier import (
    CASH_UPDATED,
    LEDGER_UPDATED,
    SALE_VOIDED,
    STOCK_UPDATED,
    PendingEvents,
    publish_pending,
)
from .shop_service import business_date_for, get_shop


@dataclass(frozen=True)
class VoidResult:
    sale: Sale
    already_voided: bool


def completed_return_count(sale_id: int) -> int:
    return (
        db.session.query(func.count(SaleReturn.id))
        .filter(SaleReturn.sale_id == sale_id, SaleReturn.status == RETURN_STATUS_COMPLETED)
        .scalar()
    ) or 0


def void_sale(
    *,
    shop_id: int,
    sale_id: int,
    reason: str | None = None,
    user_id: str | None = None,
) -> VoidResult:
    """
    Void a sale and reverse its stock, cash and due effects.

    Returns VoidResult(already_voided=True) without writing anything when
    the sale was voided before (or by a concurrent caller).

    Raises:
        NotFound: sale missing or owned by another shop
        ReturnHistoryBlocksVoid: sale has completed returns
        DueAlreadySettled: customer's due is below the sale's outstanding
    """
    shop = get_shop(shop_id)
    sale = db.session.get(Sale, sale_id)
    if sale is None or sale.shop_id != shop.id:
        raise NotFound(f"Sale {sale_id} not found")

    reason = (reason or "").strip() or None
    pending = PendingEvents(shop_id=shop.id)

    def _op() -> bool:
        begin_write_transaction()

        voided_at = utcnow()
        claim = db.session.execute(
            update(Sale)
            .where(
                Sale.id == sale.id,
                Sale.shop_id == shop.id,
                Sale.status != SALE_STATUS_VOIDED,
            )
            .values(
                status=SALE_STATUS_VOIDED,
                void_reason=reason,
                voided_at=voided_at,
                voided_by_user_id=user_id,
            )
            .execution_options(synchronize_session=False)
        )
        if claim.rowcount != 1:
            db.session.rollback()
            return True

        if completed_return_count(sale.id) > 0:
            raise ReturnHistoryBlocksVoid(
                "Sale has completed returns and cannot be voided",
                details={"sale_id": sale.id},
            )

        current = db.session.query(Sale).filter_by(id=sale.id).populate_existing().one()
        business_date = business_date_for(shop)
        total = to_money(current.total_amount)
        paid = to_money(current.paid_amount or 0)

        customer = None
        if current.is_due:
            outstanding = max(ZERO, total - paid)
            customer = lock_customer(current.customer_id) if current.customer_id else None
            available = to_money(customer.total_due) if customer is not None else ZERO
            if outstanding > ZERO and available < outstanding:
                raise DueAlreadySettled(
                    "Due for this sale has already been paid or adjusted",
                    details={
                        "sale_id": current.id,
                        "outstanding_due": money_str(outstanding),
                        "customer_total_due": money_str(available),
                    },
                )
            post_payment_entry(
                customer,
                outstanding,
                description=f"Void sale #{current.id}",
                business_date=business_date,
                sale_id=current.id,
                mark_payment=False,
            )
            cash_back = paid
            cash_reason = f"Void partial cash for due sale #{current.id}"
        elif current.payment_method == PAYMENT_METHOD_CASH:
            cash_back = total
            cash_reason = f"Void cash sale #{current.id}"
        else:
            cash_back = paid
            cash_reason = f"Void sale #{current.id}"

        if cash_back > ZERO:
            append_cash_entry(
                shop_id=shop.id,
                entry_type=CASH_OUT,
                amount=cash_back,
                reason=cash_reason,
                business_date=business_date,
                sale_id=current.id,
            )

        restored = inventory_service.aggregate_quantities(
            (item.product_id, item.quantity) for item in current.items
        )
        products = {item.product_id: item.product for item in current.items}
        stock_touched = []
        for product_id in sorted(restored):
            if inventory_service.restore_stock(products[product_id], restored[product_id]):
                stock_touched.append(product_id)

        db.session.commit()

        pending.add(SALE_VOIDED, {"saleId": current.id, "reason": reason})
        if cash_back > ZERO:
            pending.add(CASH_UPDATED, {"amount": money_str(cash_back), "entryType": CASH_OUT})
        if stock_touched:
            pending.add(STOCK_UPDATED, {"productIds": stock_touched})
        if customer is not None:
            pending.add(LEDGER_UPDATED, {"customerId": customer.id})
        return False

    already_voided = run_with_retry(_op)
    sale = db.session.get(Sale, sale.id)
    if already_voided:
        current_app.logger.info("Sale %s already voided (shop %s)", sale.id, shop.id)
    else:
        current_app.logger.info("Sale %s voided for shop %s: reason=%s", sale.id, shop.id, reason)
        publish_pending(pending)
    return VoidResult(sale=sale, already_voided=already_voided)
