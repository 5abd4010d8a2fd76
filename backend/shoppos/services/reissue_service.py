"""
Reissue of a due sale (two-step saga).

Step 1 voids the original sale; step 2 creates the replacement sale for
the same customer. Each step commits on its own, so there is a window in
which the original is voided and no replacement exists. When step 2
fails, the failure is reported as CompoundOperationPartialFailure naming
the voided sale; nothing is retried or rolled back automatically.

Everything that can be checked up front (sale state, customer, cart,
prices) is checked before step 1 so that only store-time failures such as
a stock race can leave the saga half done.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import CompoundOperationPartialFailure, ShopPosError, ValidationError
from ..models import Sale
from ..models.sales import PAYMENT_METHOD_DUE, SALE_STATUS_VOIDED
from .sales_service import create_sale, get_sale, prepare_sale
from .void_service import completed_return_count, void_sale


STEP_VOID = "void"
STEP_RECREATE = "recreate"


@dataclass(frozen=True)
class ReissueResult:
    old_sale: Sale
    sale: Sale


def reissue_due_sale(
    *,
    shop_id: int,
    original_sale_id: int,
    customer_id: int,
    items,
    paid_now=None,
    note: str | None = None,
    reason: str | None = None,
    issue_invoice: bool = True,
    user_id: str | None = None,
) -> ReissueResult:
    original = get_sale(shop_id, original_sale_id)
    if original.payment_method != PAYMENT_METHOD_DUE:
        raise ValidationError("Only due sales can be reissued", details={"sale_id": original.id})
    if original.status == SALE_STATUS_VOIDED:
        raise ValidationError("Sale is already voided", details={"sale_id": original.id})
    if completed_return_count(original.id) > 0:
        raise ValidationError("Sale with returns cannot be reissued", details={"sale_id": original.id})

    # Validate the replacement before anything is written
    prepare_sale(
        shop_id=shop_id,
        items=items,
        payment_method=PAYMENT_METHOD_DUE,
        customer_id=customer_id,
        paid_now=paid_now,
    )

    void_reason = (reason or "").strip() or f"Reissued sale #{original.id}"
    voided = void_sale(shop_id=shop_id, sale_id=original.id, reason=void_reason, user_id=user_id)
    if voided.already_voided:
        # A concurrent void won; this request must not create a replacement
        raise ValidationError("Sale is already voided", details={"sale_id": original.id})

    try:
        sale = create_sale(
            shop_id=shop_id,
            items=items,
            payment_method=PAYMENT_METHOD_DUE,
            customer_id=customer_id,
            paid_now=paid_now,
            note=note if note is not None else original.note,
            issue_invoice=issue_invoice,
            user_id=user_id,
            reissued_from_sale_id=original.id,
        )
    except Exception as exc:
        current_app.logger.error(
            "Reissue of sale %s (shop %s) voided the original but failed to recreate: %s",
            original.id, shop_id, exc.__class__.__name__,
            exc_info=not isinstance(exc, ShopPosError),
        )
        raise CompoundOperationPartialFailure(
            "Original sale was voided but the replacement sale could not be created",
            completed_steps=[STEP_VOID],
            failed_step=STEP_RECREATE,
            cause=exc,
            details={"voided_sale_id": original.id},
        ) from exc

    current_app.logger.info("Sale %s reissued as sale %s (shop %s)", original.id, sale.id, shop_id)
    return ReissueResult(old_sale=voided.sale, sale=sale)
