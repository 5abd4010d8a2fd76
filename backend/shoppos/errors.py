"""
Typed error kinds raised by the sales/ledger services.

Callers branch on the class (or on `kind` once serialised), never on the
message text. `details` is JSON-safe context for the UI, e.g. which
product ran out of stock.
"""

from __future__ import annotations


class ShopPosError(Exception):
    """Base class; never raised directly."""

    kind = "error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class ValidationError(ShopPosError):
    """Malformed input: empty cart, bad quantity, unknown payment method."""

    kind = "validation_error"


class InvalidCart(ValidationError):
    kind = "invalid_cart"


class NotFound(ShopPosError):
    kind = "not_found"
    http_status = 404


class AccessDenied(ShopPosError):
    kind = "access_denied"
    http_status = 403


class InsufficientStock(ShopPosError):
    kind = "insufficient_stock"
    http_status = 409

    def __init__(self, product_name: str, *, product_id: int, requested, available=None):
        super().__init__(
            f'Insufficient stock for product "{product_name}"',
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested_quantity": str(requested),
                "available_quantity": str(available) if available is not None else None,
            },
        )
        self.product_id = product_id
        self.product_name = product_name


class ExceedsRemainingQuantity(ShopPosError):
    kind = "exceeds_remaining_quantity"
    http_status = 409


class InvalidCustomer(ShopPosError):
    kind = "invalid_customer"


class VoidedSaleReturnRejected(ShopPosError):
    kind = "voided_sale_return_rejected"
    http_status = 409


class DueAlreadySettled(ShopPosError):
    kind = "due_already_settled"
    http_status = 409


class ReturnHistoryBlocksVoid(ShopPosError):
    kind = "return_history_blocks_void"
    http_status = 409


class CompoundOperationPartialFailure(ShopPosError):
    """
    A multi-step operation stopped after some steps committed.

    The committed steps are NOT rolled back; the caller has to act on
    `completed_steps` (e.g. recreate the sale by hand).
    """

    kind = "compound_operation_partial_failure"
    http_status = 409

    def __init__(
        self,
        message: str,
        *,
        completed_steps: list[str],
        failed_step: str,
        cause: Exception,
        details: dict | None = None,
    ):
        merged = dict(details or {})
        merged.update({
            "completed_steps": list(completed_steps),
            "failed_step": failed_step,
            "cause": _describe(cause),
        })
        super().__init__(message, details=merged)
        self.completed_steps = list(completed_steps)
        self.failed_step = failed_step
        self.cause = cause


def _describe(exc: Exception) -> dict:
    if isinstance(exc, ShopPosError):
        return {"kind": exc.kind, "error": exc.message, "details": exc.details}
    # Store/driver errors are not echoed back to clients
    return {"kind": "internal_error", "error": "Internal server error", "details": {}}
