"""
Money and quantity normalisation.

Every amount that is persisted or compared passes through `to_money` first,
so two-decimal rounding is applied in exactly one place. Quantities are
decimal as well (1.5 kg of rice is a valid line).
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def _to_decimal(value, field: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float)):
        # str() first so 0.1 stays 0.1 instead of its binary expansion
        dec = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            dec = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return dec


def to_money(value, field: str = "amount") -> Decimal:
    """Round to two decimal places (half-up)."""
    return _to_decimal(value, field).quantize(CENT, rounding=ROUND_HALF_UP)


def to_quantity(value, field: str = "quantity") -> Decimal:
    """
    Quantities are stored with the same two-decimal scale as money.

    Unlike amounts they are never rounded: 1.255 kg is rejected, not sold as 1.26.
    """
    dec = _to_decimal(value, field)
    quantized = dec.quantize(CENT)
    if quantized != dec:
        raise ValidationError(f"{field} allows at most 2 decimal places")
    return quantized


def clamp_money(value, low, high) -> Decimal:
    amount = to_money(value)
    low = to_money(low)
    high = to_money(high)
    if amount < low:
        return low
    if amount > high:
        return high
    return amount


def line_total(quantity, unit_price) -> Decimal:
    return to_money(to_quantity(quantity) * to_money(unit_price, "unit_price"))


def money_str(value) -> str | None:
    """Canonical JSON form: "130.00"."""
    if value is None:
        return None
    return f"{to_money(value):.2f}"
