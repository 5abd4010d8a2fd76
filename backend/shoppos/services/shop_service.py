# Overview: Shop lookup, creation and business-date resolution.

from __future__ import annotations

from datetime import date, datetime

from flask import current_app

from ..extensions import db
from ..errors import NotFound, ValidationError
from ..models import Shop
from ..time_utils import resolve_business_date
from .sequence_service import sanitize_prefix


def get_shop(shop_id: int) -> Shop:
    shop = db.session.get(Shop, shop_id)
    if shop is None:
        raise NotFound(f"Shop {shop_id} not found")
    return shop


def shop_timezone(shop: Shop) -> str:
    return shop.timezone or current_app.config["DEFAULT_SHOP_TIMEZONE"]


def business_date_for(shop: Shop, moment: datetime | None = None) -> date:
    """
    The shop's trading day for `moment`.

    Delegates to the resolver registered on the app so an embedding
    application can replace the timezone rule.
    """
    resolver = current_app.extensions["shoppos"]["business_date_resolver"]
    return resolver(moment, shop_timezone(shop))


def create_shop(
    *,
    name: str,
    owner_user_id: str | None = None,
    timezone: str | None = None,
    sales_invoice_enabled: bool = False,
    sales_invoice_prefix: str | None = None,
    sale_return_prefix: str | None = None,
) -> Shop:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Shop name is required")
    if timezone:
        # Fail at creation rather than at the first sale
        try:
            resolve_business_date(None, timezone)
        except ValueError as exc:
            raise ValidationError(str(exc))

    shop = Shop(
        name=name,
        owner_user_id=owner_user_id,
        timezone=timezone,
        sales_invoice_enabled=bool(sales_invoice_enabled),
        sales_invoice_prefix=sanitize_prefix(sales_invoice_prefix),
        sale_return_prefix=sanitize_prefix(sale_return_prefix),
    )
    db.session.add(shop)
    db.session.commit()
    return shop
