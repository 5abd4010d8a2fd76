# Overview: Pluggable authentication/authorization collaborator used by the API decorators.

"""
The sales core does not authenticate anyone. An embedding application
puts its own AccessPolicy on app.extensions["shoppos"]["access_policy"];
the default one trusts the X-User-Id header and allows every action.
"""

from __future__ import annotations

from flask import request

from .models import Shop
from .services.shop_service import get_shop


PERM_CREATE_SALE = "create_sale"
PERM_CREATE_DUE_SALE = "create_due_sale"
PERM_ISSUE_SALES_INVOICE = "issue_sales_invoice"
PERM_CREATE_SALE_RETURN = "create_sale_return"
PERM_VOID_SALE = "void_sale"
PERM_REISSUE_SALE = "reissue_sale"
PERM_VIEW_SALES = "view_sales"
PERM_MANAGE_CUSTOMERS = "manage_customers"
PERM_CREATE_CASH_ENTRY = "create_cash_entry"
PERM_VIEW_CASHBOOK = "view_cashbook"


class AccessPolicy:
    """Default policy: header identity, every action allowed."""

    user_header = "X-User-Id"

    def current_user(self) -> str | None:
        value = (request.headers.get(self.user_header) or "").strip()
        return value or None

    def has_permission(self, user: str | None, action: str) -> bool:
        return True

    def require_shop(self, shop_id: int, user: str | None) -> Shop:
        """Return the shop or raise NotFound / AccessDenied."""
        return get_shop(shop_id)
