# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales API Routes

- POST /api/shops/<shop_id>/sales                     create a sale
- GET  /api/shops/<shop_id>/sales                     list sales, newest first
- GET  /api/shops/<shop_id>/sales/<sale_id>           sale with items and returns
- POST /api/shops/<shop_id>/sales/<sale_id>/void      void (idempotent)
- POST /api/shops/<shop_id>/sales/<sale_id>/reissue   void a due sale and recreate it

Money leaves the API as two-decimal strings ("130.00").
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..access import (
    PERM_CREATE_DUE_SALE,
    PERM_CREATE_SALE,
    PERM_ISSUE_SALES_INVOICE,
    PERM_REISSUE_SALE,
    PERM_VIEW_SALES,
    PERM_VOID_SALE,
)
from ..decorators import (
    error_response,
    has_permission,
    permission_denied,
    require_permission,
    require_shop_access,
)
from ..errors import ShopPosError
from ..models.sales import PAYMENT_METHOD_DUE
from ..services import reissue_service, sales_service, void_service
from ..validation import body_value, optional_datetime, optional_int, optional_list, optional_str


sales_bp = Blueprint("sales", __name__, url_prefix="/api/shops/<int:shop_id>/sales")


@sales_bp.post("")
@require_shop_access
@require_permission(PERM_CREATE_SALE)
def create_sale_route(shop_id: int):
    """
    Create and commit a sale.

    Request body:
    {
        "items": [{"productId": 1, "quantity": 2, "unitPrice": "50.00"}],
        "paymentMethod": "cash" | "due" | "card" | ...,
        "customerId": 7,         (required for due)
        "paidNow": "50.00",      (due only; clamped into [0, total])
        "note": "...",
        "clientSaleId": "uuid",  (optional idempotency key)
        "saleDate": "2026-03-01T09:15:00Z"  (optional; when the sale was rung up offline)
    }

    Returns:
        201: {"sale_id", "invoice_no", "sale"}
        400/404/409: typed error body
    """
    try:
        data = request.get_json(silent=True) or {}
        payment_method = sales_service.normalize_payment_method(
            optional_str(body_value(data, "payment_method", "paymentMethod"), "paymentMethod", 32)
        )
        if payment_method == PAYMENT_METHOD_DUE and not has_permission(PERM_CREATE_DUE_SALE):
            raise permission_denied(PERM_CREATE_DUE_SALE)

        sale = sales_service.create_sale(
            shop_id=shop_id,
            items=optional_list(body_value(data, "items"), "items") or [],
            payment_method=payment_method,
            customer_id=optional_int(body_value(data, "customer_id", "customerId"), "customerId"),
            paid_now=body_value(data, "paid_now", "paidNow"),
            note=optional_str(body_value(data, "note"), "note"),
            client_sale_id=optional_str(body_value(data, "client_sale_id", "clientSaleId"), "clientSaleId", 64),
            issue_invoice=has_permission(PERM_ISSUE_SALES_INVOICE),
            sale_date=optional_datetime(body_value(data, "sale_date", "saleDate"), "saleDate"),
            user_id=g.current_user,
        )
        return jsonify({
            "sale_id": sale.id,
            "invoice_no": sale.invoice_no,
            "sale": sale.to_dict(),
        }), 201

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_shop_access
@require_permission(PERM_VIEW_SALES)
def list_sales_route(shop_id: int):
    try:
        limit = optional_int(request.args.get("limit"), "limit") or 50
        sales = sales_service.list_sales(shop_id, limit=limit, status=request.args.get("status"))
        return jsonify({"sales": [s.to_dict() for s in sales]}), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_shop_access
@require_permission(PERM_VIEW_SALES)
def get_sale_route(shop_id: int, sale_id: int):
    try:
        return jsonify(sales_service.get_sale_detail(shop_id, sale_id)), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/void")
@require_shop_access
@require_permission(PERM_VOID_SALE)
def void_sale_route(shop_id: int, sale_id: int):
    """
    Void a sale. Calling it again answers already_voided=true and writes nothing.

    Request body: {"reason": "..."} (optional)
    """
    try:
        data = request.get_json(silent=True) or {}
        result = void_service.void_sale(
            shop_id=shop_id,
            sale_id=sale_id,
            reason=optional_str(body_value(data, "reason"), "reason"),
            user_id=g.current_user,
        )
        return jsonify({
            "already_voided": result.already_voided,
            "sale": result.sale.to_dict(),
        }), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/reissue")
@require_shop_access
@require_permission(PERM_REISSUE_SALE)
def reissue_sale_route(shop_id: int, sale_id: int):
    """
    Void a due sale and create its replacement.

    Request body: {"customerId", "items", "paidNow"?, "note"?, "reason"?}

    Returns:
        200: {"old_sale_id", "sale_id", "invoice_no"}
        409 compound_operation_partial_failure: the original was voided but
            the replacement was not created (details.voided_sale_id)
    """
    try:
        data = request.get_json(silent=True) or {}
        result = reissue_service.reissue_due_sale(
            shop_id=shop_id,
            original_sale_id=sale_id,
            customer_id=optional_int(body_value(data, "customer_id", "customerId"), "customerId"),
            items=optional_list(body_value(data, "items"), "items") or [],
            paid_now=body_value(data, "paid_now", "paidNow"),
            note=optional_str(body_value(data, "note"), "note"),
            reason=optional_str(body_value(data, "reason"), "reason"),
            issue_invoice=has_permission(PERM_ISSUE_SALES_INVOICE),
            user_id=g.current_user,
        )
        return jsonify({
            "old_sale_id": result.old_sale.id,
            "sale_id": result.sale.id,
            "invoice_no": result.sale.invoice_no,
        }), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reissue sale")
        return jsonify({"error": "Internal server error"}), 500
