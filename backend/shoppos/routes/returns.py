# Overview: Flask API routes for sale returns and exchanges; parses input and returns JSON responses.

"""
Return Processing API Routes

- POST /api/shops/<shop_id>/sales/<sale_id>/returns      settle a refund or exchange
- GET  /api/shops/<shop_id>/sales/<sale_id>/returnable   remaining quantity per sale item
- GET  /api/shops/<shop_id>/returns                      list returns (?sale_id=)
- GET  /api/shops/<shop_id>/returns/<return_id>          return with its lines
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..access import PERM_CREATE_SALE_RETURN, PERM_VIEW_SALES
from ..decorators import error_response, require_permission, require_shop_access
from ..errors import ShopPosError
from ..services import return_service
from ..validation import body_value, optional_int, optional_list, optional_str


returns_bp = Blueprint("returns", __name__, url_prefix="/api/shops/<int:shop_id>")


@returns_bp.post("/sales/<int:sale_id>/returns")
@require_shop_access
@require_permission(PERM_CREATE_SALE_RETURN)
def create_sale_return_route(shop_id: int, sale_id: int):
    """
    Settle a return against a sale.

    Request body:
    {
        "type": "refund" | "exchange",
        "items": [{"saleItemId": 10, "quantity": 1}],
        "exchangeItems": [{"productId": 3, "quantity": 1, "unitPrice": "50.00"}],
        "settlementMode": "cash" | "due",   (optional)
        "reason": "...", "note": "..."
    }

    Returns:
        201: return_id, return_no and the settlement amounts
    """
    try:
        data = request.get_json(silent=True) or {}
        sale_return = return_service.process_sale_return(
            shop_id=shop_id,
            sale_id=sale_id,
            return_type=optional_str(body_value(data, "type"), "type", 16),
            returned_items=optional_list(body_value(data, "items", "returned_items", "returnedItems"), "items"),
            exchange_items=optional_list(body_value(data, "exchange_items", "exchangeItems"), "exchangeItems"),
            settlement_mode=optional_str(body_value(data, "settlement_mode", "settlementMode"), "settlementMode", 16),
            reason=optional_str(body_value(data, "reason"), "reason"),
            note=optional_str(body_value(data, "note"), "note"),
            user_id=g.current_user,
        )
        body = sale_return.to_dict()
        body["return_id"] = sale_return.id
        return jsonify(body), 201

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to process sale return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/sales/<int:sale_id>/returnable")
@require_shop_access
@require_permission(PERM_VIEW_SALES)
def returnable_items_route(shop_id: int, sale_id: int):
    try:
        items = return_service.get_returnable_items(shop_id, sale_id)
        return jsonify({"sale_id": sale_id, "items": items}), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list returnable items")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/returns")
@require_shop_access
@require_permission(PERM_VIEW_SALES)
def list_sale_returns_route(shop_id: int):
    try:
        returns = return_service.list_sale_returns(
            shop_id,
            sale_id=optional_int(request.args.get("sale_id"), "sale_id"),
            limit=optional_int(request.args.get("limit"), "limit") or 50,
        )
        return jsonify({"returns": [r.to_dict() for r in returns]}), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sale returns")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/returns/<int:return_id>")
@require_shop_access
@require_permission(PERM_VIEW_SALES)
def get_sale_return_route(shop_id: int, return_id: int):
    try:
        return jsonify(return_service.get_sale_return_detail(shop_id, return_id)), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sale return")
        return jsonify({"error": "Internal server error"}), 500
