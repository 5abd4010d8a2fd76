# Overview: Flask API routes for the cash drawer book.

from flask import Blueprint, current_app, g, jsonify, request

from ..access import PERM_CREATE_CASH_ENTRY, PERM_VIEW_CASHBOOK
from ..decorators import error_response, require_permission, require_shop_access
from ..errors import ShopPosError
from ..services import cash_service
from ..services.shop_service import business_date_for
from ..validation import body_value, optional_str, parse_date_param


cash_bp = Blueprint("cash", __name__, url_prefix="/api/shops/<int:shop_id>/cash")


@cash_bp.post("")
@require_shop_access
@require_permission(PERM_CREATE_CASH_ENTRY)
def create_cash_entry_route(shop_id: int):
    """
    Manual drawer entry.

    Request body: {"entryType": "IN" | "OUT", "amount": "500.00", "reason": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        entry = cash_service.create_cash_entry(
            shop_id=shop_id,
            entry_type=optional_str(body_value(data, "entry_type", "entryType"), "entryType", 8),
            amount=body_value(data, "amount"),
            reason=optional_str(body_value(data, "reason"), "reason"),
        )
        return jsonify({"entry": entry.to_dict()}), 201

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create cash entry")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("")
@require_shop_access
@require_permission(PERM_VIEW_CASHBOOK)
def list_cash_entries_route(shop_id: int):
    """?date=YYYY-MM-DD limits the list to one business day."""
    try:
        business_date = parse_date_param(request.args.get("date"))
        entries = cash_service.list_cash_entries(shop_id, business_date)
        return jsonify({"entries": [e.to_dict() for e in entries]}), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list cash entries")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("/summary")
@require_shop_access
@require_permission(PERM_VIEW_CASHBOOK)
def cash_summary_route(shop_id: int):
    """Totals for ?date= (default: the shop's current business day)."""
    try:
        business_date = parse_date_param(request.args.get("date")) or business_date_for(g.shop)
        return jsonify(cash_service.get_cash_summary(shop_id, business_date)), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build cash summary")
        return jsonify({"error": "Internal server error"}), 500
