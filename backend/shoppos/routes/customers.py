# Overview: Flask API routes for customers and their due ledger.

from flask import Blueprint, current_app, jsonify, request

from ..access import PERM_MANAGE_CUSTOMERS
from ..decorators import error_response, require_permission, require_shop_access
from ..errors import ShopPosError
from ..money import money_str
from ..services import customer_ledger_service
from ..validation import body_value, optional_str


customers_bp = Blueprint("customers", __name__, url_prefix="/api/shops/<int:shop_id>/customers")


@customers_bp.post("")
@require_shop_access
@require_permission(PERM_MANAGE_CUSTOMERS)
def create_customer_route(shop_id: int):
    """
    Request body: {"name": "...", "phone": "...", "address": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        customer = customer_ledger_service.create_customer(
            shop_id=shop_id,
            name=optional_str(body_value(data, "name"), "name"),
            phone=optional_str(body_value(data, "phone"), "phone", 32),
            address=optional_str(body_value(data, "address"), "address"),
        )
        return jsonify({"customer": customer.to_dict()}), 201

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/due-summary")
@require_shop_access
@require_permission(PERM_MANAGE_CUSTOMERS)
def due_summary_route(shop_id: int):
    try:
        return jsonify(customer_ledger_service.get_due_summary(shop_id)), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build due summary")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/statement")
@require_shop_access
@require_permission(PERM_MANAGE_CUSTOMERS)
def customer_statement_route(shop_id: int, customer_id: int):
    try:
        return jsonify(customer_ledger_service.get_customer_statement(shop_id, customer_id)), 200

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build customer statement")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<int:customer_id>/payments")
@require_shop_access
@require_permission(PERM_MANAGE_CUSTOMERS)
def customer_payment_route(shop_id: int, customer_id: int):
    """
    Record a cash payment against the customer's due.

    Request body: {"amount": "100.00", "description": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        entry = customer_ledger_service.record_customer_payment(
            shop_id=shop_id,
            customer_id=customer_id,
            amount=body_value(data, "amount"),
            description=optional_str(body_value(data, "description"), "description"),
        )
        customer = customer_ledger_service.get_customer(shop_id, customer_id)
        return jsonify({
            "entry": entry.to_dict(),
            "total_due": money_str(customer.total_due),
        }), 201

    except ShopPosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record customer payment")
        return jsonify({"error": "Internal server error"}), 500
