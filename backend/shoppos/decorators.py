# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify

from .errors import AccessDenied, ShopPosError


def error_response(e: ShopPosError):
    return jsonify(e.to_dict()), e.http_status


def get_access_policy():
    return current_app.extensions["shoppos"]["access_policy"]


def permission_denied(action: str) -> AccessDenied:
    return AccessDenied("Permission denied", details={"required_permission": action})


def has_permission(action: str) -> bool:
    """Inline check for optional capabilities (e.g. issuing an invoice)."""
    return bool(get_access_policy().has_permission(getattr(g, "current_user", None), action))


def require_shop_access(f):
    """
    Resolve the caller and the shop named by the `shop_id` URL argument.

    Sets g.current_user (may be None) and g.shop. A shop the policy
    refuses is answered with the policy's error (404 or 403).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        policy = get_access_policy()
        user = policy.current_user()
        try:
            shop = policy.require_shop(kwargs["shop_id"], user)
        except ShopPosError as e:
            return error_response(e)

        g.current_user = user
        g.shop = shop
        return f(*args, **kwargs)

    return decorated_function


def require_permission(action: str):
    """Require `action` for the current user. Apply after require_shop_access."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not has_permission(action):
                return error_response(permission_denied(action))
            return f(*args, **kwargs)

        return decorated_function

    return decorator
