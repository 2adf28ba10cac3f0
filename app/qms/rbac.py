from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, g, jsonify

from app.qms.models import User


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated → 401 (API clients log in via /auth/login)
            if not user or not user.is_active:
                return jsonify({"error": "Authentication required"}), 401
            # Authenticated but unauthorized → 403
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                current_app.logger.warning(
                    "Forbidden: missing_permission=%s request_id=%s", permission_key, getattr(g, "request_id", None)
                )
                return jsonify({"error": f"Permission '{permission_key}' required"}), 403
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        # require_permission runs first on every API route that calls this.
        raise RuntimeError("No current user")
    return u
