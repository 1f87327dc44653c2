from functools import wraps
from flask import jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity

from app.domain.actors import Actor


def current_actor() -> Actor:
    """Resolve the caller from the verified JWT (subject + role claim)."""
    claims = get_jwt()
    return Actor(user_id=str(get_jwt_identity()), role=claims.get("role", ""))


def roles_required(*allowed_roles):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            role = get_jwt().get("role")

            if role not in allowed_roles:
                return jsonify({"error": "Insufficient permissions"}), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
