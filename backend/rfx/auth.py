from __future__ import annotations

from functools import wraps

from flask import current_app, jsonify
from flask_login import current_user

from rfx.extensions import db, login_manager
from rfx.models import User
from rfx.utils.jwt_utils import decode_token, get_bearer_token


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(req):
    """Resolve the caller from `Authorization: Bearer <jwt>`; no sessions."""
    token = get_bearer_token(req.headers.get("Authorization", ""))
    if not token:
        return None
    payload = decode_token(token, secret=current_app.config.get("SECRET_KEY"))
    if not payload or payload.get("type") != "access":
        return None
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify({"success": False, "message": "Unauthorized", "code": "UNAUTHORIZED"}), 401


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()
        if not (current_user.is_admin or current_user.is_super_admin):
            return jsonify({"success": False, "message": "Admin access required", "code": "FORBIDDEN"}), 403
        return view(*args, **kwargs)
    return wrapper


def super_admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()
        if not current_user.is_super_admin:
            return jsonify({"success": False, "message": "Super admin access required", "code": "FORBIDDEN"}), 403
        return view(*args, **kwargs)
    return wrapper
