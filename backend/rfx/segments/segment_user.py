from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from rfx.services import campaigns as campaign_service

user_bp = Blueprint("user_bp", __name__, url_prefix="/api")


@user_bp.get("/user/profile")
@login_required
def profile():
    return jsonify({"ok": True, "user": current_user.to_dict()}), 200


@user_bp.get("/user/campaigns")
@login_required
def my_campaigns():
    return jsonify(campaign_service.user_campaigns(int(current_user.id))), 200


@user_bp.get("/wallet/transactions")
@login_required
def my_transactions():
    try:
        limit = int(request.args.get("limit") or 200)
    except ValueError:
        limit = 200
    limit = max(1, min(limit, 500))
    return jsonify(campaign_service.user_transactions(int(current_user.id), limit=limit)), 200
