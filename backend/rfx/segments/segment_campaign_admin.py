from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user

from rfx.auth import admin_required, super_admin_required
from rfx.jobs.participation_reconciler import reconcile_participation
from rfx.services import campaigns as campaign_service
from rfx.services.completion import approve_proofs

campaign_admin_bp = Blueprint("campaign_admin_bp", __name__, url_prefix="/api/admin")


@campaign_admin_bp.get("/campaigns/<int:campaign_id>")
@admin_required
def campaign_details(campaign_id: int):
    return jsonify(campaign_service.admin_campaign_details(campaign_id)), 200


@campaign_admin_bp.get("/campaigns/<int:campaign_id>/proofs")
@admin_required
def campaign_proofs(campaign_id: int):
    return jsonify(campaign_service.campaign_proofs(campaign_id)), 200


@campaign_admin_bp.post("/campaigns/<int:campaign_id>/approve-proof")
@admin_required
def approve_proof(campaign_id: int):
    payload = request.get_json(silent=True) or {}
    proofs = payload.get("proofs")
    approve = payload.get("approve")
    if not isinstance(proofs, list) or not proofs or not isinstance(approve, bool):
        return jsonify({"success": False, "message": "Invalid request data", "code": "INVALID_REQUEST"}), 400

    items = []
    for p in proofs:
        try:
            items.append((int(p.get("task_id")), int(p.get("user_id"))))
        except (AttributeError, TypeError, ValueError):
            return jsonify({"success": False, "message": "Each proof needs task_id and user_id", "code": "INVALID_REQUEST"}), 400

    results = approve_proofs(int(current_user.id), campaign_id, items, approve)
    return jsonify({"success": True, "results": results}), 200


@campaign_admin_bp.delete("/campaigns/<int:campaign_id>/tasks/<int:task_id>")
@admin_required
def delete_task(campaign_id: int, task_id: int):
    res = campaign_service.delete_task(campaign_id, task_id, actor_user_id=int(current_user.id))
    return jsonify({"success": True, "message": "Task deleted successfully", **res}), 200


@campaign_admin_bp.post("/reconcile")
@super_admin_required
def run_reconcile():
    data = request.get_json(silent=True) or {}
    try:
        limit = int(data.get("limit") or 500)
    except (TypeError, ValueError):
        limit = 500
    return jsonify({"ok": True, **reconcile_participation(limit=limit)}), 200
