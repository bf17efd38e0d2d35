from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, send_from_directory
from flask_login import current_user, login_required

from rfx.errors import CampaignError
from rfx.services import campaigns as campaign_service
from rfx.services.completion import complete_task, upload_proof
from rfx.utils.proof_storage import discard_proof, save_proof, upload_dir

campaigns_bp = Blueprint("campaigns_bp", __name__, url_prefix="/api")


@campaigns_bp.get("/campaigns")
def list_campaigns():
    status = (request.args.get("status") or "").strip().lower() or None
    category = (request.args.get("category") or "").strip() or None
    return jsonify({"data": campaign_service.list_campaigns(status=status, category=category)}), 200


@campaigns_bp.get("/campaigns/<int:campaign_id>")
def campaign_details(campaign_id: int):
    return jsonify(campaign_service.campaign_details(campaign_id)), 200


@campaigns_bp.get("/campaigns/<int:campaign_id>/user")
@login_required
def user_campaign_details(campaign_id: int):
    return jsonify(campaign_service.user_campaign_view(int(current_user.id), campaign_id)), 200


@campaigns_bp.post("/campaigns/<int:campaign_id>/join")
@login_required
def join_campaign(campaign_id: int):
    res = campaign_service.join_campaign(int(current_user.id), campaign_id)
    return jsonify({"success": True, "message": "Successfully joined campaign", **res}), 200


@campaigns_bp.post("/campaigns/<int:campaign_id>/tasks/<int:task_id>/proof")
@login_required
def submit_proof(campaign_id: int, task_id: int):
    proof_url, saved_path = save_proof(request.files.get("proof"), int(current_user.id))
    try:
        data = upload_proof(int(current_user.id), campaign_id, task_id, proof_url)
    except CampaignError:
        discard_proof(saved_path)
        raise
    return jsonify({
        "success": True,
        "message": "Proof uploaded successfully, pending verification",
        "data": data,
    }), 200


@campaigns_bp.post("/campaigns/<int:campaign_id>/tasks/<int:task_id>/complete")
@login_required
def complete(campaign_id: int, task_id: int):
    result = complete_task(int(current_user.id), campaign_id, task_id)
    return jsonify({"success": True, "message": "Task completed successfully", "data": result.to_dict()}), 200


@campaigns_bp.get("/uploads/proofs/<path:filename>")
def uploaded_proof(filename: str):
    current_app.logger.debug("serving proof %s", filename)
    return send_from_directory(upload_dir(), filename)
