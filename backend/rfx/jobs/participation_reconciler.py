from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from rfx.extensions import db
from rfx.models import AuditLog, Campaign, Transaction, User, UserCampaign, UserTask
from rfx.services.participation import ensure_participant, set_task_state
from rfx.utils.clock import utcnow
from rfx.utils.money import quantize_tokens, to_decimal


def _sum_ledger(user_id: int) -> Decimal:
    credits = db.session.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.user_id == int(user_id),
        Transaction.type.in_(("earn", "receive")),
    ).scalar() or 0
    debits = db.session.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.user_id == int(user_id),
        Transaction.type == "send",
    ).scalar() or 0
    return quantize_tokens(to_decimal(credits) - to_decimal(debits))


def _views_agree(ut, pt, tc) -> bool:
    if pt is None or pt.status != ut.status or pt.completed_at != ut.completed_at or pt.proof != ut.proof:
        return False
    if ut.status == "open":
        return tc is None or tc.status == "open"
    return tc is not None and tc.status == ut.status and tc.completed_at == ut.completed_at and tc.proof_url == ut.proof


def _reconcile_membership(uc: UserCampaign, now: datetime) -> list:
    """Bring one (user, campaign) pair back in line; returns the fixes applied."""
    user, campaign = uc.user, uc.campaign
    fixes = []

    if campaign.participant(user.id) is None:
        fixes.append("participant_created")
    participant = ensure_participant(campaign, user, now)

    completed = 0
    for ut in [t for t in user.tasks if t.campaign_id == campaign.id]:
        task = campaign.task(ut.task_id)
        if task is None:
            continue
        if ut.status == "completed":
            completed += 1
        if not _views_agree(ut, participant.task_entry(task.id), task.completion_for(user.id)):
            set_task_state(
                user, campaign, task, participant,
                status=ut.status,
                proof=ut.proof,
                submitted_at=ut.submitted_at,
                completed_at=ut.completed_at,
            )
            fixes.append(f"task_{task.id}_mirrored")

    if int(uc.completed or 0) != completed:
        fixes.append("user_counter")
        uc.completed = completed
    if int(participant.completed or 0) != completed:
        fixes.append("participant_counter")
        participant.completed = completed
    return fixes


def _batches(model, limit: int):
    """Yield id-ordered batches of `model` rows until the table is exhausted."""
    last_id = 0
    while True:
        rows = model.query.filter(model.id > last_id).order_by(model.id.asc()).limit(limit).all()
        if not rows:
            return
        last_id = rows[-1].id
        yield rows


def _anomaly_already_recorded(user_id: int, meta: dict) -> bool:
    last = (
        AuditLog.query.filter_by(action="earnings_anomaly", target_type="user", target_id=user_id)
        .order_by(AuditLog.id.desc())
        .first()
    )
    if last is None or not last.meta:
        return False
    prev = json.loads(last.meta)
    return prev.get("computed_balance") == meta["computed_balance"] and prev.get("stored_balance") == meta["stored_balance"]


def reconcile_participation(*, limit: int = 500, now: datetime = None) -> dict:
    """Re-derive the participant and completedBy copies from the user-side task state.

    Idempotent: over consistent data it changes nothing. Every membership
    and user is visited, `limit` rows at a time. Each membership is repaired
    in its own transaction and every repair is written to the audit log.
    Earnings that disagree with the ledger are reported once per distinct
    drift, never rewritten.
    """
    now = now or utcnow()
    limit = max(1, int(limit))
    checked = 0
    repaired = 0
    anomalies = 0
    failed = 0

    for batch in _batches(UserCampaign, limit):
        membership_ids = [uc.id for uc in batch]
        for uc_id in membership_ids:
            checked += 1
            try:
                uc = db.session.get(UserCampaign, uc_id)
                if uc is None or uc.campaign is None:
                    continue
                fixes = _reconcile_membership(uc, now)
                if not fixes:
                    db.session.rollback()
                    continue
                uc.user.updated_at = now
                uc.campaign.updated_at = now
                AuditLog.record(
                    "participation_repair",
                    target_type="campaign",
                    target_id=uc.campaign_id,
                    meta={"user_id": uc.user_id, "fixes": fixes, "at": now.isoformat()},
                )
                db.session.commit()
                repaired += 1
            except Exception:
                db.session.rollback()
                failed += 1
                current_app.logger.exception("reconcile: membership %s failed", uc_id)

    campaign_ids = [c.id for c in Campaign.query.order_by(Campaign.id.asc()).all()]
    for campaign_id in campaign_ids:
        try:
            campaign = db.session.get(Campaign, campaign_id)
            completions = UserTask.query.filter_by(campaign_id=campaign.id, status="completed").count()
            members = UserCampaign.query.filter_by(campaign_id=campaign.id).count()
            fixes = {}
            if int(campaign.completed_tasks or 0) != completions:
                fixes["completed_tasks"] = [int(campaign.completed_tasks or 0), completions]
                campaign.completed_tasks = completions
            if int(campaign.participants or 0) != members:
                fixes["participants"] = [int(campaign.participants or 0), members]
                campaign.participants = members
            if not fixes:
                continue
            campaign.updated_at = now
            AuditLog.record("campaign_counters_repair", target_type="campaign", target_id=campaign.id, meta=fixes)
            db.session.commit()
            repaired += 1
        except Exception:
            db.session.rollback()
            failed += 1
            current_app.logger.exception("reconcile: campaign %s counters failed", campaign_id)

    for batch in _batches(User, limit):
        user_ids = [u.id for u in batch]
        for user_id in user_ids:
            try:
                user = db.session.get(User, user_id)
                computed = _sum_ledger(user.id)
                stored = quantize_tokens(user.earnings)
                if computed == stored:
                    continue
                anomalies += 1
                meta = {"computed_balance": str(computed), "stored_balance": str(stored)}
                if _anomaly_already_recorded(user.id, meta):
                    current_app.logger.info("reconcile: earnings drift for user=%s unchanged since last report", user.id)
                    continue
                AuditLog.record(
                    "earnings_anomaly",
                    target_type="user",
                    target_id=user.id,
                    meta={**meta, "at": now.isoformat()},
                )
                db.session.commit()
            except Exception:
                db.session.rollback()
                failed += 1
                current_app.logger.exception("reconcile: earnings check for user %s failed", user_id)

    current_app.logger.info(
        "participation reconcile: checked=%s repaired=%s anomalies=%s failed=%s", checked, repaired, anomalies, failed
    )
    return {"checked": checked, "repaired": repaired, "anomalies": anomalies, "failed": failed}
