from __future__ import annotations

from collections import Counter
from datetime import datetime

from flask import current_app

from rfx.errors import Conflict, NotFound, PreconditionFailed
from rfx.extensions import db
from rfx.models import AuditLog, Campaign, CampaignTask, Transaction, User, UserCampaign, UserTask
from rfx.models.campaign import MAX_TASKS_PER_DAY
from rfx.services.participation import new_participant
from rfx.services.rewards import current_day, day_time_left, progress_summary
from rfx.services.unit_of_work import run_atomically
from rfx.utils.clock import utcnow


def _get_campaign(campaign_id: int) -> Campaign:
    campaign = db.session.get(Campaign, campaign_id)
    if campaign is None:
        raise NotFound("Campaign not found", code="CAMPAIGN_NOT_FOUND")
    return campaign


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found", code="USER_NOT_FOUND")
    return user


# -----------------------------
# Joining
# -----------------------------

def join_campaign(user_id: int, campaign_id: int, now: datetime = None) -> dict:
    now = now or utcnow()

    def _work():
        campaign = _get_campaign(campaign_id)
        user = _get_user(user_id)
        if user.campaign_entry(campaign.id) is not None:
            raise Conflict("Already joined this campaign", code="ALREADY_JOINED")
        if campaign.status_at(now) != "active":
            raise PreconditionFailed("Campaign is not currently active", code="CAMPAIGN_NOT_ACTIVE")

        user.campaigns.append(UserCampaign(campaign_id=campaign.id, joined_at=now, last_activity=now, completed=0))
        if campaign.participant(user.id) is None:
            new_participant(campaign, user, now)
        campaign.participants = int(campaign.participants or 0) + 1
        user.updated_at = now
        campaign.updated_at = now
        return {
            "campaign_id": campaign.id,
            "title": campaign.title,
            "participants": campaign.participants,
        }

    result = run_atomically(_work, label="join_campaign")
    current_app.logger.info("user=%s joined campaign=%s", user_id, campaign_id)
    return result


# -----------------------------
# Task schedule (admin side)
# -----------------------------

def validate_task_schedule(campaign: Campaign) -> None:
    tasks = list(campaign.tasks_list)
    per_day = Counter(int(t.day or 1) for t in tasks)
    crowded = sorted(day for day, n in per_day.items() if n > MAX_TASKS_PER_DAY)
    if crowded:
        raise PreconditionFailed(
            f"Maximum {MAX_TASKS_PER_DAY} tasks per day allowed (day {crowded[0]})",
            code="TASK_SCHEDULE_INVALID",
        )
    if len(tasks) > int(campaign.duration or 0) * MAX_TASKS_PER_DAY:
        raise PreconditionFailed(
            "Total tasks exceed maximum allowed for campaign duration",
            code="TASK_SCHEDULE_INVALID",
        )
    out_of_range = [t for t in tasks if int(t.day or 0) < 1 or int(t.day or 0) > int(campaign.duration or 0)]
    if out_of_range:
        raise PreconditionFailed("Task day must be within the campaign duration", code="TASK_SCHEDULE_INVALID")


def add_task(campaign: Campaign, **fields) -> CampaignTask:
    """Append a task to a campaign in the current session; caller commits."""
    task = CampaignTask(**fields)
    campaign.tasks_list.append(task)
    try:
        validate_task_schedule(campaign)
    except PreconditionFailed:
        campaign.tasks_list.remove(task)
        raise
    return task


def delete_task(campaign_id: int, task_id: int, actor_user_id: int = None, now: datetime = None) -> dict:
    """Remove a task and every per-user trace of it. Ledger rows are kept."""
    now = now or utcnow()

    def _work():
        campaign = _get_campaign(campaign_id)
        task = campaign.task(task_id)
        if task is None:
            raise NotFound("Task not found", code="TASK_NOT_FOUND")

        removed_completed = 0
        for ut in UserTask.query.filter_by(campaign_id=campaign.id, task_id=task.id).all():
            if ut.status == "completed":
                removed_completed += 1
                uc = ut.user.campaign_entry(campaign.id)
                if uc is not None:
                    uc.completed = max(0, int(uc.completed or 0) - 1)
            ut.user.updated_at = now
            ut.user.tasks.remove(ut)

        for participant in campaign.participants_list:
            pt = participant.task_entry(task.id)
            if pt is None:
                continue
            if pt.status == "completed":
                participant.completed = max(0, int(participant.completed or 0) - 1)
            participant.tasks.remove(pt)

        # Dependent rows go first; the task row is removed in a second flush.
        db.session.flush()

        affected_proofs = len(task.completed_by)
        campaign.completed_tasks = max(0, int(campaign.completed_tasks or 0) - removed_completed)
        campaign.tasks_list.remove(task)
        campaign.updated_at = now

        AuditLog.record(
            "task_deleted",
            actor_user_id=actor_user_id,
            target_type="campaign_task",
            target_id=task_id,
            meta={"campaign_id": campaign.id, "completions_removed": removed_completed, "proofs": affected_proofs},
        )
        return {"task_id": task_id, "completions_removed": removed_completed, "deleted_proofs_count": affected_proofs}

    return run_atomically(_work, label="delete_task")


# -----------------------------
# Read models
# -----------------------------

def _aggregate_progress(campaign: Campaign) -> float:
    slots = len(campaign.tasks_list) * int(campaign.participants or 0)
    if slots <= 0:
        return 0.0
    return round(min(campaign.completed_tasks / slots * 100, 100.0), 2)


def list_campaigns(status: str = None, category: str = None, now: datetime = None) -> list:
    now = now or utcnow()
    qry = Campaign.query
    if category:
        qry = qry.filter_by(category=category)
    out = []
    for campaign in qry.order_by(Campaign.created_at.desc(), Campaign.id.desc()).all():
        if status and campaign.status_at(now) != status:
            continue
        row = campaign.to_dict(now)
        row["progress"] = _aggregate_progress(campaign)
        out.append(row)
    return out


def campaign_details(campaign_id: int, now: datetime = None) -> dict:
    now = now or utcnow()
    campaign = _get_campaign(campaign_id)
    row = campaign.to_dict(now)
    row["tasks"] = [t.to_dict() for t in campaign.tasks_list]
    row["progress"] = _aggregate_progress(campaign)
    return row


def user_campaign_view(user_id: int, campaign_id: int, now: datetime = None) -> dict:
    now = now or utcnow()
    campaign = _get_campaign(campaign_id)
    user = _get_user(user_id)
    uc = user.campaign_entry(campaign.id)
    participant = campaign.participant(user.id)
    day = current_day(now, campaign.start_date, campaign.duration)

    all_tasks = []
    for task in campaign.tasks_list:
        ut = user.task_entry(campaign.id, task.id)
        pt = participant.task_entry(task.id) if participant else None
        row = task.to_dict()
        row.update({
            "status": ut.status if ut else "open",
            "proof": ut.proof if ut else None,
            "completed": bool(ut and ut.status == "completed"),
            "submitted_at": ut.submitted_at.isoformat() if ut and ut.submitted_at else None,
            "completed_at": ut.completed_at.isoformat() if ut and ut.completed_at else None,
            "participant_status": pt.status if pt else None,
        })
        all_tasks.append(row)

    row = campaign.to_dict(now)
    row.update({
        "has_joined": uc is not None,
        "user_completed": int(uc.completed) if uc else 0,
        "current_day": day,
        "day_time_left": day_time_left(now, campaign.start_date, campaign.duration),
        "daily_tasks": [t for t in all_tasks if t["day"] == day],
        "all_tasks": all_tasks,
        "progress": progress_summary(uc.completed if uc else 0, len(campaign.tasks_list)),
    })
    return row


def user_campaigns(user_id: int, now: datetime = None) -> list:
    now = now or utcnow()
    user = _get_user(user_id)
    out = []
    for uc in user.campaigns:
        campaign = uc.campaign
        if campaign is None:
            continue
        user_completed = sum(
            1 for t in user.tasks if t.campaign_id == campaign.id and t.status == "completed"
        )
        row = campaign.to_dict(now)
        row.update({
            "user_joined": True,
            "user_completed": user_completed,
            "progress": progress_summary(user_completed, len(campaign.tasks_list)),
            "joined_at": uc.joined_at.isoformat() if uc.joined_at else None,
            "last_activity": uc.last_activity.isoformat() if uc.last_activity else None,
        })
        out.append(row)
    return out


def campaign_proofs(campaign_id: int) -> list:
    campaign = _get_campaign(campaign_id)
    participants = {p.user_id: p for p in campaign.participants_list}
    out = []
    for task in campaign.tasks_list:
        proofs = []
        for entry in task.completed_by:
            p = participants.get(entry.user_id)
            proofs.append({
                "task_id": task.id,
                "task_title": task.title,
                "day": task.day,
                "user_id": entry.user_id,
                "username": p.username if p else "Unknown",
                "email": p.email if p else "",
                "proof_url": entry.proof_url,
                "status": entry.status,
                "submitted_at": entry.submitted_at.isoformat() if entry.submitted_at else None,
            })
        out.append({"task_id": task.id, "task_title": task.title, "day": task.day, "proofs": proofs})
    return out


def admin_campaign_details(campaign_id: int, now: datetime = None) -> dict:
    now = now or utcnow()
    campaign = _get_campaign(campaign_id)
    row = campaign.to_dict(now)
    row["tasks"] = [t.to_dict() for t in campaign.tasks_list]
    row["participants_list"] = [p.to_dict(total_tasks=len(campaign.tasks_list)) for p in campaign.participants_list]
    return row


def user_transactions(user_id: int, limit: int = 200) -> list:
    _get_user(user_id)
    rows = (
        Transaction.query.filter_by(user_id=user_id)
        .order_by(Transaction.timestamp.desc(), Transaction.id.desc())
        .limit(int(limit))
        .all()
    )
    return [t.to_dict() for t in rows]

