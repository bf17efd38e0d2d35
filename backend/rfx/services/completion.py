"""Task completion engine.

completeTask / uploadProof / approveProof for one (user, campaign, task)
triple. Each call is a single unit of work: every effect on the user, the
campaign (with its embedded tasks and participants) and the ledger is
committed together or not at all.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from flask import current_app

from rfx.errors import CampaignError, Conflict, NotFound, PreconditionFailed
from rfx.extensions import db
from rfx.models import AuditLog, Campaign, Transaction, User
from rfx.services.participation import ensure_participant, set_task_state
from rfx.services.rewards import Penalty, compute_reward, progress_summary, resolve_co2_impact
from rfx.services.unit_of_work import run_atomically
from rfx.utils.clock import utcnow
from rfx.utils.money import format_co2, format_tokens, quantize_co2, quantize_tokens, to_decimal


@dataclass
class CompletionResult:
    task_id: int
    title: str
    reward: Decimal
    completed_at: datetime
    penalty: Optional[Penalty]
    balance: Decimal
    co2_saved: Decimal
    progress: dict

    def to_dict(self) -> dict:
        return {
            "task": {
                "id": self.task_id,
                "title": self.title,
                "reward": float(self.reward),
                "status": "completed",
                "completed_at": self.completed_at.isoformat(),
            },
            "reward": float(self.reward),
            "penalty": self.penalty.to_dict() if self.penalty else None,
            "balance": format_tokens(self.balance),
            "co2_saved": format_co2(self.co2_saved),
            "progress": self.progress,
        }


def _load(user_id: int, campaign_id: int, task_id: int):
    campaign = db.session.get(Campaign, campaign_id)
    if campaign is None:
        raise NotFound("Campaign not found", code="CAMPAIGN_NOT_FOUND")
    task = campaign.task(task_id)
    if task is None:
        raise NotFound("Task not found", code="TASK_NOT_FOUND")
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found", code="USER_NOT_FOUND")
    return user, campaign, task


def _require_joined(user, campaign):
    uc = user.campaign_entry(campaign.id)
    if uc is None:
        raise PreconditionFailed("Join the campaign first", code="CAMPAIGN_NOT_JOINED")
    return uc


def _touch(user, campaign, now) -> None:
    # Both parents are rewritten on every engine write so their version
    # columns serialize concurrent writers.
    user.updated_at = now
    campaign.updated_at = now


def _grant(user, campaign, task, uc, participant, now) -> CompletionResult:
    symbol = current_app.config.get("TOKEN_SYMBOL", "RFX")
    reward, penalty = compute_reward(task.reward, task.day, now, campaign.start_date)

    co2_impact, healed = resolve_co2_impact(task.co2_impact)
    if healed:
        current_app.logger.info("task %s had co2_impact=%r; corrected to %s", task.id, task.co2_impact, co2_impact)
        task.co2_impact = co2_impact

    existing = user.task_entry(campaign.id, task.id)
    set_task_state(
        user, campaign, task, participant,
        status="completed",
        proof=existing.proof if existing else None,
        submitted_at=existing.submitted_at if existing else None,
        completed_at=now,
        reward_earned=reward,
    )

    user.earnings = quantize_tokens(to_decimal(user.earnings) + reward)
    user.co2_saved = quantize_co2(to_decimal(user.co2_saved) + co2_impact)
    uc.completed = int(uc.completed or 0) + 1
    uc.last_activity = now

    campaign.completed_tasks = int(campaign.completed_tasks or 0) + 1
    participant.completed = uc.completed
    participant.last_activity = now
    _touch(user, campaign, now)

    db.session.add(Transaction(
        user_id=user.id,
        amount=reward,
        type="earn",
        category="Campaign",
        activity=f"Completed task: {task.title}"[:100],
        description=f"Earned {format_tokens(reward)} {symbol} for completing task in {campaign.title}"[:500],
        color="green",
        reference=f"campaign:{campaign.id}:task:{task.id}",
        timestamp=now,
    ))

    return CompletionResult(
        task_id=task.id,
        title=task.title,
        reward=reward,
        completed_at=now,
        penalty=penalty,
        balance=user.earnings,
        co2_saved=user.co2_saved,
        progress=progress_summary(uc.completed, len(campaign.tasks_list)),
    )


def complete_task(user_id: int, campaign_id: int, task_id: int, now: datetime = None) -> CompletionResult:
    now = now or utcnow()

    def _work():
        user, campaign, task = _load(user_id, campaign_id, task_id)
        uc = _require_joined(user, campaign)
        existing = user.task_entry(campaign.id, task.id)
        if existing is not None and existing.status == "completed":
            raise Conflict("Task already completed", code="TASK_ALREADY_COMPLETED", task_id=task.id, status="completed")
        if task.requires_proof:
            raise PreconditionFailed("This task is completed by uploading a proof", code="PROOF_REQUIRED")
        if existing is not None and existing.status == "pending":
            raise Conflict("Proof already submitted and pending review", code="PROOF_PENDING_REVIEW")
        if existing is not None and existing.status == "rejected":
            raise PreconditionFailed("Proof was rejected; upload a new proof", code="PROOF_REJECTED")
        participant = ensure_participant(campaign, user, now)
        return _grant(user, campaign, task, uc, participant, now)

    result = run_atomically(_work, label="complete_task", code="TASK_COMPLETION_FAILED")
    current_app.logger.info(
        "task completed user=%s campaign=%s task=%s reward=%s", user_id, campaign_id, task_id, result.reward
    )
    return result


def upload_proof(user_id: int, campaign_id: int, task_id: int, proof_url: str, now: datetime = None) -> dict:
    if not proof_url:
        raise PreconditionFailed("Proof file is required", code="MISSING_PROOF_FILE")
    now = now or utcnow()

    def _work():
        user, campaign, task = _load(user_id, campaign_id, task_id)
        uc = _require_joined(user, campaign)
        existing = user.task_entry(campaign.id, task.id)
        if existing is not None and existing.status == "completed":
            raise Conflict("Task already completed", code="TASK_ALREADY_COMPLETED")
        if existing is not None and existing.status == "pending":
            raise Conflict("Proof already submitted and pending review", code="PROOF_PENDING_REVIEW")

        participant = ensure_participant(campaign, user, now)
        set_task_state(
            user, campaign, task, participant,
            status="pending",
            proof=proof_url,
            submitted_at=now,
            completed_at=None,
        )
        uc.last_activity = now
        participant.last_activity = now
        _touch(user, campaign, now)
        return {
            "proof_url": proof_url,
            "task_id": task.id,
            "status": "pending",
            "submitted_at": now.isoformat(),
        }

    result = run_atomically(_work, label="upload_proof", code="UPLOAD_ERROR")
    current_app.logger.info("proof submitted user=%s campaign=%s task=%s", user_id, campaign_id, task_id)
    return result


def _decide_proof(admin_id, user_id, campaign_id, task_id, approve: bool, now):
    user, campaign, task = _load(user_id, campaign_id, task_id)
    existing = user.task_entry(campaign.id, task.id)
    if existing is not None and existing.status == "completed":
        raise Conflict("Task already completed", code="TASK_ALREADY_COMPLETED")
    if existing is None or existing.status != "pending":
        raise PreconditionFailed("No pending proof for this task", code="PROOF_NOT_PENDING")
    uc = _require_joined(user, campaign)
    participant = ensure_participant(campaign, user, now)

    if approve:
        result = _grant(user, campaign, task, uc, participant, now)
        outcome = {"status": "completed", "reward": float(result.reward)}
    else:
        set_task_state(
            user, campaign, task, participant,
            status="rejected",
            proof=None,
            submitted_at=existing.submitted_at,
            completed_at=None,
        )
        _touch(user, campaign, now)
        outcome = {"status": "rejected"}

    AuditLog.record(
        "proof_approved" if approve else "proof_rejected",
        actor_user_id=admin_id,
        target_type="campaign_task",
        target_id=task.id,
        meta={"campaign_id": campaign.id, "user_id": user.id, "at": now.isoformat()},
    )
    return outcome


def approve_proofs(admin_id: int, campaign_id: int, proofs: Iterable, approve: bool, now: datetime = None) -> list:
    """Approve or reject a batch of pending proofs; each item commits on its own."""
    now = now or utcnow()
    if db.session.get(Campaign, campaign_id) is None:
        raise NotFound("Campaign not found", code="CAMPAIGN_NOT_FOUND")

    results = []
    for item in proofs:
        task_id, user_id = item
        try:
            outcome = run_atomically(
                lambda: _decide_proof(admin_id, user_id, campaign_id, task_id, approve, now),
                label="approve_proof",
            )
        except CampaignError as e:
            results.append({"task_id": task_id, "user_id": user_id, "success": False, "code": e.code, "message": e.message})
            continue
        results.append({"task_id": task_id, "user_id": user_id, "success": True, **outcome})
    return results
