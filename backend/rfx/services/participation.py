"""Keeps the three per-(user, task) views in step.

A user's progress on a task is stored three times: UserTask (user side),
ParticipantTask (campaign participant copy) and TaskCompletion (the task's
completedBy list). Every state change goes through `set_task_state` so the
three rows always carry identical status and timestamps.
"""
from __future__ import annotations

from flask import current_app

from rfx.models import CampaignParticipant, ParticipantTask, TaskCompletion, UserTask

TASK_STATUSES = ("open", "pending", "completed", "rejected")


def new_participant(campaign, user, now) -> CampaignParticipant:
    participant = CampaignParticipant(
        user_id=user.id,
        username=user.username,
        email=user.email,
        joined_at=now,
        last_activity=now,
        completed=0,
    )
    for task in campaign.tasks_list:
        participant.tasks.append(ParticipantTask(task_id=task.id, status="open"))
    campaign.participants_list.append(participant)
    return participant


def ensure_participant(campaign, user, now) -> CampaignParticipant:
    participant = campaign.participant(user.id)
    if participant is not None:
        return participant
    # User joined but the campaign-side record is missing; rebuild it.
    current_app.logger.warning(
        "participant record missing for user=%s campaign=%s; recreating", user.id, campaign.id
    )
    participant = new_participant(campaign, user, now)
    uc = user.campaign_entry(campaign.id)
    if uc is not None:
        participant.joined_at = uc.joined_at or now
        participant.completed = int(uc.completed or 0)
    return participant


def set_task_state(user, campaign, task, participant, *, status, proof, submitted_at, completed_at, reward_earned=None):
    if status not in TASK_STATUSES:
        raise ValueError(f"unknown task status {status!r}")

    ut = user.task_entry(campaign.id, task.id)
    if ut is None:
        ut = UserTask(campaign_id=campaign.id, task_id=task.id)
        user.tasks.append(ut)
    ut.status = status
    ut.proof = proof
    ut.submitted_at = submitted_at
    ut.completed_at = completed_at
    if reward_earned is not None:
        ut.reward_earned = reward_earned

    pt = participant.task_entry(task.id)
    if pt is None:
        pt = ParticipantTask(task_id=task.id)
        participant.tasks.append(pt)
    pt.status = status
    pt.proof = proof
    pt.submitted_at = submitted_at
    pt.completed_at = completed_at

    tc = task.completion_for(user.id)
    if tc is None:
        tc = TaskCompletion(user_id=user.id)
        task.completed_by.append(tc)
    tc.status = status
    tc.proof_url = proof
    tc.submitted_at = submitted_at
    tc.completed_at = completed_at

    return ut
