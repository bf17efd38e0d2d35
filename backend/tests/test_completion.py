from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

import rfx.services.completion as completion
from rfx.errors import Conflict, Internal, NotFound, PreconditionFailed
from rfx.extensions import db
from rfx.models import Campaign, CampaignTask, Transaction, User, UserTask
from rfx.services.campaigns import join_campaign
from rfx.services.completion import complete_task
from rfx.services.unit_of_work import run_atomically

from .conftest import START

DAY_THREE = START + timedelta(days=2, hours=1)


def _views(user, campaign, task):
    ut = user.task_entry(campaign.id, task.id)
    pt = campaign.participant(user.id).task_entry(task.id)
    tc = task.completion_for(user.id)
    return ut, pt, tc


def test_late_completion_applies_penalty_and_updates_everything(joined):
    user, campaign, task = joined

    result = complete_task(user.id, campaign.id, task.id, now=DAY_THREE)

    assert result.reward == Decimal("0.008")
    assert result.penalty.days_late == 2
    assert result.penalty.penalty_factor == Decimal("0.8")
    assert result.progress == {"completed": 1, "total": 1, "percentage": 100.0}

    body = result.to_dict()
    assert body["balance"] == "0.00800"
    assert body["co2_saved"] == "3.00"
    assert body["penalty"]["message"] == "20% penalty applied"

    user = db.session.get(User, user.id)
    campaign = db.session.get(Campaign, campaign.id)
    assert user.earnings == Decimal("0.008")
    assert user.co2_saved == Decimal("3.00")
    assert user.campaign_entry(campaign.id).completed == 1
    assert campaign.completed_tasks == 1
    assert campaign.participant(user.id).completed == 1

    txns = Transaction.query.filter_by(user_id=user.id).all()
    assert len(txns) == 1
    assert txns[0].type == "earn"
    assert txns[0].category == "Campaign"
    assert txns[0].amount == Decimal("0.008")
    assert txns[0].reference == f"campaign:{campaign.id}:task:{task.id}"


def test_three_views_agree_after_completion(joined):
    user, campaign, task = joined
    complete_task(user.id, campaign.id, task.id, now=DAY_THREE)

    user = db.session.get(User, user.id)
    campaign = db.session.get(Campaign, campaign.id)
    task = campaign.task(task.id)
    ut, pt, tc = _views(user, campaign, task)
    assert ut.status == pt.status == tc.status == "completed"
    assert ut.completed_at == pt.completed_at == tc.completed_at == DAY_THREE
    assert ut.reward_earned == Decimal("0.008")


def test_on_time_completion_has_no_penalty(joined):
    user, campaign, task = joined
    result = complete_task(user.id, campaign.id, task.id, now=START + timedelta(hours=3))
    assert result.penalty is None
    assert result.reward == Decimal("0.01")
    assert result.to_dict()["penalty"] is None


def test_second_completion_is_rejected_without_side_effects(joined):
    user, campaign, task = joined
    complete_task(user.id, campaign.id, task.id, now=DAY_THREE)

    with pytest.raises(Conflict) as exc:
        complete_task(user.id, campaign.id, task.id, now=DAY_THREE + timedelta(minutes=1))
    assert exc.value.code == "TASK_ALREADY_COMPLETED"
    assert exc.value.to_dict()["status"] == "completed"

    user = db.session.get(User, user.id)
    assert user.earnings == Decimal("0.008")
    assert db.session.get(Campaign, campaign.id).completed_tasks == 1
    assert Transaction.query.filter_by(user_id=user.id).count() == 1


def test_completion_requires_membership(make_user, make_campaign):
    user = make_user()
    campaign = make_campaign()
    task = campaign.tasks_list[0]

    with pytest.raises(PreconditionFailed) as exc:
        complete_task(user.id, campaign.id, task.id, now=DAY_THREE)
    assert exc.value.code == "CAMPAIGN_NOT_JOINED"

    user = db.session.get(User, user.id)
    assert user.earnings == Decimal("0")
    assert user.tasks == []
    assert db.session.get(CampaignTask, task.id).completed_by == []
    assert Transaction.query.count() == 0


def test_missing_entities_report_which_one(joined):
    user, campaign, task = joined

    with pytest.raises(NotFound) as exc:
        complete_task(user.id, 9999, task.id, now=DAY_THREE)
    assert exc.value.code == "CAMPAIGN_NOT_FOUND"

    with pytest.raises(NotFound) as exc:
        complete_task(user.id, campaign.id, 9999, now=DAY_THREE)
    assert exc.value.code == "TASK_NOT_FOUND"

    with pytest.raises(NotFound) as exc:
        complete_task(9999, campaign.id, task.id, now=DAY_THREE)
    assert exc.value.code == "USER_NOT_FOUND"


def test_task_from_another_campaign_is_not_found(joined, make_campaign):
    user, campaign, _ = joined
    other = make_campaign(title="Other")
    with pytest.raises(NotFound) as exc:
        complete_task(user.id, campaign.id, other.tasks_list[0].id, now=DAY_THREE)
    assert exc.value.code == "TASK_NOT_FOUND"


@pytest.mark.parametrize("seeded", [None, Decimal("0.005"), Decimal("0.01")])
def test_bad_co2_impact_is_healed_on_completion(make_user, make_campaign, seeded):
    user = make_user()
    campaign = make_campaign(tasks=[{"day": 1, "reward": "0.01", "co2_impact": seeded}])
    task = campaign.tasks_list[0]
    join_campaign(user.id, campaign.id, now=START + timedelta(minutes=1))

    result = complete_task(user.id, campaign.id, task.id, now=START + timedelta(hours=1))

    assert result.co2_saved == Decimal("2.00")
    assert db.session.get(CampaignTask, task.id).co2_impact == Decimal("2.0")


def test_missing_participant_is_recreated(joined):
    user, campaign, task = joined
    db.session.delete(campaign.participant(user.id))
    db.session.commit()

    complete_task(user.id, campaign.id, task.id, now=DAY_THREE)

    campaign = db.session.get(Campaign, campaign.id)
    participant = campaign.participant(user.id)
    assert participant is not None
    assert participant.joined_at == START + timedelta(minutes=5)
    assert participant.completed == 1
    assert participant.task_entry(task.id).status == "completed"


def test_ledger_failure_rolls_everything_back(joined, monkeypatch):
    user, campaign, task = joined

    def _broken_ledger(**kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(completion, "Transaction", _broken_ledger)
    with pytest.raises(Internal) as exc:
        complete_task(user.id, campaign.id, task.id, now=DAY_THREE)
    assert exc.value.code == "TASK_COMPLETION_FAILED"
    assert exc.value.to_dict()["committed"] is False

    user = db.session.get(User, user.id)
    campaign = db.session.get(Campaign, campaign.id)
    assert user.earnings == Decimal("0")
    assert user.task_entry(campaign.id, task.id) is None
    assert campaign.completed_tasks == 0
    assert Transaction.query.count() == 0

    monkeypatch.undo()
    result = complete_task(user.id, campaign.id, task.id, now=DAY_THREE)
    assert result.reward == Decimal("0.008")
    assert Transaction.query.count() == 1


def test_concurrent_writer_triggers_retry(joined, monkeypatch):
    user, campaign, task = joined
    real_ensure = completion.ensure_participant
    calls = {"n": 0}

    def _racing_ensure(campaign_, user_, now):
        calls["n"] += 1
        if calls["n"] == 1:
            # Another writer commits between our read and our write.
            db.session.execute(text("UPDATE users SET version = version + 1 WHERE id = :id"), {"id": user_.id})
        return real_ensure(campaign_, user_, now)

    monkeypatch.setattr(completion, "ensure_participant", _racing_ensure)
    result = complete_task(user.id, campaign.id, task.id, now=DAY_THREE)

    assert calls["n"] == 2
    assert result.reward == Decimal("0.008")
    assert db.session.get(User, user.id).earnings == Decimal("0.008")
    assert Transaction.query.count() == 1



def test_retry_sees_a_competing_completion(joined, monkeypatch):
    user, campaign, task = joined
    real_ensure = completion.ensure_participant
    calls = {"n": 0}

    def _competing_completion(campaign_, user_, now):
        calls["n"] += 1
        if calls["n"] == 1:
            # Another request completes the same task and commits first.
            with db.engine.begin() as conn:
                conn.execute(UserTask.__table__.insert().values(
                    user_id=user_.id,
                    campaign_id=campaign_.id,
                    task_id=task.id,
                    status="completed",
                    completed_at=now,
                    reward_earned=Decimal("0.01"),
                ))
                conn.execute(
                    User.__table__.update()
                    .where(User.__table__.c.id == user_.id)
                    .values(version=User.__table__.c.version + 1, earnings=Decimal("0.01"))
                )
                conn.execute(Transaction.__table__.insert().values(
                    user_id=user_.id,
                    amount=Decimal("0.01"),
                    activity="Completed task",
                    description="Earned by the competing request",
                ))
        return real_ensure(campaign_, user_, now)

    monkeypatch.setattr(completion, "ensure_participant", _competing_completion)
    with pytest.raises(Conflict) as exc:
        complete_task(user.id, campaign.id, task.id, now=DAY_THREE)

    assert exc.value.code == "TASK_ALREADY_COMPLETED"
    assert calls["n"] == 1
    assert Transaction.query.count() == 1
    assert db.session.get(User, user.id).earnings == Decimal("0.01")
    assert UserTask.query.filter_by(user_id=user.id, task_id=task.id).count() == 1

def test_run_atomically_retries_stale_writes(app):
    attempts = []

    def _work():
        attempts.append(1)
        if len(attempts) == 1:
            raise StaleDataError("version mismatch")
        return "ok"

    assert run_atomically(_work, label="test") == "ok"
    assert len(attempts) == 2


def test_run_atomically_gives_up_after_max_retries(app):
    app.config["ENGINE_MAX_RETRIES"] = 2

    def _work():
        raise StaleDataError("version mismatch")

    with pytest.raises(Internal) as exc:
        run_atomically(_work, label="test", code="TASK_COMPLETION_FAILED")
    assert exc.value.code == "TASK_COMPLETION_FAILED"
