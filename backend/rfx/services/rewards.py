"""Reward arithmetic for campaign tasks.

Everything here is a pure function of its inputs (no clock, no session),
so the "current day" of a campaign is recomputed on every request.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from rfx.models.campaign import DEFAULT_CO2_IMPACT
from rfx.utils.money import quantize_tokens, to_decimal

ONE_DAY = timedelta(days=1)

PENALTY_PER_LATE_DAY = Decimal("0.1")
PENALTY_FLOOR = Decimal("0.5")
MIN_VALID_CO2_IMPACT = Decimal("0.01")


@dataclass(frozen=True)
class Penalty:
    days_late: int
    penalty_factor: Decimal

    def to_dict(self) -> dict:
        pct = (Decimal("1") - self.penalty_factor) * 100
        return {
            "days_late": self.days_late,
            "penalty_factor": float(self.penalty_factor),
            "message": f"{pct.normalize():f}% penalty applied",
        }


def campaign_day(now: datetime, start_date: datetime) -> int:
    """1-based campaign day for `now`; day 1 starts at start_date."""
    return (now - start_date) // ONE_DAY + 1


def current_day(now: datetime, start_date: datetime, duration: int) -> int:
    return min(campaign_day(now, start_date), int(duration))


def day_time_left(now: datetime, start_date: datetime, duration: int) -> dict:
    day = current_day(now, start_date, duration)
    remaining = (start_date + day * ONE_DAY) - now
    seconds = max(0, int(remaining.total_seconds()))
    return {
        "hours": seconds // 3600,
        "minutes": (seconds % 3600) // 60,
        "seconds": seconds % 60,
    }


def penalty_factor(days_late: int) -> Decimal:
    if days_late <= 0:
        return Decimal("1")
    return max(PENALTY_FLOOR, Decimal("1") - days_late * PENALTY_PER_LATE_DAY)


def final_reward(base_reward, factor: Decimal) -> Decimal:
    return quantize_tokens(to_decimal(base_reward) * factor)


def compute_reward(base_reward, task_day: int, now: datetime, start_date: datetime):
    """Returns (reward, Penalty or None) for completing a task due on `task_day`."""
    days_late = campaign_day(now, start_date) - int(task_day or 1)
    factor = penalty_factor(days_late)
    reward = final_reward(base_reward, factor)
    if reward < 0:
        raise ValueError(f"invalid reward {reward}")
    penalty = Penalty(days_late=days_late, penalty_factor=factor) if days_late > 0 else None
    return reward, penalty


def resolve_co2_impact(raw):
    """Returns (impact, healed). Missing or near-zero seed values fall back to 2.0."""
    if raw is not None:
        value = to_decimal(raw, default="0")
        if value > MIN_VALID_CO2_IMPACT:
            return value, False
    return DEFAULT_CO2_IMPACT, True


def progress_summary(completed: int, total: int) -> dict:
    completed = int(completed or 0)
    total = int(total or 0)
    pct = (completed / total) * 100 if total > 0 else 0.0
    return {
        "completed": completed,
        "total": total,
        "percentage": round(min(pct, 100.0), 2),
    }
