from datetime import datetime, timedelta
from decimal import Decimal

from rfx.extensions import db
from rfx.utils.clock import utcnow
from rfx.utils.money import format_tokens

MAX_TASKS_PER_DAY = 5
DEFAULT_CO2_IMPACT = Decimal("2.0")

CAMPAIGN_CATEGORIES = ("Ocean", "Forest", "Air", "Community")
CAMPAIGN_DIFFICULTIES = ("Easy", "Medium", "Hard")
TASK_TYPES = ("social-follow", "social-post", "video-watch", "article-read", "discord-join", "proof-upload")
# Tasks of these types are only completed through an approved proof.
PROOF_TASK_TYPES = ("proof-upload",)


class Campaign(db.Model):
    __tablename__ = "campaigns"

    id = db.Column(db.Integer, primary_key=True)

    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(1000), nullable=False, default="")
    category = db.Column(db.String(32), nullable=False, default="Community")
    difficulty = db.Column(db.String(16), nullable=False, default="Easy")
    reward = db.Column(db.Numeric(20, 5), nullable=False, default=Decimal("0.005"))
    image = db.Column(db.String(512), nullable=True)
    featured = db.Column(db.Boolean, nullable=False, default=False)

    start_date = db.Column(db.DateTime, nullable=False)
    duration = db.Column(db.Integer, nullable=False)  # days

    # Aggregates. completed_tasks counts per-user completions, not distinct tasks.
    participants = db.Column(db.Integer, nullable=False, default=0)
    completed_tasks = db.Column(db.Integer, nullable=False, default=0)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    version = db.Column(db.Integer, nullable=False)

    tasks_list = db.relationship(
        "CampaignTask",
        back_populates="campaign",
        cascade="all, delete-orphan",
        order_by="CampaignTask.id",
    )
    participants_list = db.relationship(
        "CampaignParticipant",
        back_populates="campaign",
        cascade="all, delete-orphan",
        order_by="CampaignParticipant.id",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def end_date(self) -> datetime:
        return self.start_date + timedelta(days=int(self.duration or 0))

    def status_at(self, now: datetime) -> str:
        if now < self.start_date:
            return "upcoming"
        if now > self.end_date:
            return "completed"
        return "active"

    def task(self, task_id: int):
        for t in self.tasks_list:
            if t.id == task_id:
                return t
        return None

    def participant(self, user_id: int):
        for p in self.participants_list:
            if p.user_id == user_id:
                return p
        return None

    def to_dict(self, now: datetime = None) -> dict:
        now = now or utcnow()
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "difficulty": self.difficulty,
            "reward": format_tokens(self.reward),
            "image": self.image,
            "featured": bool(self.featured),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.start_date else None,
            "duration": int(self.duration or 0),
            "status": self.status_at(now),
            "participants": int(self.participants or 0),
            "completed_tasks": int(self.completed_tasks or 0),
            "task_count": len(self.tasks_list),
        }


class CampaignTask(db.Model):
    __tablename__ = "campaign_tasks"

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey("campaigns.id"), nullable=False, index=True)

    day = db.Column(db.Integer, nullable=False, default=1)  # 1-based campaign day the task is due
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=False, default="")
    type = db.Column(db.String(32), nullable=False, default="proof-upload")
    platform = db.Column(db.String(32), nullable=True)
    reward = db.Column(db.Numeric(20, 5), nullable=False, default=Decimal("0.001"))
    co2_impact = db.Column(db.Numeric(12, 4), nullable=True)
    content_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    campaign = db.relationship("Campaign", back_populates="tasks_list")
    completed_by = db.relationship(
        "TaskCompletion",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskCompletion.id",
    )

    @property
    def requires_proof(self) -> bool:
        return self.type in PROOF_TASK_TYPES

    def completion_for(self, user_id: int):
        for c in self.completed_by:
            if c.user_id == user_id:
                return c
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "day": int(self.day or 1),
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "platform": self.platform,
            "reward": format_tokens(self.reward),
            "co2_impact": float(self.co2_impact) if self.co2_impact is not None else None,
            "content_url": self.content_url,
        }


class TaskCompletion(db.Model):
    """The task-side view: one entry per user who interacted with the task."""

    __tablename__ = "task_completions"
    __table_args__ = (db.UniqueConstraint("task_id", "user_id", name="uq_task_completions_task_user"),)

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("campaign_tasks.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    proof_url = db.Column(db.String(512), nullable=True)
    submitted_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    task = db.relationship("CampaignTask", back_populates="completed_by")

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "user_id": self.user_id,
            "status": self.status,
            "proof_url": self.proof_url,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
