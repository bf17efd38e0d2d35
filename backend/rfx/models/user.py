from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from rfx.extensions import db
from rfx.utils.clock import utcnow
from rfx.utils.money import format_co2, format_tokens


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), unique=True, index=True, nullable=False)
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    full_name = db.Column(db.String(120), nullable=False, default="")
    wallet_address = db.Column(db.String(128), unique=True, nullable=True)

    password_hash = db.Column(db.String(255), nullable=False, default="")

    earnings = db.Column(db.Numeric(20, 5), nullable=False, default=Decimal("0"))
    co2_saved = db.Column(db.Numeric(20, 2), nullable=False, default=Decimal("0"))
    xp = db.Column(db.Integer, nullable=False, default=0)
    level = db.Column(db.Integer, nullable=False, default=1)

    # Roles are explicit flags; nothing compares email strings.
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_super_admin = db.Column(db.Boolean, nullable=False, default=False)
    # Users are soft-deactivated, never deleted
    is_active_account = db.Column("is_active", db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    # Optimistic concurrency token
    version = db.Column(db.Integer, nullable=False)

    campaigns = db.relationship(
        "UserCampaign",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserCampaign.id",
    )
    tasks = db.relationship(
        "UserTask",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserTask.id",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_active(self) -> bool:
        return bool(self.is_active_account)

    def set_password(self, raw_password: str) -> None:
        self.password_hash = generate_password_hash(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return bool(self.password_hash) and check_password_hash(self.password_hash, raw_password)

    def campaign_entry(self, campaign_id: int):
        for uc in self.campaigns:
            if uc.campaign_id == campaign_id:
                return uc
        return None

    def task_entry(self, campaign_id: int, task_id: int):
        for ut in self.tasks:
            if ut.campaign_id == campaign_id and ut.task_id == task_id:
                return ut
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "wallet_address": self.wallet_address,
            "earnings": format_tokens(self.earnings),
            "co2_saved": format_co2(self.co2_saved),
            "xp": int(self.xp or 0),
            "level": int(self.level or 1),
            "is_admin": bool(self.is_admin),
            "is_super_admin": bool(self.is_super_admin),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class UserCampaign(db.Model):
    """A user's membership in a campaign, with their running completion count."""

    __tablename__ = "user_campaigns"
    __table_args__ = (db.UniqueConstraint("user_id", "campaign_id", name="uq_user_campaigns_user_campaign"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey("campaigns.id"), nullable=False, index=True)

    completed = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_activity = db.Column(db.DateTime, nullable=False, default=utcnow)

    user = db.relationship("User", back_populates="campaigns")
    campaign = db.relationship("Campaign")

    def to_dict(self) -> dict:
        return {
            "campaign_id": self.campaign_id,
            "completed": int(self.completed or 0),
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
        }


class UserTask(db.Model):
    """The user-side view of a (campaign, task) state."""

    __tablename__ = "user_tasks"
    __table_args__ = (
        db.UniqueConstraint("user_id", "campaign_id", "task_id", name="uq_user_tasks_user_campaign_task"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey("campaigns.id"), nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey("campaign_tasks.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="open")  # open/pending/completed/rejected
    proof = db.Column(db.String(512), nullable=True)
    submitted_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    reward_earned = db.Column(db.Numeric(20, 5), nullable=True)

    user = db.relationship("User", back_populates="tasks")

    def to_dict(self) -> dict:
        return {
            "campaign_id": self.campaign_id,
            "task_id": self.task_id,
            "status": self.status,
            "proof": self.proof,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "reward_earned": format_tokens(self.reward_earned) if self.reward_earned is not None else None,
        }
