from rfx.extensions import db
from rfx.utils.clock import utcnow


class CampaignParticipant(db.Model):
    """Campaign-side copy of a joined user's progress, kept for admin queries."""

    __tablename__ = "campaign_participants"
    __table_args__ = (db.UniqueConstraint("campaign_id", "user_id", name="uq_campaign_participants_campaign_user"),)

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey("campaigns.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    username = db.Column(db.String(64), nullable=False, default="")
    email = db.Column(db.String(255), nullable=False, default="")

    completed = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_activity = db.Column(db.DateTime, nullable=False, default=utcnow)

    campaign = db.relationship("Campaign", back_populates="participants_list")
    tasks = db.relationship(
        "ParticipantTask",
        back_populates="participant",
        cascade="all, delete-orphan",
        order_by="ParticipantTask.id",
    )

    def task_entry(self, task_id: int):
        for t in self.tasks:
            if t.task_id == task_id:
                return t
        return None

    def to_dict(self, total_tasks: int = 0) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "email": self.email,
            "completed": int(self.completed or 0),
            "completed_tasks": sum(1 for t in self.tasks if t.status == "completed"),
            "total_tasks": int(total_tasks),
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
            "last_activity": (self.last_activity or self.joined_at).isoformat() if (self.last_activity or self.joined_at) else None,
            "tasks": [t.to_dict() for t in self.tasks],
        }


class ParticipantTask(db.Model):
    __tablename__ = "participant_tasks"
    __table_args__ = (db.UniqueConstraint("participant_id", "task_id", name="uq_participant_tasks_participant_task"),)

    id = db.Column(db.Integer, primary_key=True)
    participant_id = db.Column(db.Integer, db.ForeignKey("campaign_participants.id"), nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey("campaign_tasks.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="open")
    proof = db.Column(db.String(512), nullable=True)
    submitted_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    participant = db.relationship("CampaignParticipant", back_populates="tasks")

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "status": self.status,
            "proof": self.proof,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
