from decimal import Decimal

from sqlalchemy import event

from rfx.extensions import db
from rfx.utils.clock import utcnow
from rfx.utils.money import format_tokens

TRANSACTION_TYPES = ("earn", "send", "receive")
TRANSACTION_CATEGORIES = ("Game", "Campaign", "Real World", "Bonus", "Referral", "Competition", "Transfer")


class LedgerImmutableError(RuntimeError):
    pass


class Transaction(db.Model):
    """Append-only ledger entry. Balances live on User; this is the audit trail."""

    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(20, 5), nullable=False, default=Decimal("0"))
    type = db.Column(db.String(16), nullable=False, default="earn")
    category = db.Column(db.String(32), nullable=False, default="Campaign")
    activity = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=False)
    color = db.Column(db.String(16), nullable=False, default="green")
    reference = db.Column(db.String(80), nullable=True, index=True)

    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self):
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "amount": format_tokens(self.amount),
            "type": self.type,
            "category": self.category,
            "activity": self.activity,
            "description": self.description,
            "color": self.color,
            "reference": self.reference or "",
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@event.listens_for(Transaction, "before_update")
def _refuse_ledger_update(mapper, connection, target):
    raise LedgerImmutableError(f"transaction {target.id} is write-once")
