from .user import User, UserCampaign, UserTask  # noqa: F401
from .campaign import Campaign, CampaignTask, TaskCompletion  # noqa: F401
from .participant import CampaignParticipant, ParticipantTask  # noqa: F401
from .transaction import Transaction, LedgerImmutableError  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
