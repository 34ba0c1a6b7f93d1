"""Import all models so ``Base.metadata`` knows every table."""
from crm_service.infrastructure.db.models.group import GroupMemberModel, GroupModel
from crm_service.infrastructure.db.models.message import MessageModel
from crm_service.infrastructure.db.models.outbox import OutboxMessageModel
from crm_service.infrastructure.db.models.profile import ProfileModel

__all__ = [
    "GroupMemberModel",
    "GroupModel",
    "MessageModel",
    "OutboxMessageModel",
    "ProfileModel",
]
