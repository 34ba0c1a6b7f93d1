from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from crm_service.domain.entities.group import Group
from crm_service.domain.entities.message import Message
from crm_service.domain.entities.profile import Profile
from crm_service.domain.value_objects.enums import MessageState
from crm_service.domain.value_objects.ids import conversation_key


@dataclass(frozen=True, slots=True)
class ContactSummary:
    profile: Profile
    last_message: str = ""
    last_message_time: datetime | None = None
    unread_count: int = 0
    is_online: bool = False

    @property
    def user_id(self) -> str:
        return self.profile.user_id

    @property
    def key(self) -> str:
        return conversation_key(self.profile.user_id, False)


@dataclass(frozen=True, slots=True)
class GroupSummary:
    group: Group
    last_message: str = ""
    last_message_time: datetime | None = None
    unread_count: int = 0

    @property
    def group_id(self) -> UUID:
        return self.group.id

    @property
    def key(self) -> str:
        return conversation_key(self.group.id, True)


@dataclass(frozen=True, slots=True)
class GroupMemberView:
    profile: Profile
    group_role: str
    joined_at: datetime


@dataclass(frozen=True, slots=True)
class CreateGroupResult:
    group: Group
    failed_member_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MessageView:
    """A locally visible message, either optimistically appended or stored."""

    message: Message
    state: MessageState = MessageState.CONFIRMED

    @property
    def is_pending(self) -> bool:
        return self.state == MessageState.PENDING
