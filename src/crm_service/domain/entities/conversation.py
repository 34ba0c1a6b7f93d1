from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from crm_service.domain.value_objects.ids import conversation_key


@dataclass(frozen=True, slots=True)
class DirectConversation:
    """One-to-one chat, identified by the counterpart's user id."""

    user_id: str

    is_group = False

    @property
    def key(self) -> str:
        return conversation_key(self.user_id, False)


@dataclass(frozen=True, slots=True)
class GroupConversation:
    group_id: UUID

    is_group = True

    @property
    def key(self) -> str:
        return conversation_key(self.group_id, True)


Conversation = DirectConversation | GroupConversation


def make_conversation(conversation_id: str | UUID, is_group: bool) -> Conversation:
    if is_group:
        group_id = conversation_id if isinstance(conversation_id, UUID) else UUID(conversation_id)
        return GroupConversation(group_id=group_id)
    return DirectConversation(user_id=str(conversation_id))
