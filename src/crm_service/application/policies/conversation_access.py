from __future__ import annotations

from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import ForbiddenError, NotFoundError, ValidationError
from crm_service.application.repositories.group import GroupReader
from crm_service.domain.entities.conversation import Conversation, GroupConversation


async def assert_conversation_access(
    principal: Principal,
    conversation: Conversation,
    groups: GroupReader,
) -> Conversation:
    """Raise unless the principal may read and post in the conversation."""
    if isinstance(conversation, GroupConversation):
        group = await groups.get_by_id(conversation.group_id)
        if group is None:
            raise NotFoundError("Group not found")
        if not await groups.is_member(group.id, principal.id):
            raise ForbiddenError("Not a member of this group")
        return conversation

    if conversation.user_id == principal.id:
        raise ValidationError("Cannot open a conversation with yourself")
    return conversation
