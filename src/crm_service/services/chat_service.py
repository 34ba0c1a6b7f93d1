"""Store-facing chat operations.

Each function runs inside one unit of work supplied by the caller and
commits it when it writes. ``ChatSynchronizer`` and the HTTP routes are
built on top of these.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from crm_service.application.dto.chat import (
    ContactSummary,
    CreateGroupResult,
    GroupMemberView,
    GroupSummary,
)
from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import AppError, NotFoundError, ValidationError
from crm_service.application.policies.conversation_access import assert_conversation_access
from crm_service.application.ports.bus import MESSAGE_INSERTED
from crm_service.application.uow import DataStore
from crm_service.domain.entities.conversation import Conversation, GroupConversation
from crm_service.domain.entities.group import Group, GroupMember
from crm_service.domain.entities.message import Message
from crm_service.domain.value_objects.enums import GroupMemberRole

logger = logging.getLogger(__name__)

PresenceLookup = Callable[[str], bool]


def _offline(_user_id: str) -> bool:
    return False


def message_payload(message: Message) -> dict[str, object]:
    return {
        "id": str(message.id),
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "group_id": str(message.group_id) if message.group_id else None,
        "content": message.content,
        "created_at": message.created_at.isoformat(),
        "read": message.read,
    }


async def list_contacts(
    principal: Principal,
    store: DataStore,
    *,
    is_online: PresenceLookup = _offline,
) -> list[ContactSummary]:
    """Every other profile with its last exchanged message and unread count."""
    profiles = await store.profiles.list_except(principal.id)
    summaries: list[ContactSummary] = []
    for profile in profiles:
        if profile.user_id == principal.id:
            continue
        last = await store.messages.last_direct(principal.id, profile.user_id)
        unread = await store.messages.count_unread_direct(profile.user_id, principal.id)
        summaries.append(
            ContactSummary(
                profile=profile,
                last_message=last.content if last else "",
                last_message_time=last.created_at if last else None,
                unread_count=unread,
                is_online=is_online(profile.user_id),
            )
        )
    return summaries


async def list_groups(principal: Principal, store: DataStore) -> list[GroupSummary]:
    groups = await store.groups.list_for_member(principal.id)
    summaries: list[GroupSummary] = []
    for group in groups:
        last = await store.messages.last_group(group.id)
        unread = await store.messages.count_unread_group(group.id, principal.id)
        summaries.append(
            GroupSummary(
                group=group,
                last_message=last.content if last else "",
                last_message_time=last.created_at if last else None,
                unread_count=unread,
            )
        )
    return summaries


async def load_history(
    principal: Principal,
    conversation: Conversation,
    store: DataStore,
) -> list[Message]:
    """Conversation messages in ascending ``created_at`` order."""
    await assert_conversation_access(principal, conversation, store.groups)
    if isinstance(conversation, GroupConversation):
        return await store.messages.list_group(conversation.group_id)
    return await store.messages.list_direct(principal.id, conversation.user_id)


async def mark_history_read(
    principal: Principal,
    history: list[Message],
    store: DataStore,
) -> list[Message]:
    """Mark unread messages authored by others as read.

    Returns the history with the ``read`` flags updated.
    """
    unread_ids = {m.id for m in history if not m.read and m.sender_id != principal.id}
    if not unread_ids:
        return history
    await store.messages_w.mark_read(sorted(unread_ids, key=str))
    await store.commit()
    return [replace(m, read=True) if m.id in unread_ids else m for m in history]


async def open_conversation(
    principal: Principal,
    conversation: Conversation,
    store: DataStore,
) -> list[Message]:
    history = await load_history(principal, conversation, store)
    return await mark_history_read(principal, history, store)


async def mark_read(
    principal: Principal,
    message_ids: list[uuid.UUID],
    store: DataStore,
) -> None:
    if not message_ids:
        return
    await store.messages_w.mark_read(message_ids)
    await store.commit()


async def send_message(
    principal: Principal,
    conversation: Conversation,
    content: str,
    store: DataStore,
    *,
    message_id: uuid.UUID | None = None,
    created_at: datetime | None = None,
) -> Message:
    """Insert a message and queue its ``messages.insert`` event."""
    if not content or not content.strip():
        raise ValidationError("Message content is empty")
    await assert_conversation_access(principal, conversation, store.groups)

    is_group = isinstance(conversation, GroupConversation)
    message = Message(
        id=message_id or uuid.uuid4(),
        sender_id=principal.id,
        receiver_id=None if is_group else conversation.user_id,
        group_id=conversation.group_id if is_group else None,
        content=content,
        created_at=created_at or datetime.now(timezone.utc),
        read=False,
    )
    message = await store.messages_w.create(message)
    await store.outbox.add(MESSAGE_INSERTED, message_payload(message))
    await store.commit()
    return message


async def create_group(
    principal: Principal,
    name: str,
    description: str | None,
    member_ids: list[str],
    store: DataStore,
) -> CreateGroupResult:
    """Create a group with the creator as admin and the rest as members.

    A failed member insert is logged and reported in the result; the
    group and the remaining members are kept.
    """
    if not name or not name.strip():
        raise ValidationError("Group name is required")

    now = datetime.now(timezone.utc)
    group = await store.groups_w.create(
        Group(
            id=uuid.uuid4(),
            name=name.strip(),
            description=description,
            created_by=principal.id,
            created_at=now,
        )
    )
    await store.groups_w.add_member(
        GroupMember(
            id=uuid.uuid4(),
            group_id=group.id,
            user_id=principal.id,
            role=GroupMemberRole.ADMIN,
            joined_at=now,
        )
    )

    failed: list[str] = []
    for user_id in dict.fromkeys(member_ids):
        if user_id == principal.id:
            continue
        try:
            await store.groups_w.add_member(
                GroupMember(
                    id=uuid.uuid4(),
                    group_id=group.id,
                    user_id=user_id,
                    role=GroupMemberRole.MEMBER,
                    joined_at=now,
                )
            )
        except AppError as exc:
            logger.error("Error adding member %s to group %s: %s", user_id, group.id, exc.detail)
            failed.append(user_id)

    await store.commit()
    logger.info("Group %s created by %s (%d member failures)", group.id, principal.id, len(failed))
    return CreateGroupResult(group=group, failed_member_ids=failed)


async def get_group_members(group_id: uuid.UUID, store: DataStore) -> list[GroupMemberView]:
    members = await store.groups.list_members(group_id)
    if not members:
        return []
    by_user = {m.user_id: m for m in members}
    profiles = await store.profiles.list_by_user_ids(list(by_user))
    return [
        GroupMemberView(
            profile=profile,
            group_role=by_user[profile.user_id].role,
            joined_at=by_user[profile.user_id].joined_at,
        )
        for profile in profiles
    ]


async def add_group_member(group_id: uuid.UUID, user_id: str, store: DataStore) -> GroupMember:
    group = await store.groups.get_by_id(group_id)
    if group is None:
        raise NotFoundError("Group not found")
    member = GroupMember(
        id=uuid.uuid4(),
        group_id=group_id,
        user_id=user_id,
        role=GroupMemberRole.MEMBER,
        joined_at=datetime.now(timezone.utc),
    )
    await store.groups_w.add_member(member)
    await store.commit()
    return member


async def remove_group_member(group_id: uuid.UUID, user_id: str, store: DataStore) -> None:
    removed = await store.groups_w.remove_member(group_id, user_id)
    if not removed:
        raise NotFoundError("Group member not found")
    await store.commit()
