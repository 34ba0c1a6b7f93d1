"""Per-principal chat state kept in sync with the backing store.

A ``ChatSynchronizer`` owns the conversation lists, the visible message
history of the selected conversation and the unread counters of one
principal. It is driven by user operations (open, send, create group)
and by ``handle_inserted`` for every message insert pushed by the
realtime channel. All state lives on a single event loop; mutations are
last-write-wins.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from uuid import UUID

from crm_service.application.dto.chat import (
    ContactSummary,
    GroupMemberView,
    GroupSummary,
    MessageView,
)
from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import AppError
from crm_service.application.ports.notifier import Notifier
from crm_service.application.uow import StoreFactory
from crm_service.domain.entities.conversation import (
    Conversation,
    DirectConversation,
    GroupConversation,
    make_conversation,
)
from crm_service.domain.entities.group import Group
from crm_service.domain.entities.message import Message
from crm_service.domain.value_objects.enums import MessageState
from crm_service.domain.value_objects.ids import conversation_key
from crm_service.services import chat_service
from crm_service.services.chat_service import PresenceLookup

logger = logging.getLogger(__name__)


class ChatSynchronizer:
    def __init__(
        self,
        principal: Principal | None,
        open_store: StoreFactory,
        notifier: Notifier,
        *,
        is_online: PresenceLookup | None = None,
    ) -> None:
        self.principal = principal
        self._open_store = open_store
        self._notifier = notifier
        self._is_online = is_online or (lambda _user_id: False)

        self.contacts: list[ContactSummary] = []
        self.groups: list[GroupSummary] = []
        self.messages: list[MessageView] = []
        self.unread_counts: dict[str, int] = {}
        self.selected: Conversation | None = None
        self.loading = False

    # -- lists -----------------------------------------------------------

    async def load(self) -> None:
        """Load contacts and groups together."""
        if self.principal is None:
            return
        self.loading = True
        try:
            await asyncio.gather(self.list_contacts(), self.list_groups())
        finally:
            self.loading = False

    async def list_contacts(self) -> list[ContactSummary]:
        if self.principal is None:
            return []
        try:
            async with self._open_store() as store:
                contacts = await chat_service.list_contacts(
                    self.principal, store, is_online=self._is_online,
                )
        except AppError:
            logger.exception("Error fetching contacts")
            await self._notifier.error("Failed to load contacts")
            return self.contacts

        self.contacts = contacts
        self.unread_counts.update({c.key: c.unread_count for c in contacts})
        return contacts

    async def list_groups(self) -> list[GroupSummary]:
        if self.principal is None:
            return []
        try:
            async with self._open_store() as store:
                groups = await chat_service.list_groups(self.principal, store)
        except AppError:
            logger.exception("Error fetching groups")
            await self._notifier.error("Failed to load groups")
            return self.groups

        self.groups = groups
        self.unread_counts.update({g.key: g.unread_count for g in groups})
        return groups

    # -- conversation ------------------------------------------------------

    def select(self, conversation: Conversation | None) -> None:
        self.selected = conversation
        if conversation is None:
            self.messages = []

    async def open_conversation(self, conversation_id: str | UUID, is_group: bool) -> list[MessageView]:
        """Select a conversation, load its history and mark it read.

        A result that arrives after the selection moved elsewhere is
        discarded.
        """
        conversation = make_conversation(conversation_id, is_group)
        self.select(conversation)
        if self.principal is None:
            return self.messages

        try:
            async with self._open_store() as store:
                history = await chat_service.load_history(self.principal, conversation, store)
        except AppError:
            logger.exception("Error fetching messages for %s", conversation.key)
            await self._notifier.error("Failed to load messages")
            return self.messages

        if self.selected != conversation:
            logger.debug("Discarding stale history for %s", conversation.key)
            return self.messages

        try:
            async with self._open_store() as store:
                history = await chat_service.mark_history_read(self.principal, history, store)
        except AppError:
            logger.exception("Error marking %s read", conversation.key)
            await self._notifier.error("Failed to load messages")
            return self.messages

        # counters and history are applied together, with no await in between
        self._set_unread(conversation.key, 0)
        if self.selected != conversation:
            return self.messages

        # keeps pending sends and inserts merged while history was loading
        stored_ids = {m.id for m in history}
        extra = [
            v for v in self.messages
            if v.message.id not in stored_ids and self._is_in(conversation, v.message)
        ]
        merged = [MessageView(m) for m in history] + extra
        self.messages = sorted(merged, key=lambda v: v.message.created_at)
        return self.messages

    async def send_message(self, content: str) -> Message | None:
        """Send to the selected conversation with an optimistic local append."""
        conversation = self.selected
        if self.principal is None or conversation is None or not content or not content.strip():
            return None

        message = Message(
            id=uuid.uuid4(),
            sender_id=self.principal.id,
            receiver_id=None if conversation.is_group else conversation.user_id,
            group_id=conversation.group_id if conversation.is_group else None,
            content=content,
            created_at=datetime.now(timezone.utc),
            read=False,
        )
        self.messages = [*self.messages, MessageView(message, MessageState.PENDING)]

        try:
            async with self._open_store() as store:
                saved = await chat_service.send_message(
                    self.principal,
                    conversation,
                    content,
                    store,
                    message_id=message.id,
                    created_at=message.created_at,
                )
        except AppError:
            logger.exception("Error sending message")
            self.messages = [v for v in self.messages if v.message.id != message.id]
            await self._notifier.error("Failed to send message")
            return None

        if self.selected == conversation:
            self._merge(saved)
        self._refresh_preview(conversation, saved)
        return saved

    # -- groups ------------------------------------------------------------

    async def create_group(self, name: str, description: str | None, member_ids: list[str]) -> Group | None:
        if self.principal is None:
            await self._notifier.error("You must be logged in to create a group")
            return None

        try:
            async with self._open_store() as store:
                result = await chat_service.create_group(
                    self.principal, name, description, member_ids, store,
                )
        except AppError:
            logger.exception("Error creating group")
            await self._notifier.error("Failed to create group")
            return None

        await self.list_groups()
        await self._notifier.success(f'Group "{result.group.name}" created successfully')
        return result.group

    async def get_group_members(self, group_id: UUID) -> list[GroupMemberView]:
        try:
            async with self._open_store() as store:
                return await chat_service.get_group_members(group_id, store)
        except AppError:
            logger.exception("Error fetching group members")
            await self._notifier.error("Failed to load group members")
            return []

    async def add_group_member(self, group_id: UUID, user_id: str) -> bool:
        try:
            async with self._open_store() as store:
                await chat_service.add_group_member(group_id, user_id, store)
        except AppError:
            logger.exception("Error adding group member")
            await self._notifier.error("Failed to add member to group")
            return False
        await self._notifier.success("Member added to group")
        return True

    async def remove_group_member(self, group_id: UUID, user_id: str) -> bool:
        try:
            async with self._open_store() as store:
                await chat_service.remove_group_member(group_id, user_id, store)
        except AppError:
            logger.exception("Error removing group member")
            await self._notifier.error("Failed to remove member from group")
            return False
        await self._notifier.success("Member removed from group")
        return True

    # -- realtime ----------------------------------------------------------

    async def handle_inserted(self, message: Message) -> bool:
        """React to a message insert pushed by the backing store.

        Returns whether the insert touched this principal's state.
        """
        if self.principal is None:
            return False
        me = self.principal.id
        is_open = self.selected is not None and self._is_in(self.selected, message)

        if is_open:
            self._merge(message)
            if message.sender_id != me and not message.read:
                await self._mark_open_message_read(message)

        if message.group_id is None:
            if message.receiver_id == me:
                contact = DirectConversation(user_id=message.sender_id)
                if not is_open:
                    self._increment_unread(contact.key)
                self._refresh_preview(contact, message)
            elif message.sender_id == me:
                self._refresh_preview(DirectConversation(user_id=message.receiver_id), message)
            return is_open or me in (message.sender_id, message.receiver_id)

        group = GroupConversation(group_id=message.group_id)
        if not self._knows_group(message.group_id):
            return is_open
        if message.sender_id != me and not is_open:
            self._increment_unread(group.key)
        self._refresh_preview(group, message)
        return True

    async def _mark_open_message_read(self, message: Message) -> None:
        try:
            async with self._open_store() as store:
                await chat_service.mark_read(self.principal, [message.id], store)
        except AppError:
            logger.exception("Error marking message %s read", message.id)
            await self._notifier.error("Failed to mark message as read")
            return
        self.messages = [
            MessageView(replace(v.message, read=True), v.state) if v.message.id == message.id else v
            for v in self.messages
        ]

    # -- helpers -------------------------------------------------------------

    def _is_in(self, conversation: Conversation, message: Message) -> bool:
        if isinstance(conversation, GroupConversation):
            return message.group_id == conversation.group_id
        if message.group_id is not None:
            return False
        me = self.principal.id
        other = conversation.user_id
        return (message.sender_id == me and message.receiver_id == other) or (
            message.sender_id == other and message.receiver_id == me
        )

    def _merge(self, message: Message) -> None:
        """Append a stored message, reconciling it with a pending copy."""
        for i, view in enumerate(self.messages):
            if view.message.id != message.id:
                continue
            if view.is_pending:
                updated = list(self.messages)
                updated[i] = MessageView(message, MessageState.CONFIRMED)
                self.messages = updated
            return
        self.messages = [*self.messages, MessageView(message, MessageState.CONFIRMED)]

    def _knows_group(self, group_id: UUID) -> bool:
        return any(g.group_id == group_id for g in self.groups)

    def _increment_unread(self, key: str) -> None:
        self._set_unread(key, self.unread_counts.get(key, 0) + 1)

    def _set_unread(self, key: str, count: int) -> None:
        self.unread_counts = {**self.unread_counts, key: count}
        self.contacts = [replace(c, unread_count=count) if c.key == key else c for c in self.contacts]
        self.groups = [replace(g, unread_count=count) if g.key == key else g for g in self.groups]

    def _refresh_preview(self, conversation: Conversation, message: Message) -> None:
        key = conversation.key
        unread = self.unread_counts.get(key, 0)
        if conversation.is_group:
            self.groups = [
                replace(
                    g,
                    last_message=message.content,
                    last_message_time=message.created_at,
                    unread_count=unread,
                )
                if g.key == key else g
                for g in self.groups
            ]
        else:
            self.contacts = [
                replace(
                    c,
                    last_message=message.content,
                    last_message_time=message.created_at,
                    unread_count=unread,
                )
                if c.key == key else c
                for c in self.contacts
            ]

    def unread_for(self, conversation_id: str | UUID, is_group: bool) -> int:
        return self.unread_counts.get(conversation_key(conversation_id, is_group), 0)
