"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator
from uuid import UUID

import pytest

from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import AuthenticationError, ConflictError, DataFetchError
from crm_service.application.ports.auth import SessionListener
from crm_service.application.repositories.outbox import OutboxRecord
from crm_service.domain.entities.group import Group, GroupMember
from crm_service.domain.entities.message import Message
from crm_service.domain.entities.profile import Profile
from crm_service.domain.value_objects.enums import GroupMemberRole, Role

BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def alice() -> Principal:
    return Principal(id="alice", email="alice@example.com", display_name="Alice")


@pytest.fixture
def bob() -> Principal:
    return Principal(id="bob", email="bob@example.com", display_name="Bob")


def make_profile(user_id: str, role: str = Role.EMPLOYEE, *, full_name: str | None = None) -> Profile:
    return Profile(
        id=uuid.uuid4(),
        user_id=user_id,
        full_name=full_name or user_id.title(),
        email=f"{user_id}@example.com",
        role=role,
        avatar_url=None,
        created_at=BASE_TIME,
    )


def make_message(
    sender_id: str,
    *,
    receiver_id: str | None = None,
    group_id: UUID | None = None,
    content: str = "hello",
    minutes: int = 0,
    read: bool = False,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        sender_id=sender_id,
        receiver_id=receiver_id,
        group_id=group_id,
        content=content,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        read=read,
    )


def make_group(created_by: str = "alice", *, name: str = "Project Alpha") -> Group:
    return Group(
        id=uuid.uuid4(),
        name=name,
        description=None,
        created_by=created_by,
        created_at=BASE_TIME,
    )


def make_member(group: Group, user_id: str, role: str = GroupMemberRole.MEMBER) -> GroupMember:
    return GroupMember(
        id=uuid.uuid4(),
        group_id=group.id,
        user_id=user_id,
        role=role,
        joined_at=BASE_TIME,
    )


def _ordered(messages: list[Message]) -> list[Message]:
    return sorted(messages, key=lambda m: (m.created_at, str(m.id)))


def _is_direct_between(m: Message, user_a: str, user_b: str) -> bool:
    return m.group_id is None and (
        (m.sender_id == user_a and m.receiver_id == user_b)
        or (m.sender_id == user_b and m.receiver_id == user_a)
    )


@dataclass
class FakeProfileReader:
    _profiles: list[Profile] = field(default_factory=list)

    async def get_by_user_id(self, user_id: str) -> Profile | None:
        return next((p for p in self._profiles if p.user_id == user_id), None)

    async def list_except(self, user_id: str) -> list[Profile]:
        return [p for p in self._profiles if p.user_id != user_id]

    async def list_by_user_ids(self, user_ids: list[str]) -> list[Profile]:
        return [p for p in self._profiles if p.user_id in user_ids]


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def list_direct(self, user_a: str, user_b: str) -> list[Message]:
        return _ordered([m for m in self._messages if _is_direct_between(m, user_a, user_b)])

    async def list_group(self, group_id: UUID) -> list[Message]:
        return _ordered([m for m in self._messages if m.group_id == group_id])

    async def last_direct(self, user_a: str, user_b: str) -> Message | None:
        history = await self.list_direct(user_a, user_b)
        return history[-1] if history else None

    async def last_group(self, group_id: UUID) -> Message | None:
        history = await self.list_group(group_id)
        return history[-1] if history else None

    async def count_unread_direct(self, sender_id: str, receiver_id: str) -> int:
        return sum(
            1 for m in self._messages
            if m.group_id is None and m.sender_id == sender_id and m.receiver_id == receiver_id and not m.read
        )

    async def count_unread_group(self, group_id: UUID, reader_id: str) -> int:
        return sum(
            1 for m in self._messages
            if m.group_id == group_id and m.sender_id != reader_id and not m.read
        )

    def get(self, message_id: UUID) -> Message | None:
        return next((m for m in self._messages if m.id == message_id), None)


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    _marked: list[UUID] = field(default_factory=list)

    async def create(self, message: Message) -> Message:
        self._reader._messages.append(message)
        return message

    async def mark_read(self, message_ids: list[UUID]) -> None:
        ids = set(message_ids)
        self._marked.extend(message_ids)
        self._reader._messages = [
            replace(m, read=True) if m.id in ids else m for m in self._reader._messages
        ]


@dataclass
class FakeGroupReader:
    _groups: dict[UUID, Group] = field(default_factory=dict)
    _members: list[GroupMember] = field(default_factory=list)

    async def get_by_id(self, group_id: UUID) -> Group | None:
        return self._groups.get(group_id)

    async def list_for_member(self, user_id: str) -> list[Group]:
        ids = [m.group_id for m in self._members if m.user_id == user_id]
        return [self._groups[i] for i in ids if i in self._groups]

    async def list_members(self, group_id: UUID) -> list[GroupMember]:
        return [m for m in self._members if m.group_id == group_id]

    async def is_member(self, group_id: UUID, user_id: str) -> bool:
        return any(m.group_id == group_id and m.user_id == user_id for m in self._members)


@dataclass
class FakeGroupWriter:
    _reader: FakeGroupReader
    _rejected_user_ids: set[str] = field(default_factory=set)

    async def create(self, group: Group) -> Group:
        self._reader._groups[group.id] = group
        return group

    async def add_member(self, member: GroupMember) -> None:
        if member.user_id in self._rejected_user_ids:
            raise ConflictError(f"User {member.user_id} cannot join")
        if await self._reader.is_member(member.group_id, member.user_id):
            raise ConflictError(f"User {member.user_id} is already a member")
        self._reader._members.append(member)

    async def remove_member(self, group_id: UUID, user_id: str) -> bool:
        before = len(self._reader._members)
        self._reader._members = [
            m for m in self._reader._members if not (m.group_id == group_id and m.user_id == user_id)
        ]
        return len(self._reader._members) < before


@dataclass
class FakeOutboxWriter:
    _records: list[dict[str, Any]] = field(default_factory=list)
    _pending: list[OutboxRecord] = field(default_factory=list)
    _sent: list[int] = field(default_factory=list)
    _failed: list[int] = field(default_factory=list)

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._records.append({"event_type": event_type, "payload": payload})

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        batch, self._pending = self._pending[:batch_size], self._pending[batch_size:]
        return batch

    async def mark_sent(self, ids: list[int]) -> None:
        self._sent.extend(ids)

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        self._failed.append(record_id)


@dataclass
class FakeDataStore:
    """In-memory DataStore for unit tests."""
    profiles: FakeProfileReader = field(default_factory=FakeProfileReader)
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    groups: FakeGroupReader = field(default_factory=FakeGroupReader)
    groups_w: FakeGroupWriter | None = None
    outbox: FakeOutboxWriter = field(default_factory=FakeOutboxWriter)
    _committed: bool = False

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)
        if self.groups_w is None:
            self.groups_w = FakeGroupWriter(self.groups)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        pass

    def add_profiles(self, *profiles: Profile) -> None:
        self.profiles._profiles.extend(profiles)

    def add_messages(self, *messages: Message) -> None:
        self.messages._messages.extend(messages)

    def add_group(self, group: Group, *member_ids: str) -> None:
        self.groups._groups[group.id] = group
        for user_id in member_ids:
            role = GroupMemberRole.ADMIN if user_id == group.created_by else GroupMemberRole.MEMBER
            self.groups._members.append(make_member(group, user_id, role))


@dataclass
class FakeStoreFactory:
    """Opens the shared FakeDataStore; can fail or hold an open.

    ``hold`` gates the next open; ``holds`` gates a specific open by its
    1-based ordinal.
    """
    store: FakeDataStore = field(default_factory=FakeDataStore)
    fail: bool = False
    hold: asyncio.Event | None = None
    holds: dict[int, asyncio.Event] = field(default_factory=dict)
    opened: int = 0

    @asynccontextmanager
    async def _open(self) -> AsyncIterator[FakeDataStore]:
        self.opened += 1
        gate, self.hold = self.hold, None
        if gate is None:
            gate = self.holds.pop(self.opened, None)
        if gate is not None:
            await gate.wait()
        if self.fail:
            raise DataFetchError("connection refused")
        yield self.store

    def __call__(self) -> Any:
        return self._open()


@dataclass
class FakeNotifier:
    notes: list[tuple[str, str]] = field(default_factory=list)

    async def success(self, text: str) -> None:
        self.notes.append(("success", text))

    async def error(self, text: str) -> None:
        self.notes.append(("error", text))

    @property
    def errors(self) -> list[str]:
        return [text for level, text in self.notes if level == "error"]

    @property
    def successes(self) -> list[str]:
        return [text for level, text in self.notes if level == "success"]


@dataclass
class FakeSessionProvider:
    principal: Principal | None = None
    accounts: dict[str, tuple[str, Principal]] = field(default_factory=dict)
    fail_sign_out: bool = False
    _listeners: list[SessionListener] = field(default_factory=list)

    async def current(self) -> Principal | None:
        return self.principal

    async def sign_in(self, email: str, password: str) -> Principal:
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise AuthenticationError("Invalid login credentials")
        self.principal = account[1]
        return self.principal

    async def sign_out(self) -> None:
        if self.fail_sign_out:
            raise AuthenticationError("Session expired")
        self.principal = None

    def subscribe(self, listener: SessionListener) -> Any:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    async def emit(self, principal: Principal | None) -> None:
        self.principal = principal
        for listener in list(self._listeners):
            await listener(principal)
