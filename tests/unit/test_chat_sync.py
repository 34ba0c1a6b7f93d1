from __future__ import annotations

import asyncio

import pytest

from crm_service.domain.entities.conversation import DirectConversation
from crm_service.domain.value_objects.enums import MessageState, Role
from crm_service.services.chat_sync import ChatSynchronizer
from tests.conftest import (
    FakeNotifier,
    FakeStoreFactory,
    make_group,
    make_message,
    make_profile,
)


@pytest.fixture
def factory() -> FakeStoreFactory:
    factory = FakeStoreFactory()
    factory.store.add_profiles(
        make_profile("alice", Role.EMPLOYEE),
        make_profile("bob", Role.MANAGER),
        make_profile("carol", Role.INTERN),
    )
    return factory


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def chat(alice, factory, notifier) -> ChatSynchronizer:
    return ChatSynchronizer(alice, factory, notifier)


def _contents(chat: ChatSynchronizer) -> list[str]:
    return [v.message.content for v in chat.messages]


@pytest.mark.asyncio
async def test_load_fills_contacts_groups_and_unread(chat, factory):
    group = make_group("bob")
    factory.store.add_group(group, "bob", "alice")
    factory.store.add_messages(
        make_message("bob", receiver_id="alice", content="ping"),
        make_message("carol", group_id=None, receiver_id="alice", content="hey"),
        make_message("bob", group_id=group.id, content="standup"),
    )

    await chat.load()

    assert chat.loading is False
    assert {c.user_id for c in chat.contacts} == {"bob", "carol"}
    assert [g.group_id for g in chat.groups] == [group.id]
    assert chat.unread_counts == {"bob": 1, "carol": 1, f"group-{group.id}": 1}


@pytest.mark.asyncio
async def test_open_conversation_marks_read_and_resets_counter(chat, factory):
    inbound = make_message("bob", receiver_id="alice", content="one", minutes=1)
    factory.store.add_messages(inbound, make_message("alice", receiver_id="bob", content="two", minutes=2))
    await chat.list_contacts()
    assert chat.unread_for("bob", False) == 1

    await chat.open_conversation("bob", False)

    assert chat.selected == DirectConversation("bob")
    assert _contents(chat) == ["one", "two"]
    assert chat.unread_for("bob", False) == 0
    assert next(c for c in chat.contacts if c.user_id == "bob").unread_count == 0
    assert factory.store.messages.get(inbound.id).read is True


@pytest.mark.asyncio
async def test_opening_twice_is_idempotent(chat, factory):
    factory.store.add_messages(
        make_message("bob", receiver_id="alice", content="one", minutes=1),
        make_message("bob", receiver_id="alice", content="two", minutes=2),
    )
    await chat.list_contacts()

    await chat.open_conversation("bob", False)
    first = list(chat.messages)
    await chat.open_conversation("bob", False)

    assert [v.message.id for v in chat.messages] == [v.message.id for v in first]
    assert chat.unread_for("bob", False) == 0


@pytest.mark.asyncio
async def test_stale_history_is_discarded(chat, factory):
    factory.store.add_messages(
        make_message("bob", receiver_id="alice", content="from bob"),
        make_message("carol", receiver_id="alice", content="from carol"),
    )
    await chat.list_contacts()

    gate = asyncio.Event()
    factory.hold = gate
    opening_bob = asyncio.create_task(chat.open_conversation("bob", False))
    await asyncio.sleep(0)

    await chat.open_conversation("carol", False)
    gate.set()
    await opening_bob

    assert chat.selected == DirectConversation("carol")
    assert _contents(chat) == ["from carol"]
    assert chat.unread_for("bob", False) == 1
    assert chat.unread_for("carol", False) == 0


@pytest.mark.asyncio
async def test_send_message_is_pending_then_confirmed(chat, factory):
    await chat.open_conversation("bob", False)

    gate = asyncio.Event()
    factory.hold = gate
    sending = asyncio.create_task(chat.send_message("hello bob"))
    await asyncio.sleep(0)

    assert [v.state for v in chat.messages] == [MessageState.PENDING]
    gate.set()
    saved = await sending

    assert saved is not None
    assert [(v.message.id, v.state) for v in chat.messages] == [(saved.id, MessageState.CONFIRMED)]
    assert factory.store.messages.get(saved.id) is not None


@pytest.mark.asyncio
async def test_echo_of_own_message_is_deduplicated(chat):
    await chat.list_contacts()
    await chat.open_conversation("bob", False)
    saved = await chat.send_message("hello bob")

    await chat.handle_inserted(saved)

    assert [v.message.id for v in chat.messages] == [saved.id]
    assert chat.unread_for("bob", False) == 0
    assert next(c for c in chat.contacts if c.user_id == "bob").last_message == "hello bob"


@pytest.mark.asyncio
async def test_echo_arriving_before_insert_returns_confirms_pending(chat, factory):
    await chat.open_conversation("bob", False)
    gate = asyncio.Event()
    factory.hold = gate
    sending = asyncio.create_task(chat.send_message("racing"))
    await asyncio.sleep(0)

    pending = chat.messages[0].message
    await chat.handle_inserted(pending)
    assert [v.state for v in chat.messages] == [MessageState.CONFIRMED]

    gate.set()
    await sending
    assert len(chat.messages) == 1


@pytest.mark.asyncio
async def test_blank_or_unselected_send_is_a_noop(chat, factory):
    assert await chat.send_message("hello") is None
    await chat.open_conversation("bob", False)
    assert await chat.send_message("   ") is None

    assert chat.messages == []
    assert factory.store.outbox._records == []


@pytest.mark.asyncio
async def test_failed_send_removes_pending_entry(chat, factory, notifier):
    await chat.open_conversation("bob", False)
    factory.fail = True

    assert await chat.send_message("lost") is None

    assert chat.messages == []
    assert notifier.errors == ["Failed to send message"]


@pytest.mark.asyncio
async def test_inbound_group_message_increments_then_open_resets(chat, factory):
    group = make_group("bob")
    factory.store.add_group(group, "bob", "alice")
    await chat.list_groups()
    key = f"group-{group.id}"
    assert chat.unread_counts[key] == 0

    inbound = make_message("bob", group_id=group.id, content="deploy at 5")
    factory.store.add_messages(inbound)
    await chat.handle_inserted(inbound)

    assert chat.unread_counts[key] == 1
    assert chat.groups[0].unread_count == 1
    assert chat.groups[0].last_message == "deploy at 5"

    await chat.open_conversation(group.id, True)

    assert chat.unread_counts[key] == 0
    assert chat.groups[0].unread_count == 0
    assert factory.store.messages.get(inbound.id).read is True


@pytest.mark.asyncio
async def test_inbound_message_for_open_conversation_is_marked_read(chat, factory):
    await chat.list_contacts()
    await chat.open_conversation("bob", False)

    inbound = make_message("bob", receiver_id="alice", content="live")
    factory.store.add_messages(inbound)
    await chat.handle_inserted(inbound)

    assert _contents(chat) == ["live"]
    assert chat.messages[0].message.read is True
    assert chat.unread_for("bob", False) == 0
    assert factory.store.messages.get(inbound.id).read is True


@pytest.mark.asyncio
async def test_inbound_direct_message_elsewhere_only_bumps_counter(chat, factory):
    await chat.list_contacts()
    await chat.open_conversation("carol", False)

    inbound = make_message("bob", receiver_id="alice", content="psst")
    touched = await chat.handle_inserted(inbound)

    assert touched is True
    assert chat.messages == []
    assert chat.unread_for("bob", False) == 1
    assert next(c for c in chat.contacts if c.user_id == "bob").last_message == "psst"


@pytest.mark.asyncio
async def test_own_messages_never_count_as_unread(chat, factory):
    group = make_group("alice")
    factory.store.add_group(group, "alice", "bob")
    await chat.load()

    await chat.handle_inserted(make_message("alice", receiver_id="bob", content="sent elsewhere"))
    await chat.handle_inserted(make_message("alice", group_id=group.id, content="to the team"))

    assert chat.unread_for("bob", False) == 0
    assert chat.unread_for(group.id, True) == 0
    assert next(c for c in chat.contacts if c.user_id == "bob").last_message == "sent elsewhere"


@pytest.mark.asyncio
async def test_unrelated_and_unknown_group_messages_are_ignored(chat):
    await chat.load()

    assert await chat.handle_inserted(make_message("bob", receiver_id="carol")) is False
    assert await chat.handle_inserted(make_message("bob", group_id=make_group().id)) is False
    assert all(count == 0 for count in chat.unread_counts.values())


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_state(chat, factory, notifier):
    factory.store.add_messages(make_message("bob", receiver_id="alice"))
    await chat.load()
    contacts, groups, unread = chat.contacts, chat.groups, dict(chat.unread_counts)

    factory.fail = True
    await chat.list_contacts()
    await chat.list_groups()
    await chat.open_conversation("bob", False)

    assert chat.contacts == contacts
    assert chat.groups == groups
    assert chat.unread_counts == unread
    assert chat.messages == []
    assert notifier.errors == [
        "Failed to load contacts",
        "Failed to load groups",
        "Failed to load messages",
    ]


@pytest.mark.asyncio
async def test_create_group_refreshes_groups_and_notifies(chat, factory, notifier):
    factory.store.groups_w._rejected_user_ids.add("carol")

    group = await chat.create_group("Launch", None, ["bob", "carol"])

    assert group is not None
    assert [g.group_id for g in chat.groups] == [group.id]
    assert notifier.successes == ['Group "Launch" created successfully']
    assert {m.user_id for m in await factory.store.groups.list_members(group.id)} == {"alice", "bob"}


@pytest.mark.asyncio
async def test_create_group_requires_a_principal(factory, notifier):
    chat = ChatSynchronizer(None, factory, notifier)

    assert await chat.create_group("Launch", None, []) is None
    assert notifier.errors == ["You must be logged in to create a group"]


@pytest.mark.asyncio
async def test_create_group_failure_notifies(chat, factory, notifier):
    factory.fail = True

    assert await chat.create_group("Launch", None, []) is None
    assert notifier.errors == ["Failed to create group"]


@pytest.mark.asyncio
async def test_group_member_operations_notify(chat, factory, notifier):
    group = make_group("alice")
    factory.store.add_group(group, "alice")

    assert await chat.add_group_member(group.id, "bob") is True
    members = await chat.get_group_members(group.id)
    assert {m.profile.user_id for m in members} == {"alice", "bob"}
    assert await chat.remove_group_member(group.id, "bob") is True
    assert await chat.remove_group_member(group.id, "bob") is False

    assert notifier.successes == ["Member added to group", "Member removed from group"]
    assert notifier.errors == ["Failed to remove member from group"]


@pytest.mark.asyncio
async def test_select_none_clears_messages(chat, factory):
    factory.store.add_messages(make_message("bob", receiver_id="alice"))
    await chat.open_conversation("bob", False)

    chat.select(None)

    assert chat.selected is None
    assert chat.messages == []


@pytest.mark.asyncio
async def test_pending_send_survives_reopen(chat, factory):
    await chat.open_conversation("bob", False)
    gate = asyncio.Event()
    factory.hold = gate
    sending = asyncio.create_task(chat.send_message("slow"))
    await asyncio.sleep(0)

    pending_id = chat.messages[0].message.id
    await chat.open_conversation("bob", False)
    assert [v.message.id for v in chat.messages] == [pending_id]

    gate.set()
    await sending
    assert [(v.message.id, v.state) for v in chat.messages] == [(pending_id, MessageState.CONFIRMED)]



@pytest.mark.asyncio
async def test_send_confirmed_after_switching_stays_out_of_new_conversation(chat, factory):
    await chat.list_contacts()
    await chat.open_conversation("bob", False)
    gate = asyncio.Event()
    factory.hold = gate
    sending = asyncio.create_task(chat.send_message("for bob only"))
    await asyncio.sleep(0)

    await chat.open_conversation("carol", False)
    gate.set()
    saved = await sending

    assert saved is not None
    assert chat.selected == DirectConversation("carol")
    assert "for bob only" not in _contents(chat)
    assert next(c for c in chat.contacts if c.user_id == "bob").last_message == "for bob only"


@pytest.mark.asyncio
async def test_insert_arriving_while_opening_is_kept(chat, factory):
    factory.store.add_messages(make_message("bob", receiver_id="alice", content="old", minutes=1))
    gate = asyncio.Event()
    marking_read = factory.opened + 2
    factory.holds[marking_read] = gate
    opening = asyncio.create_task(chat.open_conversation("bob", False))
    while factory.opened < marking_read:
        await asyncio.sleep(0)

    live = make_message("bob", receiver_id="alice", content="live", minutes=5)
    factory.store.add_messages(live)
    await chat.handle_inserted(live)
    gate.set()
    await opening

    assert _contents(chat) == ["old", "live"]
    assert all(v.message.read for v in chat.messages)
    assert chat.unread_for("bob", False) == 0
