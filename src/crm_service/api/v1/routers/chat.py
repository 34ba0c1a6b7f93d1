from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from crm_service.api.deps import StoreDep, require_permission
from crm_service.api.v1.routers.ws import get_manager
from crm_service.api.v1.schemas.chat import (
    AddMemberRequest,
    ContactResponse,
    ConversationKind,
    CreateGroupRequest,
    CreateGroupResponse,
    GroupMemberResponse,
    GroupResponse,
    GroupSummaryResponse,
    MessageResponse,
    SendMessageRequest,
)
from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import ValidationError
from crm_service.application.policies.conversation_access import assert_conversation_access
from crm_service.domain.entities.conversation import Conversation, GroupConversation, make_conversation
from crm_service.services import chat_service

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])

ReadMessages = Annotated[Principal, Depends(require_permission("messages", "read"))]
CreateMessages = Annotated[Principal, Depends(require_permission("messages", "create"))]
ReadGroups = Annotated[Principal, Depends(require_permission("groups", "read"))]
CreateGroups = Annotated[Principal, Depends(require_permission("groups", "create"))]
UpdateGroups = Annotated[Principal, Depends(require_permission("groups", "update"))]


def _conversation(kind: ConversationKind, conversation_id: str) -> Conversation:
    try:
        return make_conversation(conversation_id, kind == "group")
    except ValueError as exc:
        raise ValidationError(f"Invalid conversation id: {conversation_id}") from exc


@router.get("/contacts", response_model=list[ContactResponse])
async def list_contacts(principal: ReadMessages, store: StoreDep) -> list[ContactResponse]:
    contacts = await chat_service.list_contacts(
        principal, store, is_online=get_manager().is_online,
    )
    return [ContactResponse.from_summary(c) for c in contacts]


@router.get("/groups", response_model=list[GroupSummaryResponse])
async def list_groups(principal: ReadGroups, store: StoreDep) -> list[GroupSummaryResponse]:
    groups = await chat_service.list_groups(principal, store)
    return [GroupSummaryResponse.from_summary(g) for g in groups]


@router.post("/groups", response_model=CreateGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    body: CreateGroupRequest,
    principal: CreateGroups,
    store: StoreDep,
) -> CreateGroupResponse:
    result = await chat_service.create_group(
        principal, body.name, body.description, body.member_ids, store,
    )
    return CreateGroupResponse(
        **GroupResponse.model_validate(result.group).model_dump(),
        failed_member_ids=result.failed_member_ids,
    )


@router.get("/groups/{group_id}/members", response_model=list[GroupMemberResponse])
async def list_group_members(
    group_id: UUID,
    principal: ReadGroups,
    store: StoreDep,
) -> list[GroupMemberResponse]:
    await assert_conversation_access(principal, GroupConversation(group_id=group_id), store.groups)
    members = await chat_service.get_group_members(group_id, store)
    return [GroupMemberResponse.from_view(m) for m in members]


@router.post(
    "/groups/{group_id}/members",
    response_model=GroupMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_group_member(
    group_id: UUID,
    body: AddMemberRequest,
    principal: UpdateGroups,
    store: StoreDep,
) -> GroupMemberResponse:
    await assert_conversation_access(principal, GroupConversation(group_id=group_id), store.groups)
    await chat_service.add_group_member(group_id, body.user_id, store)
    members = await chat_service.get_group_members(group_id, store)
    added = next((m for m in members if m.profile.user_id == body.user_id), None)
    if added is None:
        raise ValidationError(f"No profile for user {body.user_id}")
    return GroupMemberResponse.from_view(added)


@router.delete("/groups/{group_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_group_member(
    group_id: UUID,
    user_id: str,
    principal: UpdateGroups,
    store: StoreDep,
) -> None:
    await assert_conversation_access(principal, GroupConversation(group_id=group_id), store.groups)
    await chat_service.remove_group_member(group_id, user_id, store)


@router.get("/conversations/{kind}/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    kind: ConversationKind,
    conversation_id: str,
    principal: ReadMessages,
    store: StoreDep,
) -> list[MessageResponse]:
    """Conversation history, oldest first. Marks inbound messages read."""
    conversation = _conversation(kind, conversation_id)
    history = await chat_service.open_conversation(principal, conversation, store)
    return [MessageResponse.model_validate(m) for m in history]


@router.post(
    "/conversations/{kind}/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    kind: ConversationKind,
    conversation_id: str,
    body: SendMessageRequest,
    principal: CreateMessages,
    store: StoreDep,
) -> MessageResponse:
    conversation = _conversation(kind, conversation_id)
    message = await chat_service.send_message(principal, conversation, body.content, store)
    return MessageResponse.model_validate(message)
