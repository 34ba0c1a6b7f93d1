from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from crm_service.application.dto.chat import (
    ContactSummary,
    GroupMemberView,
    GroupSummary,
    MessageView,
)
from crm_service.domain.value_objects.enums import MessageState


class ProfileResponse(BaseModel):
    id: UUID
    user_id: str
    full_name: str
    email: str | None
    role: str
    avatar_url: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ContactResponse(ProfileResponse):
    last_message: str
    last_message_time: datetime | None
    unread_count: int
    is_online: bool

    @classmethod
    def from_summary(cls, summary: ContactSummary) -> ContactResponse:
        return cls(
            **ProfileResponse.model_validate(summary.profile).model_dump(),
            last_message=summary.last_message,
            last_message_time=summary.last_message_time,
            unread_count=summary.unread_count,
            is_online=summary.is_online,
        )


class GroupResponse(BaseModel):
    id: UUID
    name: str
    description: str | None
    created_by: str
    created_at: datetime
    avatar_url: str | None

    model_config = {"from_attributes": True}


class GroupSummaryResponse(GroupResponse):
    last_message: str
    last_message_time: datetime | None
    unread_count: int

    @classmethod
    def from_summary(cls, summary: GroupSummary) -> GroupSummaryResponse:
        return cls(
            **GroupResponse.model_validate(summary.group).model_dump(),
            last_message=summary.last_message,
            last_message_time=summary.last_message_time,
            unread_count=summary.unread_count,
        )


class CreateGroupRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    member_ids: list[str] = []


class CreateGroupResponse(GroupResponse):
    failed_member_ids: list[str] = []


class AddMemberRequest(BaseModel):
    user_id: str


class GroupMemberResponse(ProfileResponse):
    group_role: str
    joined_at: datetime

    @classmethod
    def from_view(cls, view: GroupMemberView) -> GroupMemberResponse:
        return cls(
            **ProfileResponse.model_validate(view.profile).model_dump(),
            group_role=view.group_role,
            joined_at=view.joined_at,
        )


class MessageResponse(BaseModel):
    id: UUID
    sender_id: str
    receiver_id: str | None
    group_id: UUID | None
    content: str
    created_at: datetime
    read: bool
    state: MessageState = MessageState.CONFIRMED

    model_config = {"from_attributes": True}

    @classmethod
    def from_view(cls, view: MessageView) -> MessageResponse:
        return cls.model_validate(view.message).model_copy(update={"state": view.state})


class SendMessageRequest(BaseModel):
    content: str = Field(min_length=1)


ConversationKind = Literal["direct", "group"]
