from __future__ import annotations

from crm_service.domain.entities.group import Group, GroupMember
from crm_service.infrastructure.db.models.group import GroupMemberModel, GroupModel


def model_to_entity(model: GroupModel) -> Group:
    return Group(
        id=model.id,
        name=model.name,
        description=model.description,
        created_by=model.created_by,
        created_at=model.created_at,
        avatar_url=model.avatar_url,
    )


def entity_to_model(entity: Group) -> GroupModel:
    return GroupModel(
        id=entity.id,
        name=entity.name,
        description=entity.description,
        created_by=entity.created_by,
        created_at=entity.created_at,
        avatar_url=entity.avatar_url,
    )


def member_to_entity(model: GroupMemberModel) -> GroupMember:
    return GroupMember(
        id=model.id,
        group_id=model.group_id,
        user_id=model.user_id,
        role=model.role,
        joined_at=model.joined_at,
    )


def member_to_model(entity: GroupMember) -> GroupMemberModel:
    return GroupMemberModel(
        id=entity.id,
        group_id=entity.group_id,
        user_id=entity.user_id,
        role=entity.role,
        joined_at=entity.joined_at,
    )
