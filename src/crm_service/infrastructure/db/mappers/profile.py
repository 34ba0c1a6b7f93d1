from __future__ import annotations

from crm_service.domain.entities.profile import Profile
from crm_service.infrastructure.db.models.profile import ProfileModel


def model_to_entity(model: ProfileModel) -> Profile:
    return Profile(
        id=model.id,
        user_id=model.user_id,
        full_name=model.full_name,
        email=model.email,
        role=model.role,
        avatar_url=model.avatar_url,
        created_at=model.created_at,
    )
