from __future__ import annotations

import logging

from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import DataFetchError
from crm_service.application.uow import StoreFactory
from crm_service.domain.value_objects.enums import Role

logger = logging.getLogger(__name__)


async def resolve_role(principal: Principal | None, open_store: StoreFactory) -> Role | None:
    """Return the principal's role from its profile, or None.

    A missing principal, a missing profile, an unrecognised role string
    and a failed lookup all resolve to None so that every subsequent
    permission check denies.
    """
    if principal is None:
        return None

    try:
        async with open_store() as store:
            profile = await store.profiles.get_by_user_id(principal.id)
    except DataFetchError:
        logger.exception("Error fetching profile for %s", principal.id)
        return None

    if profile is None:
        logger.info("No profile for principal %s", principal.id)
        return None

    try:
        return Role(profile.role)
    except ValueError:
        logger.warning("Profile %s has unknown role %r", profile.id, profile.role)
        return None
