"""Seed development data: creates the tables, a few profiles, a group and messages."""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone

from crm_service.domain.entities.group import Group, GroupMember
from crm_service.domain.entities.message import Message
from crm_service.domain.value_objects.enums import GroupMemberRole, Role
from crm_service.infrastructure.db import models  # noqa: F401
from crm_service.infrastructure.db.base import Base
from crm_service.infrastructure.db.models.profile import ProfileModel
from crm_service.infrastructure.db.session import AsyncSessionLocal, engine
from crm_service.infrastructure.db.uow import SqlAlchemyDataStore

logger = logging.getLogger(__name__)

PROFILES = [
    ("dev-admin", "Ada Admin", "admin@example.com", Role.ADMIN),
    ("dev-manager", "Max Manager", "manager@example.com", Role.MANAGER),
    ("dev-employee", "Eve Employee", "employee@example.com", Role.EMPLOYEE),
    ("dev-intern", "Ian Intern", "intern@example.com", Role.INTERN),
    ("dev-client", "Cleo Client", "client@example.com", Role.CLIENT),
]


async def seed() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        store = SqlAlchemyDataStore(session)
        now = datetime.now(timezone.utc)

        for user_id, full_name, email, role in PROFILES:
            session.add(ProfileModel(user_id=user_id, full_name=full_name, email=email, role=role))
        await store.flush()

        group = await store.groups_w.create(
            Group(
                id=uuid.uuid4(),
                name="Project Alpha",
                description="Delivery team",
                created_by="dev-manager",
                created_at=now,
            )
        )
        for user_id, role in [
            ("dev-manager", GroupMemberRole.ADMIN),
            ("dev-employee", GroupMemberRole.MEMBER),
            ("dev-intern", GroupMemberRole.MEMBER),
        ]:
            await store.groups_w.add_member(
                GroupMember(id=uuid.uuid4(), group_id=group.id, user_id=user_id, role=role, joined_at=now)
            )

        messages_data = [
            ("dev-manager", "dev-employee", None, "Can you update the task board?"),
            ("dev-employee", "dev-manager", None, "Done, moved three cards to review."),
            ("dev-manager", None, group.id, "Kickoff is tomorrow at 10."),
            ("dev-intern", None, group.id, "I'll prepare the notes."),
        ]
        for offset, (sender_id, receiver_id, group_id, content) in enumerate(messages_data):
            await store.messages_w.create(
                Message(
                    id=uuid.uuid4(),
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    group_id=group_id,
                    content=content,
                    created_at=now + timedelta(seconds=offset),
                )
            )

        await store.commit()
        logger.info(
            "Seeded %d profiles, group %s and %d messages",
            len(PROFILES), group.id, len(messages_data),
        )


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(seed())


if __name__ == "__main__":
    main()
