from typing import List, Optional

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.models import Group, Subscriber, subscriber_groups
from app.db.session import get_sync_session
from app.schemas.group_schemas import (
    CreateGroupRequest,
    GroupResponse,
    UpdateGroupRequest,
)
from app.utils.logging import get_logger

logger = get_logger()

DEFAULT_GROUP_DESCRIPTION = "Default group containing every subscriber"


def get_or_create_default_group(db: Session) -> Group:
    """Return the default group, creating it the first time it is needed"""
    group = db.execute(
        select(Group).where(Group.name == settings.DEFAULT_GROUP_NAME)
    ).scalar_one_or_none()
    if group:
        return group

    group = Group(
        name=settings.DEFAULT_GROUP_NAME, description=DEFAULT_GROUP_DESCRIPTION
    )
    db.add(group)
    try:
        db.commit()
    except IntegrityError:
        # Created concurrently by another request
        db.rollback()
        return db.execute(
            select(Group).where(Group.name == settings.DEFAULT_GROUP_NAME)
        ).scalar_one()

    db.refresh(group)
    logger.info(f"Created default group: {group.name}")
    return group


class GroupService:
    """Service provider for group administration"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def get_group_by_id(self, group_id: str) -> Optional[Group]:
        result = self.db.execute(select(Group).where(Group.id == group_id))
        return result.scalar_one_or_none()

    async def check_group_name_exists(
        self, name: str, exclude_id: Optional[str] = None
    ) -> bool:
        """Check if group name already exists (optionally excluding a specific ID)"""
        query = select(Group.id).where(Group.name == name)
        if exclude_id:
            query = query.where(Group.id != exclude_id)
        return self.db.execute(query).first() is not None

    async def list_groups(self, search: Optional[str] = None) -> List[GroupResponse]:
        """All groups, newest first, with their member counts"""
        member_count = (
            select(func.count(subscriber_groups.c.subscriber_id))
            .where(subscriber_groups.c.group_id == Group.id)
            .correlate(Group)
            .scalar_subquery()
        )
        query = select(Group, member_count.label("member_count"))
        if search and search.strip():
            query = query.where(
                func.lower(Group.name).contains(search.strip().lower())
            )
        query = query.order_by(Group.created_at.desc(), Group.name)

        rows = self.db.execute(query).all()
        return [self._create_group_response(group, count) for group, count in rows]

    async def create_group(self, group_data: CreateGroupRequest) -> GroupResponse:
        name = group_data.name.strip()
        if not name:
            raise ValueError("GROUP_NAME_REQUIRED")
        if await self.check_group_name_exists(name):
            raise ValueError("GROUP_NAME_EXISTS")

        try:
            group = Group(
                name=name,
                description=(group_data.description or "").strip() or None,
            )
            if group_data.subscriber_ids:
                group.subscribers = self._load_subscribers(group_data.subscriber_ids)

            self.db.add(group)
            self.db.commit()
            self.db.refresh(group)

            logger.info(f"Created new group: {group.name}")
            return self._create_group_response(group, len(group.subscribers))

        except IntegrityError:
            self.db.rollback()
            raise ValueError("GROUP_NAME_EXISTS")

    async def update_group(
        self, group_id: str, group_data: UpdateGroupRequest
    ) -> GroupResponse:
        group = await self.get_group_by_id(group_id)
        if not group:
            raise ValueError("GROUP_NOT_FOUND")

        new_name = (group_data.name or "").strip()
        if new_name and new_name != group.name:
            if group.name == settings.DEFAULT_GROUP_NAME:
                raise ValueError("DEFAULT_GROUP_PROTECTED")
            if await self.check_group_name_exists(new_name, exclude_id=group_id):
                raise ValueError("GROUP_NAME_EXISTS")
            group.name = new_name

        if group_data.description is not None:
            group.description = group_data.description.strip() or None

        if group_data.subscriber_ids_add:
            current_ids = {s.id for s in group.subscribers}
            for subscriber in self._load_subscribers(group_data.subscriber_ids_add):
                if subscriber.id not in current_ids:
                    group.subscribers.append(subscriber)

        if group_data.subscriber_ids_remove:
            remove_ids = set(group_data.subscriber_ids_remove)
            group.subscribers = [
                s for s in group.subscribers if s.id not in remove_ids
            ]

        try:
            self.db.commit()
            self.db.refresh(group)
        except IntegrityError:
            self.db.rollback()
            raise ValueError("GROUP_NAME_EXISTS")

        logger.info(f"Updated group: {group.name}")
        return self._create_group_response(group, len(group.subscribers))

    async def delete_group(self, group_id: str) -> None:
        group = await self.get_group_by_id(group_id)
        if not group:
            raise ValueError("GROUP_NOT_FOUND")
        if group.name == settings.DEFAULT_GROUP_NAME:
            raise ValueError("DEFAULT_GROUP_PROTECTED")

        self.db.delete(group)
        self.db.commit()
        logger.info(f"Deleted group: {group.name}")

    def _load_subscribers(self, subscriber_ids: List[str]) -> List[Subscriber]:
        """Load subscribers by id; every id must exist"""
        wanted = set(subscriber_ids)
        subscribers = list(
            self.db.execute(select(Subscriber).where(Subscriber.id.in_(wanted)))
            .scalars()
            .all()
        )
        if len(subscribers) != len(wanted):
            raise ValueError("SUBSCRIBER_NOT_FOUND")
        return subscribers

    @staticmethod
    def _create_group_response(group: Group, member_count: int) -> GroupResponse:
        return GroupResponse(
            id=group.id,
            name=group.name,
            description=group.description,
            member_count=member_count or 0,
            created_at=group.created_at,
            updated_at=group.updated_at,
        )


# Dependency injection for service provider
def get_group_service(
    db: Session = Depends(get_sync_session),
) -> GroupService:
    """Dependency to provide GroupService instance"""
    return GroupService(db)
