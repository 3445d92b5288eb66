import csv
import io
import re
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.db.models import Group, NotificationLog, Subscriber, subscriber_groups
from app.db.session import get_sync_session
from app.schemas.subscriber_schemas import (
    GroupRef,
    SubscriberResponse,
    SubscriberStats,
    SubscriberStatusResponse,
)
from app.services.group_service import get_or_create_default_group
from app.utils.datetime_utils import (
    naive_utc_now,
    start_of_day,
    start_of_month,
    start_of_previous_month,
)
from app.utils.errors import BusinessLogicError
from app.utils.logging import get_logger

logger = get_logger()

CONTACT_PATTERN = re.compile(r"\+?[1-9]\d{0,15}")


def normalize_contact(contact: str) -> str:
    """Strip whitespace and validate the contact number format"""
    cleaned = re.sub(r"\s", "", contact or "")
    if not CONTACT_PATTERN.fullmatch(cleaned):
        raise ValueError("INVALID_CONTACT")
    return cleaned


class SubscriberService:
    """Service provider for subscriber registration and administration"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def get_subscriber_by_external_id(
        self, external_id: str
    ) -> Optional[Subscriber]:
        result = self.db.execute(
            select(Subscriber)
            .options(selectinload(Subscriber.groups))
            .where(Subscriber.external_id == external_id)
        )
        return result.scalar_one_or_none()

    async def get_subscriber_by_contact(self, contact: str) -> Optional[Subscriber]:
        result = self.db.execute(
            select(Subscriber)
            .options(selectinload(Subscriber.groups))
            .where(Subscriber.contact == contact)
            .limit(1)
        )
        return result.scalars().first()

    async def register(
        self, external_id: str, contact: str
    ) -> Tuple[SubscriberResponse, bool, str]:
        """Bind a contact to a player id. Returns (subscriber, is_new, message)."""
        external_id = (external_id or "").strip()
        if not external_id or not (contact or "").strip():
            raise BusinessLogicError(
                "External id and contact number are required",
                error_code="MISSING_FIELDS",
            )
        clean_contact = normalize_contact(contact)

        existing = await self.get_subscriber_by_external_id(external_id)
        if existing:
            if existing.contact == clean_contact:
                return self._to_response(existing), False, "Subscriber already exists"

            owner = await self.get_subscriber_by_contact(clean_contact)
            if owner and owner.id != existing.id:
                raise ValueError("CONTACT_ALREADY_REGISTERED")

            existing.contact = clean_contact
            self.db.commit()
            self.db.refresh(existing)
            logger.info(f"Updated contact for subscriber {existing.id}")
            return (
                self._to_response(existing),
                False,
                "Mobile number updated successfully",
            )

        if await self.get_subscriber_by_contact(clean_contact):
            raise ValueError("CONTACT_ALREADY_REGISTERED")

        default_group = get_or_create_default_group(self.db)
        subscriber = Subscriber(external_id=external_id, contact=clean_contact)
        subscriber.groups.append(default_group)
        self.db.add(subscriber)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValueError("SUBSCRIBER_ALREADY_EXISTS")

        self.db.refresh(subscriber)
        logger.info(f"Registered new subscriber {subscriber.id}")
        return (
            self._to_response(subscriber),
            True,
            "Subscriber registered successfully",
        )

    async def get_status(self, external_id: str) -> SubscriberStatusResponse:
        if not (external_id or "").strip():
            raise BusinessLogicError(
                "External id is required", error_code="MISSING_FIELDS"
            )
        subscriber = await self.get_subscriber_by_external_id(external_id.strip())
        if not subscriber:
            return SubscriberStatusResponse(subscribed=False)
        return SubscriberStatusResponse(
            subscribed=True, subscriber=self._to_response(subscriber)
        )

    async def unsubscribe(
        self, external_id: Optional[str] = None, contact: Optional[str] = None
    ) -> str:
        """Remove the subscriber from every group. Returns the subscriber id."""
        external_id = (external_id or "").strip()
        contact = re.sub(r"\s", "", contact or "")
        if not external_id and not contact:
            raise BusinessLogicError(
                "External id or contact number is required",
                error_code="MISSING_FIELDS",
            )

        if external_id:
            subscriber = await self.get_subscriber_by_external_id(external_id)
        else:
            subscriber = await self.get_subscriber_by_contact(contact)
        if not subscriber:
            raise ValueError("SUBSCRIBER_NOT_FOUND")

        subscriber.groups = []
        self.db.commit()
        logger.info(f"Unsubscribed subscriber {subscriber.id} from all groups")
        return subscriber.id

    async def list_subscribers(
        self, page: int = 1, page_size: int = 25, search: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Newest first; ``search`` matches contact or external id"""
        query = select(Subscriber)
        count_query = select(func.count(Subscriber.id))
        if search and search.strip():
            term = search.strip()
            condition = or_(
                Subscriber.contact.contains(term),
                Subscriber.external_id.contains(term),
            )
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = self.db.execute(count_query).scalar_one()
        subscribers = (
            self.db.execute(
                query.options(selectinload(Subscriber.groups))
                .order_by(Subscriber.created_at.desc(), Subscriber.external_id)
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            .scalars()
            .all()
        )
        return [
            self._to_response(s).model_dump(by_alias=True) for s in subscribers
        ], total

    async def get_stats(self) -> SubscriberStats:
        now = naive_utc_now()
        month_start = start_of_month(now)
        last_month_start = start_of_previous_month(now)

        total = self.db.execute(select(func.count(Subscriber.id))).scalar_one()
        new_this_month = self.db.execute(
            select(func.count(Subscriber.id)).where(
                Subscriber.created_at >= month_start
            )
        ).scalar_one()
        new_last_month = self.db.execute(
            select(func.count(Subscriber.id)).where(
                Subscriber.created_at >= last_month_start,
                Subscriber.created_at < month_start,
            )
        ).scalar_one()
        active = self.db.execute(
            select(func.count(func.distinct(subscriber_groups.c.subscriber_id)))
        ).scalar_one()
        total_groups = self.db.execute(select(func.count(Group.id))).scalar_one()
        sent_today = self.db.execute(
            select(func.count(NotificationLog.id)).where(
                NotificationLog.sent_at >= start_of_day(now)
            )
        ).scalar_one()

        if new_last_month > 0:
            growth = round((new_this_month - new_last_month) / new_last_month * 100, 1)
        else:
            growth = 100.0 if new_this_month > 0 else 0.0

        return SubscriberStats(
            total_subscribers=total,
            new_this_month=new_this_month,
            new_last_month=new_last_month,
            monthly_growth=growth,
            active_subscribers=active,
            active_percentage=round(active / total * 100, 1) if total else 0.0,
            total_groups=total_groups,
            notifications_sent_today=sent_today,
        )

    async def export_rows(self, include_groups: bool = False) -> List[Dict[str, Any]]:
        """Every subscriber, newest first, flattened for export"""
        subscribers = (
            self.db.execute(
                select(Subscriber)
                .options(selectinload(Subscriber.groups))
                .order_by(Subscriber.created_at.desc(), Subscriber.external_id)
            )
            .scalars()
            .all()
        )

        rows = []
        for s in subscribers:
            row = {
                "id": s.id,
                "externalId": s.external_id,
                "contact": s.contact or "",
                "createdAt": s.created_at.isoformat() if s.created_at else "",
            }
            if include_groups:
                row["groups"] = [g.name for g in s.groups]
            rows.append(row)

        return rows

    @staticmethod
    def to_csv(rows: List[Dict[str, Any]], include_groups: bool = False) -> str:
        fieldnames = ["id", "externalId", "contact", "createdAt"]
        if include_groups:
            fieldnames.append("groups")
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            if include_groups:
                row = {**row, "groups": "; ".join(row["groups"])}
            writer.writerow(row)
        return buffer.getvalue()

    @staticmethod
    def _to_response(subscriber: Subscriber) -> SubscriberResponse:
        return SubscriberResponse(
            id=subscriber.id,
            external_id=subscriber.external_id,
            contact=subscriber.contact,
            created_at=subscriber.created_at,
            updated_at=subscriber.updated_at,
            groups=[GroupRef(id=g.id, name=g.name) for g in subscriber.groups],
        )


# Dependency injection for service provider
def get_subscriber_service(
    db: Session = Depends(get_sync_session),
) -> SubscriberService:
    """Dependency to provide SubscriberService instance"""
    return SubscriberService(db)
