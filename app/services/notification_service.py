from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.db.models import (
    Group,
    NotificationLog,
    NotificationStatus,
    Subscriber,
    subscriber_groups,
)
from app.db.session import get_sync_session
from app.schemas.notification_schemas import (
    CancelNotificationResponse,
    NotificationHistoryItem,
    SendNotificationRequest,
)
from app.schemas.subscriber_schemas import GroupRef
from app.services.onesignal.onesignal_client import (
    OneSignalClient,
    get_onesignal_client,
)
from app.utils.datetime_utils import naive_utc_now, to_naive_utc, utc_now, to_utc
from app.utils.errors import (
    BusinessLogicError,
    DispatchInconsistencyError,
    NoRecipientsError,
    NotFoundError,
    ProviderError,
)
from app.utils.logging import get_logger

logger = get_logger()

MAX_HISTORY_PAGE_SIZE = 100


class NotificationService:
    """Dispatches notifications to groups and keeps the send history"""

    def __init__(self, db_session: Session, client: Optional[OneSignalClient] = None):
        self.db = db_session
        self.client = client

    def _require_client(self) -> OneSignalClient:
        """Provider client; missing credentials fail here, before any other work"""
        if self.client is None:
            self.client = get_onesignal_client()
        return self.client

    def _validate(self, request: SendNotificationRequest) -> None:
        if not (request.title or "").strip() or not (request.message or "").strip():
            raise BusinessLogicError(
                "Title and message are required", error_code="INVALID_NOTIFICATION"
            )
        if not request.groups:
            raise BusinessLogicError(
                "At least one group is required", error_code="INVALID_NOTIFICATION"
            )
        if request.schedule_at and to_utc(request.schedule_at) <= utc_now():
            raise BusinessLogicError(
                "Scheduled time must be in the future",
                error_code="INVALID_SCHEDULE",
            )

    def _load_groups(self, group_ids: List[str]) -> List[Group]:
        """Load the requested groups; every id must exist"""
        wanted = list(dict.fromkeys(group_ids))
        groups = list(
            self.db.execute(select(Group).where(Group.id.in_(wanted))).scalars().all()
        )
        found = {g.id for g in groups}
        missing = [gid for gid in wanted if gid not in found]
        if missing:
            raise NotFoundError(
                f"Group not found: {', '.join(missing)}", error_code="GROUP_NOT_FOUND"
            )
        return groups

    def resolve_recipients(self, group_ids: List[str]) -> List[str]:
        """Distinct non-empty external ids of subscribers in any of the groups"""
        rows = self.db.execute(
            select(Subscriber.external_id)
            .join(subscriber_groups, subscriber_groups.c.subscriber_id == Subscriber.id)
            .where(
                subscriber_groups.c.group_id.in_(group_ids),
                Subscriber.external_id.is_not(None),
                Subscriber.external_id != "",
            )
            .distinct()
            .order_by(Subscriber.external_id)
        )
        return [external_id for (external_id,) in rows]

    async def dispatch(
        self, request: SendNotificationRequest, actor_id: Optional[str]
    ) -> Tuple[NotificationLog, Optional[str]]:
        """Send (or schedule) to every subscriber of the requested groups and log it."""
        client = self._require_client()
        self._validate(request)
        groups = self._load_groups(request.groups)

        player_ids = self.resolve_recipients([g.id for g in groups])
        if not player_ids:
            raise NoRecipientsError()

        # Provider failure propagates; nothing is written
        provider_response = await client.send_notification(
            title=request.title.strip(),
            message=request.message.strip(),
            player_ids=player_ids,
            url=request.url or None,
            image_url=request.image_url or None,
            send_after=request.schedule_at,
        )
        provider_dispatch_id = provider_response.get("id")

        scheduled_at = to_naive_utc(request.schedule_at) if request.schedule_at else None
        log = NotificationLog(
            title=request.title.strip(),
            message=request.message.strip(),
            url=request.url or None,
            image_url=request.image_url or None,
            status=(
                NotificationStatus.SCHEDULED if scheduled_at else NotificationStatus.SENT
            ),
            scheduled_at=scheduled_at,
            sent_at=None if scheduled_at else naive_utc_now(),
            provider_notification_id=provider_dispatch_id,
            created_by_id=actor_id,
        )
        log.groups = groups

        try:
            self.db.add(log)
            self.db.commit()
            self.db.refresh(log)
        except Exception as e:
            self.db.rollback()
            logger.critical(
                "Notification was sent but its log row could not be written",
                provider_dispatch_id=provider_dispatch_id,
                group_ids=[g.id for g in groups],
                actor_id=actor_id,
                error=str(e),
            )
            raise DispatchInconsistencyError(provider_dispatch_id) from e

        logger.info(
            "Notification dispatched",
            log_id=log.id,
            status=log.status.value,
            recipients=len(player_ids),
            provider_dispatch_id=provider_dispatch_id,
        )
        return log, provider_dispatch_id

    async def list_history(
        self,
        page: int = 1,
        page_size: int = 20,
        status: Optional[NotificationStatus] = None,
        group_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Newest first, optionally filtered by status, group and author"""
        page = max(1, page)
        page_size = max(1, min(MAX_HISTORY_PAGE_SIZE, page_size))

        conditions = []
        if status:
            conditions.append(NotificationLog.status == status)
        if created_by:
            conditions.append(NotificationLog.created_by_id == created_by)
        if group_id:
            conditions.append(NotificationLog.groups.any(Group.id == group_id))

        total = self.db.execute(
            select(func.count(NotificationLog.id)).where(*conditions)
        ).scalar_one()
        logs = (
            self.db.execute(
                select(NotificationLog)
                .options(selectinload(NotificationLog.groups))
                .where(*conditions)
                .order_by(NotificationLog.created_at.desc(), NotificationLog.id)
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            .scalars()
            .all()
        )
        return [self._to_history_item(log) for log in logs], total

    async def cancel(self, log_id: str) -> Dict[str, Any]:
        """Best-effort cancellation of a scheduled send"""
        log = self.db.execute(
            select(NotificationLog).where(NotificationLog.id == log_id)
        ).scalar_one_or_none()
        if not log:
            raise ValueError("NOTIFICATION_NOT_FOUND")
        if (
            log.status != NotificationStatus.SCHEDULED
            or not log.provider_notification_id
        ):
            raise ValueError("NOTIFICATION_NOT_SCHEDULED")

        client = self._require_client()
        try:
            await client.cancel_notification(log.provider_notification_id)
        except ProviderError as e:
            logger.warning(
                "Provider refused to cancel scheduled notification",
                log_id=log.id,
                provider_dispatch_id=log.provider_notification_id,
                provider_status=e.status_code,
            )
            return CancelNotificationResponse(
                id=log.id, cancelled=False, status=log.status.value, reason=e.message
            ).model_dump(by_alias=True)

        log.status = NotificationStatus.CANCELLED
        self.db.commit()
        logger.info("Cancelled scheduled notification", log_id=log.id)
        return CancelNotificationResponse(
            id=log.id, cancelled=True, status=log.status.value
        ).model_dump(by_alias=True, exclude_none=True)

    @staticmethod
    def _to_history_item(log: NotificationLog) -> Dict[str, Any]:
        return NotificationHistoryItem(
            id=log.id,
            title=log.title,
            message=log.message,
            status=log.status.value,
            url=log.url,
            image_url=log.image_url,
            scheduled_at=log.scheduled_at,
            sent_at=log.sent_at,
            delivered=log.delivered,
            failed=log.failed,
            created_at=log.created_at,
            created_by_id=log.created_by_id,
            groups=[GroupRef(id=g.id, name=g.name) for g in log.groups],
        ).model_dump(by_alias=True)


# Dependency injection for service provider
def get_notification_service(
    db: Session = Depends(get_sync_session),
) -> NotificationService:
    """Dependency to provide NotificationService instance"""
    return NotificationService(db)


def get_dispatch_service(
    db: Session = Depends(get_sync_session),
    client: OneSignalClient = Depends(get_onesignal_client),
) -> NotificationService:
    """Dependency to provide a NotificationService wired to the provider client"""
    return NotificationService(db, client)
