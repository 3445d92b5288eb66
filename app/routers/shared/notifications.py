from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status

from app.db.models import NotificationStatus
from app.middlewares.auth_middleware import AuthState, require_sender
from app.schemas.notification_schemas import (
    NotificationLogSummary,
    SendNotificationRequest,
    SendNotificationResponse,
)
from app.services.notification_service import (
    NotificationService,
    get_dispatch_service,
    get_notification_service,
)
from app.utils.error_handlers import handle_service_error
from app.utils.responses import ResponseBuilder

notifications_router = APIRouter()


@notifications_router.post(
    "",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Send or schedule a notification to groups",
    description="Resolves every subscriber of the given groups, sends through OneSignal and records the send.",
)
async def send_notification(
    request: Request,
    notification: SendNotificationRequest,
    current_user: Annotated[AuthState, Depends(require_sender)],
    notification_service: NotificationService = Depends(get_dispatch_service),
):
    log, provider_dispatch_id = await notification_service.dispatch(
        notification, actor_id=current_user.user_id
    )

    response_data = SendNotificationResponse(
        log=NotificationLogSummary(
            id=log.id,
            title=log.title,
            status=log.status.value,
            scheduled_at=log.scheduled_at,
            sent_at=log.sent_at,
        ),
        provider_dispatch_id=provider_dispatch_id,
    )

    return ResponseBuilder.success(
        request=request,
        data=response_data.model_dump(by_alias=True),
        message=(
            "Notification scheduled"
            if log.status == NotificationStatus.SCHEDULED
            else "Notification sent"
        ),
    )


@notifications_router.get(
    "",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Notification history",
    dependencies=[Depends(require_sender)],
)
async def list_notifications(
    request: Request,
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(
        default=20, ge=1, le=100, alias="pageSize", description="Items per page"
    ),
    notification_status: Optional[NotificationStatus] = Query(
        default=None, alias="status", description="Filter by status"
    ),
    group_id: Optional[str] = Query(
        default=None, alias="groupId", description="Filter by targeted group"
    ),
    created_by: Optional[str] = Query(
        default=None, alias="createdBy", description="Filter by author user id"
    ),
    notification_service: NotificationService = Depends(get_notification_service),
):
    results, total = await notification_service.list_history(
        page=page,
        page_size=page_size,
        status=notification_status,
        group_id=group_id,
        created_by=created_by,
    )
    return ResponseBuilder.paginated(
        request=request,
        results=results,
        page=page,
        page_size=page_size,
        total=total,
        message=f"Retrieved {len(results)} notification{'s' if len(results) != 1 else ''}",
    )


@notifications_router.post(
    "/{notification_id}/cancel",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Cancel a scheduled notification",
    description="Best effort: a provider refusal is reported without changing the record.",
    dependencies=[Depends(require_sender)],
)
async def cancel_notification(
    request: Request,
    notification_id: Annotated[str, Path(description="Notification log ID")],
    notification_service: NotificationService = Depends(get_dispatch_service),
):
    try:
        result = await notification_service.cancel(notification_id)
    except ValueError as e:
        return handle_service_error(request, e)

    if not result["cancelled"]:
        return ResponseBuilder.warning(
            request=request,
            data=result,
            message="Provider could not cancel the notification",
            warnings=[result.get("reason") or "Cancellation failed"],
        )

    return ResponseBuilder.success(
        request=request, data=result, message="Notification cancelled"
    )
