from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.db.session import get_sync_session
from app.middlewares.auth_middleware import require_admin
from app.providers.subscriber_sync_provider import SubscriberSyncProvider
from app.services.onesignal.onesignal_client import (
    OneSignalClient,
    get_onesignal_client,
)
from app.utils.responses import ResponseBuilder

sync_router = APIRouter(dependencies=[Depends(require_admin)])


def get_sync_provider(
    db: Session = Depends(get_sync_session),
    client: OneSignalClient = Depends(get_onesignal_client),
) -> SubscriberSyncProvider:
    """Dependency to provide a SubscriberSyncProvider wired to the provider client"""
    return SubscriberSyncProvider(db, client)


@sync_router.post(
    "",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Reconcile local subscribers with OneSignal",
    description="Pages through the OneSignal player list, keeps active players and upserts them into the local subscriber table.",
)
async def trigger_sync(
    request: Request,
    sync_provider: SubscriberSyncProvider = Depends(get_sync_provider),
):
    result = await sync_provider.sync()
    payload = result.to_dict()

    # "Nothing to do" is distinct from success and from failure
    if result.status != "completed":
        return ResponseBuilder.warning(
            request=request,
            data=payload,
            message=result.message,
            warnings=[result.message],
        )

    warnings = []
    if result.truncated:
        warnings.append("Page limit reached before all players were fetched")
    if result.summary.errors:
        warnings.append(f"{result.summary.errors} record(s) failed to sync")

    if warnings:
        return ResponseBuilder.warning(
            request=request, data=payload, message=result.message, warnings=warnings
        )

    return ResponseBuilder.success(request=request, data=payload, message=result.message)


@sync_router.get(
    "",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Compare local and OneSignal subscriber counts",
)
async def get_sync_status(
    request: Request,
    sync_provider: SubscriberSyncProvider = Depends(get_sync_provider),
):
    sync_status = await sync_provider.status()
    return ResponseBuilder.success(
        request=request,
        data=sync_status,
        message=(
            "Sync recommended"
            if sync_status["syncNeeded"]
            else "Local subscribers are in sync"
        ),
    )
