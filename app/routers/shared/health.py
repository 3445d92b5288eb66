from fastapi import APIRouter, Request

from app.config.settings import settings
from app.utils.responses import ResponseBuilder

health_router = APIRouter()


@health_router.get("")
async def health_check(request: Request):
    """
    Basic health check endpoint

    Returns application status and whether provider credentials are configured
    """
    return ResponseBuilder.success(
        request=request,
        data={
            "status": "healthy",
            "service": settings.NAME,
            "version": settings.VERSION,
            "providerConfigured": bool(
                settings.ONESIGNAL_APP_ID and settings.ONESIGNAL_REST_API_KEY
            ),
        },
        message="Service is running",
    )
