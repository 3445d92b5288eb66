from fastapi import APIRouter

from .sync import sync_router
from .subscribers import subscribers_router

admin_router = APIRouter()

# Include sub-routers
admin_router.include_router(sync_router, prefix="/sync", tags=["Admin - Subscriber Sync"])
admin_router.include_router(
    subscribers_router, prefix="/subscribers", tags=["Admin - Subscriber Management"]
)
