from fastapi import APIRouter

from .subscriptions import subscriptions_router

public_router = APIRouter()

# Include sub-routers
public_router.include_router(
    subscriptions_router, prefix="/subscribers", tags=["Public - Subscriptions"]
)
