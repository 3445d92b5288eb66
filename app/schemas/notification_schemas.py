from typing import List, Optional
from datetime import datetime
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel
from app.schemas.subscriber_schemas import GroupRef


class SendNotificationRequest(BaseModel):
    """Send or schedule a notification to every subscriber of the given groups"""

    title: str = Field(..., max_length=255, description="Notification heading")
    message: str = Field(..., description="Notification body")
    groups: List[str] = Field(default_factory=list, description="Target group IDs")
    url: Optional[str] = Field(None, max_length=2048, description="Click-through URL")
    image_url: Optional[str] = Field(None, max_length=2048, description="Image URL")
    schedule_at: Optional[datetime] = Field(
        None, description="Future delivery time; immediate when omitted"
    )


class NotificationLogSummary(BaseModel):
    id: str
    title: str
    status: str
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None


class SendNotificationResponse(BaseModel):
    log: NotificationLogSummary
    provider_dispatch_id: Optional[str] = None


class NotificationHistoryItem(BaseModel):
    id: str
    title: str
    message: str
    status: str
    url: Optional[str] = None
    image_url: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    delivered: Optional[int] = None
    failed: Optional[int] = None
    created_at: datetime
    created_by_id: Optional[str] = None
    groups: List[GroupRef] = Field(default_factory=list)


class CancelNotificationResponse(BaseModel):
    id: str
    cancelled: bool
    status: str
    reason: Optional[str] = None
