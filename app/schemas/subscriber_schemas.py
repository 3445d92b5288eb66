from typing import List, Optional
from datetime import datetime
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class GroupRef(BaseModel):
    id: str = Field(..., description="Group ID")
    name: str = Field(..., description="Group name")


class RegisterSubscriberRequest(BaseModel):
    """Bind a contact number to a provider player id"""

    external_id: str = Field(..., max_length=255, description="Provider player id")
    contact: str = Field(..., description="Contact phone number")


class SubscriberStatusRequest(BaseModel):
    external_id: str = Field(..., description="Provider player id")


class UnsubscribeRequest(BaseModel):
    """Either identifier is accepted; at least one must be given"""

    external_id: Optional[str] = Field(None, description="Provider player id")
    contact: Optional[str] = Field(None, description="Contact phone number")


class SubscriberResponse(BaseModel):
    id: str = Field(..., description="Subscriber ID")
    external_id: str = Field(..., description="Provider player id")
    contact: Optional[str] = Field(None, description="Contact phone number")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
    groups: List[GroupRef] = Field(default_factory=list, description="Member groups")


class RegisterSubscriberResponse(BaseModel):
    success: bool = Field(True)
    message: str = Field(..., description="Outcome description")
    subscriber: SubscriberResponse
    is_new: bool = Field(..., description="Whether a subscriber row was created")


class SubscriberStatusResponse(BaseModel):
    subscribed: bool = Field(..., description="Whether a subscriber row exists")
    subscriber: Optional[SubscriberResponse] = None


class SubscriberStats(BaseModel):
    total_subscribers: int
    new_this_month: int
    new_last_month: int
    monthly_growth: float
    active_subscribers: int
    active_percentage: float
    total_groups: int
    notifications_sent_today: int
