from typing import List, Optional
from datetime import datetime
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class CreateGroupRequest(BaseModel):
    """Request schema for creating a new group"""

    name: str = Field(..., min_length=1, max_length=100, description="Unique group name")
    description: Optional[str] = Field(None, description="Group description")
    subscriber_ids: List[str] = Field(
        default_factory=list, description="Subscribers to add on creation"
    )


class UpdateGroupRequest(BaseModel):
    """Request schema for updating a group and its membership"""

    name: Optional[str] = Field(None, max_length=100, description="New group name")
    description: Optional[str] = Field(None, description="New group description")
    subscriber_ids_add: List[str] = Field(
        default_factory=list, description="Subscribers to add"
    )
    subscriber_ids_remove: List[str] = Field(
        default_factory=list, description="Subscribers to remove"
    )


class GroupResponse(BaseModel):
    """Response schema for group data with member count"""

    id: str = Field(..., description="Group ID")
    name: str = Field(..., description="Group name")
    description: Optional[str] = Field(None, description="Group description")
    member_count: int = Field(..., description="Number of subscribers in the group")
    created_at: datetime = Field(..., description="Group creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Group last update")

