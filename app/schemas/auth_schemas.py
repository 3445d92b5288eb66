from datetime import datetime
from typing import Optional

from pydantic import Field
from .camel_base_model import CamelCaseBaseModel as BaseModel


class LoginRequest(BaseModel):
    """Login request schema"""

    email: str = Field(..., min_length=3, max_length=320, description="Email")
    password: str = Field(..., min_length=1, description="Password")


class UserResponse(BaseModel):
    """User response schema"""

    id: str = Field(..., description="User ID")
    email: str = Field(..., description="Email")
    role: str = Field(..., description="User role")
    is_active: bool = Field(..., description="User active status")
    last_login: Optional[datetime] = Field(None, description="Last login timestamp")


class LoginResponse(BaseModel):
    """Bearer token issued on successful login"""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: UserResponse = Field(..., description="Authenticated user")
