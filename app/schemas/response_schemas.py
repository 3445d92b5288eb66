import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from app.config.settings import settings
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel
from app.utils.datetime_utils import utc_now


class ResponseStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


class PaginationMeta(BaseModel):
    """Paging block attached to list endpoints (history, subscribers)."""

    page: int = Field(..., ge=1)
    per_page: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    has_next: bool
    has_prev: bool
    next_page: Optional[int] = None
    prev_page: Optional[int] = None


def _new_request_id() -> str:
    return str(uuid.uuid4())


def _utc_timestamp() -> str:
    return utc_now().isoformat()


class ApiResponse(BaseModel):
    """
    Envelope wrapped around every admin and public API response.

    ``data`` carries the endpoint payload, ``meta`` carries machine readable
    context such as ``error_code`` or the failed sync page.
    """

    success: bool
    status: ResponseStatus
    message: str
    data: Optional[Any] = None
    meta: Optional[Dict[str, Any]] = None
    pagination: Optional[PaginationMeta] = None
    errors: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Field level validation failures"
    )
    warnings: Optional[List[str]] = None
    timestamp: str = Field(default_factory=_utc_timestamp)
    request_id: str = Field(default_factory=_new_request_id)
    path: Optional[str] = None
    version: str = Field(default=settings.VERSION, description="Service version")
