from dataclasses import dataclass, field
from datetime import datetime
from email.utils import format_datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, field_validator

from app.config.settings import settings
from app.utils.datetime_utils import to_utc
from app.utils.errors import BusinessLogicError, ConfigurationError, ProviderError
from app.utils.logging import get_logger

logger = get_logger()

# Largest page the provider serves from the player list endpoint
MAX_PAGE_LIMIT = 300


class ProviderPlayer(BaseModel):
    """A player record as returned by the provider. Unknown fields are kept."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    notification_types: Optional[int] = None
    invalid_identifier: Optional[bool] = None
    test_type: Optional[int] = None
    external_user_id: Optional[str] = None
    tags: Optional[Dict[str, Any]] = None
    custom: Optional[Dict[str, Any]] = None

    @field_validator("tags", "custom", mode="before")
    @classmethod
    def empty_mapping_as_none(cls, value):
        # The provider sends [] instead of {} for players without tags
        return value if isinstance(value, dict) else None


@dataclass
class PlayersPage:
    """One page of the provider's player list (raw records, unparsed)"""

    players: List[Dict[str, Any]] = field(default_factory=list)
    total_count: int = 0
    offset: int = 0
    limit: int = MAX_PAGE_LIMIT


class OneSignalClient:
    """Async wrapper around the OneSignal REST API."""

    def __init__(
        self,
        app_id: Optional[str],
        api_key: Optional[str],
        base_url: str = settings.ONESIGNAL_API_BASE,
        timeout: float = settings.ONESIGNAL_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not app_id or not api_key:
            raise ConfigurationError(
                "OneSignal credentials not configured properly",
                error_code="ONESIGNAL_CONFIG_MISSING",
            )

        self.app_id = app_id
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Basic {self.api_key}",
            "Content-Type": "application/json; charset=utf-8",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Perform one provider call. Non-2xx and transport failures raise ProviderError."""
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.request(
                    method,
                    endpoint,
                    params=params,
                    json=json,
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            raise ProviderError(
                f"OneSignal {method} {endpoint} failed before a response was received",
                endpoint=endpoint,
                body=str(e),
            ) from e

        if not response.is_success:
            raise ProviderError(
                f"OneSignal {method} {endpoint} returned {response.status_code}",
                endpoint=endpoint,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"OneSignal {method} {endpoint} returned a non-JSON body",
                endpoint=endpoint,
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def list_players(
        self, offset: int = 0, limit: int = MAX_PAGE_LIMIT
    ) -> PlayersPage:
        """Fetch one page of players. ``limit`` is capped at the provider maximum."""
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if offset < 0:
            raise ValueError("offset must not be negative")

        limit = min(limit, MAX_PAGE_LIMIT)
        data = await self._request(
            "GET",
            "/players",
            params={"app_id": self.app_id, "limit": limit, "offset": offset},
        )

        return PlayersPage(
            players=list(data.get("players") or []),
            total_count=int(data.get("total_count") or 0),
            offset=offset,
            limit=limit,
        )

    async def send_notification(
        self,
        title: str,
        message: str,
        player_ids: Optional[List[str]] = None,
        segments: Optional[List[str]] = None,
        url: Optional[str] = None,
        image_url: Optional[str] = None,
        send_after: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Create (or schedule) a notification and return the provider response."""
        if not (title or "").strip() or not (message or "").strip():
            raise BusinessLogicError(
                "Title and message are required", error_code="INVALID_NOTIFICATION"
            )
        if not player_ids and not segments:
            raise BusinessLogicError(
                "At least one recipient or segment is required",
                error_code="INVALID_NOTIFICATION",
            )

        payload: Dict[str, Any] = {
            "app_id": self.app_id,
            "headings": {"en": title},
            "contents": {"en": message},
        }
        if player_ids:
            payload["include_player_ids"] = list(player_ids)
        if segments:
            payload["included_segments"] = list(segments)
        if url:
            payload["url"] = url
        if image_url:
            payload["big_picture"] = image_url
        if send_after:
            payload["send_after"] = format_datetime(to_utc(send_after), usegmt=True)

        data = await self._request("POST", "/notifications", json=payload)

        # The provider answers 200 with an errors member when nothing was created
        if not data.get("id") and data.get("errors"):
            raise ProviderError(
                "OneSignal accepted the request but created no notification",
                endpoint="/notifications",
                status_code=200,
                body=str(data.get("errors")),
            )

        logger.info(
            "Notification accepted by provider",
            provider_dispatch_id=data.get("id"),
            recipients=len(player_ids or []),
            scheduled=bool(send_after),
        )
        return data

    async def cancel_notification(self, notification_id: str) -> Dict[str, Any]:
        """Cancel a scheduled notification."""
        return await self._request(
            "DELETE",
            f"/notifications/{notification_id}",
            params={"app_id": self.app_id},
        )


# Dependency injection for the provider client
def get_onesignal_client() -> OneSignalClient:
    """Dependency to provide a OneSignalClient built from settings"""
    return OneSignalClient(
        app_id=settings.ONESIGNAL_APP_ID,
        api_key=settings.ONESIGNAL_REST_API_KEY,
    )
