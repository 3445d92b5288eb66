"""
Subscriber reconciliation against the push provider.

Pulls the provider's player list page by page, keeps the players that can
actually receive notifications and upserts them into the local subscriber
table keyed on the provider player id. Each record commits on its own so one
bad record never aborts the batch.
"""

import asyncio
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.models import Group, Subscriber
from app.services.group_service import get_or_create_default_group
from app.services.onesignal.onesignal_client import OneSignalClient, ProviderPlayer
from app.utils.datetime_utils import naive_utc_now, utc_now
from app.utils.errors import ProviderError, SyncAbortedError, SyncInProgressError
from app.utils.logging import get_logger

logger = get_logger()

# Serializes sync runs within this process
_sync_lock = asyncio.Lock()

MAX_ERROR_DETAILS = 10

CONTACT_TAG_KEYS = ("mobile", "phone", "phoneNumber")
PHONE_LIKE_PATTERN = re.compile(r"\+?\d{10,15}")


class RecordOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    ERRORED = "errored"


@dataclass
class RecordResult:
    external_id: Optional[str]
    outcome: RecordOutcome
    reason: Optional[str] = None


@dataclass
class SyncSummary:
    provider_total: int = 0
    provider_active: int = 0
    provider_ignored: int = 0
    local_created: int = 0
    local_updated: int = 0
    errors: int = 0
    total_local_subscribers: int = 0

    def add(self, result: RecordResult) -> "SyncSummary":
        if result.outcome == RecordOutcome.CREATED:
            self.local_created += 1
        elif result.outcome == RecordOutcome.UPDATED:
            self.local_updated += 1
        else:
            self.errors += 1
        return self


@dataclass
class SyncResult:
    status: str
    summary: SyncSummary
    truncated: bool = False
    pages_fetched: int = 0
    error_details: List[RecordResult] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.status == "empty":
            return "No players found in OneSignal. Nothing to sync."
        if self.status == "no_active":
            return "No active subscribers found in OneSignal"
        message = (
            f"OneSignal sync completed. Created {self.summary.local_created}, "
            f"updated {self.summary.local_updated} subscribers."
        )
        if self.truncated:
            message += " Page limit reached; run the sync again to continue."
        return message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "status": self.status,
            "message": self.message,
            "summary": {
                "providerTotal": self.summary.provider_total,
                "providerActive": self.summary.provider_active,
                "providerIgnored": self.summary.provider_ignored,
                "localCreated": self.summary.local_created,
                "localUpdated": self.summary.local_updated,
                "errors": self.summary.errors,
                "totalLocalSubscribers": self.summary.total_local_subscribers,
            },
            "truncated": self.truncated,
            "pagesFetched": self.pages_fetched,
            "errorDetails": [
                {"externalId": r.external_id, "reason": r.reason}
                for r in self.error_details
            ],
        }


def is_active_player(player: ProviderPlayer) -> bool:
    """A player can receive pushes, has a valid token and is not a test device"""
    return (
        (player.notification_types or 0) > 0
        and player.invalid_identifier is not True
        and not player.test_type
    )


def _non_empty(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def extract_contact(player: ProviderPlayer) -> Optional[str]:
    """Derive a contact number from a player record, first match wins."""
    tags = player.tags or {}
    for key in CONTACT_TAG_KEYS:
        contact = _non_empty(tags.get(key))
        if contact:
            return contact

    external_user_id = _non_empty(player.external_user_id)
    if external_user_id:
        cleaned = re.sub(r"[^\d+]", "", external_user_id)
        if PHONE_LIKE_PATTERN.fullmatch(cleaned):
            return external_user_id

    for key, value in (player.custom or {}).items():
        lowered = str(key).lower()
        if "mobile" in lowered or "phone" in lowered:
            contact = _non_empty(value)
            if contact:
                return contact

    return None


class SubscriberSyncProvider:
    """Reconciles the local subscriber table with the provider's player list"""

    def __init__(
        self,
        db_session: Session,
        client: OneSignalClient,
        page_limit: int = settings.ONESIGNAL_PAGE_LIMIT,
        max_pages: int = settings.ONESIGNAL_SYNC_MAX_PAGES,
        page_delay: float = settings.ONESIGNAL_PAGE_DELAY_SECONDS,
    ):
        self.db = db_session
        self.client = client
        self.page_limit = page_limit
        self.max_pages = max_pages
        self.page_delay = page_delay

    async def sync(self) -> SyncResult:
        """Run one reconciliation pass. Concurrent calls fail fast."""
        if _sync_lock.locked():
            raise SyncInProgressError()

        async with _sync_lock:
            return await self._run()

    async def _run(self) -> SyncResult:
        raw_players, pages_fetched, truncated = await self._fetch_all_players()
        summary = SyncSummary(provider_total=len(raw_players))

        logger.info(
            "Fetched players from provider",
            players=len(raw_players),
            pages=pages_fetched,
            truncated=truncated,
        )

        if not raw_players:
            summary.total_local_subscribers = self._count_local_subscribers()
            return SyncResult(
                status="empty", summary=summary, pages_fetched=pages_fetched
            )

        active: List[ProviderPlayer] = []
        rejected: List[RecordResult] = []
        for raw in raw_players:
            player = self._parse_player(raw)
            if isinstance(player, RecordResult):
                rejected.append(player)
            elif is_active_player(player):
                active.append(player)
            else:
                summary.provider_ignored += 1

        summary.provider_active = len(active)

        results: List[RecordResult] = list(rejected)
        if active:
            default_group = get_or_create_default_group(self.db)
            results.extend(self._upsert_player(p, default_group) for p in active)

        for result in results:
            summary.add(result)
            if result.outcome == RecordOutcome.ERRORED:
                logger.warning(
                    "Subscriber record failed to sync",
                    external_id=result.external_id,
                    reason=result.reason,
                )

        summary.total_local_subscribers = self._count_local_subscribers()
        errored = [r for r in results if r.outcome == RecordOutcome.ERRORED]

        result = SyncResult(
            status="completed" if active else "no_active",
            summary=summary,
            truncated=truncated,
            pages_fetched=pages_fetched,
            error_details=errored[:MAX_ERROR_DETAILS],
        )
        logger.info(
            "Subscriber sync finished",
            status=result.status,
            created=summary.local_created,
            updated=summary.local_updated,
            ignored=summary.provider_ignored,
            errors=summary.errors,
        )
        return result

    async def _fetch_all_players(self):
        """Page through the provider sequentially, bounded by ``max_pages``"""
        players: List[Dict[str, Any]] = []
        offset = 0
        pages_fetched = 0
        has_more = True

        while has_more and pages_fetched < self.max_pages:
            page_number = pages_fetched + 1
            try:
                page = await self.client.list_players(
                    offset=offset, limit=self.page_limit
                )
            except ProviderError as e:
                raise SyncAbortedError(
                    page=page_number, records_fetched=len(players), cause=e
                ) from e

            pages_fetched = page_number
            players.extend(page.players)

            has_more = (
                len(page.players) == page.limit and len(players) < page.total_count
            )
            offset += page.limit

            if has_more and pages_fetched < self.max_pages and self.page_delay > 0:
                await asyncio.sleep(self.page_delay)

        return players, pages_fetched, has_more

    @staticmethod
    def _parse_player(raw: Any):
        """Parse a raw record, or return an errored RecordResult when it is unusable"""
        raw_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            player = ProviderPlayer.model_validate(raw)
        except ValidationError as e:
            return RecordResult(
                external_id=str(raw_id) if raw_id else None,
                outcome=RecordOutcome.ERRORED,
                reason=f"Malformed player record: {e.error_count()} invalid field(s)",
            )
        if not _non_empty(player.id):
            return RecordResult(
                external_id=None,
                outcome=RecordOutcome.ERRORED,
                reason="Player record has no id",
            )
        return player

    def _upsert_player(self, player: ProviderPlayer, default_group: Group) -> RecordResult:
        """Create or refresh one subscriber. Commits or rolls back this record only."""
        external_id = str(player.id).strip()
        try:
            contact = extract_contact(player)
            subscriber = self.db.execute(
                select(Subscriber).where(Subscriber.external_id == external_id)
            ).scalar_one_or_none()

            if subscriber:
                subscriber.updated_at = naive_utc_now()
                if contact and not subscriber.contact:
                    subscriber.contact = contact
                outcome = RecordOutcome.UPDATED
            else:
                subscriber = Subscriber(external_id=external_id, contact=contact)
                subscriber.groups.append(default_group)
                self.db.add(subscriber)
                outcome = RecordOutcome.CREATED

            self.db.commit()
            return RecordResult(external_id=external_id, outcome=outcome)

        except Exception as e:
            self.db.rollback()
            return RecordResult(
                external_id=external_id,
                outcome=RecordOutcome.ERRORED,
                reason=f"{type(e).__name__}: {e}",
            )

    def _count_local_subscribers(self) -> int:
        return self.db.execute(select(func.count(Subscriber.id))).scalar_one()

    async def status(self) -> Dict[str, Any]:
        """Compare local and provider subscriber counts without syncing"""
        local_subscribers = self._count_local_subscribers()
        provider_subscribers: Optional[int] = None
        provider_error: Optional[str] = None

        try:
            page = await self.client.list_players(offset=0, limit=1)
            provider_subscribers = page.total_count
        except ProviderError as e:
            provider_error = e.message
            logger.warning(
                "Provider unavailable while checking sync status",
                endpoint=e.endpoint,
                provider_status=e.status_code,
            )

        return {
            "localSubscribers": local_subscribers,
            "providerSubscribers": provider_subscribers,
            "syncNeeded": (
                provider_subscribers is not None
                and local_subscribers != provider_subscribers
            ),
            "providerError": provider_error,
            "lastSyncCheck": utc_now().isoformat(),
        }
