"""
Tests for the OneSignal REST client.

The provider is served by httpx.MockTransport so every request can be inspected.
"""

from datetime import datetime, timezone

import httpx
import pytest

from app.services.onesignal.onesignal_client import (
    MAX_PAGE_LIMIT,
    OneSignalClient,
    ProviderPlayer,
)
from app.utils.errors import BusinessLogicError, ConfigurationError, ProviderError

from conftest import make_player


class TestClientConfiguration:
    """Credentials are required up front"""

    @pytest.mark.parametrize("app_id,api_key", [("", "key"), ("app", ""), (None, None)])
    def test_missing_credentials_raise_configuration_error(self, app_id, api_key):
        with pytest.raises(ConfigurationError) as exc_info:
            OneSignalClient(app_id=app_id, api_key=api_key)

        assert exc_info.value.error_code == "ONESIGNAL_CONFIG_MISSING"


class TestListPlayers:
    """Player list paging"""

    @pytest.mark.asyncio
    async def test_sends_app_id_paging_and_basic_auth(self, onesignal_client, fake_provider):
        fake_provider.players = [make_player("p1"), make_player("p2")]

        page = await onesignal_client.list_players(offset=0, limit=50)

        request = fake_provider.player_requests[0]
        assert request.url.params["app_id"] == "test-app-id"
        assert request.url.params["limit"] == "50"
        assert request.url.params["offset"] == "0"
        assert request.headers["Authorization"] == "Basic test-api-key"
        assert [p["id"] for p in page.players] == ["p1", "p2"]
        assert page.total_count == 2

    @pytest.mark.asyncio
    async def test_limit_is_capped_at_provider_maximum(self, onesignal_client, fake_provider):
        page = await onesignal_client.list_players(offset=0, limit=1000)

        assert page.limit == MAX_PAGE_LIMIT
        assert fake_provider.player_requests[0].url.params["limit"] == str(MAX_PAGE_LIMIT)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("offset,limit", [(0, 0), (-1, 10)])
    async def test_invalid_paging_is_rejected_before_any_request(
        self, onesignal_client, fake_provider, offset, limit
    ):
        with pytest.raises(ValueError):
            await onesignal_client.list_players(offset=offset, limit=limit)

        assert fake_provider.requests == []

    @pytest.mark.asyncio
    async def test_non_success_status_raises_provider_error(self, onesignal_client, fake_provider):
        fake_provider.fail_on_offset = {0: 503}

        with pytest.raises(ProviderError) as exc_info:
            await onesignal_client.list_players()

        assert exc_info.value.status_code == 503
        assert exc_info.value.endpoint == "/players"
        assert "Internal error" in exc_info.value.body

    @pytest.mark.asyncio
    async def test_transport_failure_raises_provider_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = OneSignalClient(
            app_id="app", api_key="key", transport=httpx.MockTransport(refuse)
        )

        with pytest.raises(ProviderError) as exc_info:
            await client.list_players()

        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.body


class TestSendNotification:
    """Notification creation payloads"""

    @pytest.mark.asyncio
    async def test_payload_targets_player_ids(self, onesignal_client, fake_provider):
        response = await onesignal_client.send_notification(
            title="Flash sale",
            message="50% off today",
            player_ids=["p1", "p2"],
            url="https://example.com/sale",
            image_url="https://example.com/sale.png",
        )

        payload = fake_provider.last_payload()
        assert response["id"] == "notif-123"
        assert payload["app_id"] == "test-app-id"
        assert payload["headings"] == {"en": "Flash sale"}
        assert payload["contents"] == {"en": "50% off today"}
        assert payload["include_player_ids"] == ["p1", "p2"]
        assert payload["url"] == "https://example.com/sale"
        assert payload["big_picture"] == "https://example.com/sale.png"
        assert "send_after" not in payload
        assert "included_segments" not in payload

    @pytest.mark.asyncio
    async def test_scheduled_send_formats_send_after_in_gmt(
        self, onesignal_client, fake_provider
    ):
        await onesignal_client.send_notification(
            title="Reminder",
            message="Starts soon",
            player_ids=["p1"],
            send_after=datetime(2030, 1, 15, 9, 30, tzinfo=timezone.utc),
        )

        assert fake_provider.last_payload()["send_after"] == "Tue, 15 Jan 2030 09:30:00 GMT"

    @pytest.mark.asyncio
    async def test_segments_can_replace_player_ids(self, onesignal_client, fake_provider):
        await onesignal_client.send_notification(
            title="Hello", message="World", segments=["Subscribed Users"]
        )

        payload = fake_provider.last_payload()
        assert payload["included_segments"] == ["Subscribed Users"]
        assert "include_player_ids" not in payload

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "title,message,player_ids",
        [("", "body", ["p1"]), ("title", "  ", ["p1"]), ("title", "body", [])],
    )
    async def test_invalid_notification_never_reaches_provider(
        self, onesignal_client, fake_provider, title, message, player_ids
    ):
        with pytest.raises(BusinessLogicError) as exc_info:
            await onesignal_client.send_notification(
                title=title, message=message, player_ids=player_ids
            )

        assert exc_info.value.error_code == "INVALID_NOTIFICATION"
        assert fake_provider.requests == []

    @pytest.mark.asyncio
    async def test_success_status_with_errors_and_no_id_is_a_failure(
        self, onesignal_client, fake_provider
    ):
        fake_provider.send_body = {"id": "", "errors": ["All included players are not subscribed"]}

        with pytest.raises(ProviderError) as exc_info:
            await onesignal_client.send_notification(
                title="Hello", message="World", player_ids=["p1"]
            )

        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_rejected_notification_raises_provider_error(
        self, onesignal_client, fake_provider
    ):
        fake_provider.send_status = 400

        with pytest.raises(ProviderError) as exc_info:
            await onesignal_client.send_notification(
                title="Hello", message="World", player_ids=["p1"]
            )

        assert exc_info.value.status_code == 400


class TestCancelNotification:
    @pytest.mark.asyncio
    async def test_cancel_deletes_by_id(self, onesignal_client, fake_provider):
        await onesignal_client.cancel_notification("notif-9")

        request = fake_provider.requests[-1]
        assert request.method == "DELETE"
        assert request.url.path == "/notifications/notif-9"
        assert request.url.params["app_id"] == "test-app-id"


class TestProviderPlayer:
    def test_unknown_fields_are_kept_and_list_tags_become_none(self):
        player = ProviderPlayer.model_validate(
            {"id": "p1", "tags": [], "device_model": "Pixel 8"}
        )

        assert player.tags is None
        assert player.model_extra == {"device_model": "Pixel 8"}
