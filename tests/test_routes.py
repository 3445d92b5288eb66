"""
API tests through the full middleware stack.
"""

import pytest
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.config.settings import settings
from app.db.models import NotificationLog, Subscriber
from app.services.group_service import get_group_service
from app.services.onesignal.onesignal_client import get_onesignal_client
from app.main import app
from app.utils.errors import ConfigurationError
from app.utils.logging import get_logger

from conftest import make_player

API = settings.API_PREFIX


def error_code(response) -> str:
    return response.json()["meta"]["error_code"]


class TestHealthAndAuth:
    def test_health_is_public(self, client):
        response = client.get(f"{API}/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "healthy"
        assert response.headers["X-Request-ID"]
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_protected_route_requires_token(self, client):
        response = client.get(f"{API}/groups")

        assert response.status_code == 401
        assert error_code(response) == "UNAUTHORIZED"

    def test_garbage_token_is_rejected(self, client):
        response = client.get(
            f"{API}/groups", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401

    def test_login_issues_bearer_token(self, client, admin_user):
        response = client.post(
            f"{API}/auth/login",
            json={"email": "ADMIN@example.com", "password": "admin-password"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["tokenType"] == "bearer"
        assert data["user"]["role"] == "ADMIN"

        me = client.get(
            f"{API}/auth/me",
            headers={"Authorization": f"Bearer {data['accessToken']}"},
        )
        assert me.status_code == 200
        assert me.json()["data"]["email"] == "admin@example.com"

    def test_wrong_password_is_rejected(self, client, admin_user):
        response = client.post(
            f"{API}/auth/login",
            json={"email": "admin@example.com", "password": "nope"},
        )

        assert response.status_code == 401

    def test_inactive_user_cannot_log_in(self, client, create_user):
        from app.db.models import UserRole

        create_user("gone@example.com", "secret-pass", UserRole.SENDER, is_active=False)

        response = client.post(
            f"{API}/auth/login",
            json={"email": "gone@example.com", "password": "secret-pass"},
        )

        assert response.status_code == 401


class TestPublicSubscriptions:
    def test_register_new_subscriber_joins_default_group(self, client):
        response = client.post(
            f"{API}/subscribers/register",
            json={"externalId": "player-1", "contact": "+66 81 234 5678"},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["isNew"] is True
        assert data["message"] == "Subscriber registered successfully"
        assert data["subscriber"]["contact"] == "+66812345678"
        assert [g["name"] for g in data["subscriber"]["groups"]] == [
            settings.DEFAULT_GROUP_NAME
        ]

    def test_register_again_is_idempotent(self, client):
        payload = {"externalId": "player-1", "contact": "+66812345678"}
        client.post(f"{API}/subscribers/register", json=payload)

        response = client.post(f"{API}/subscribers/register", json=payload)

        assert response.status_code == 200
        assert response.json()["data"]["isNew"] is False
        assert response.json()["data"]["message"] == "Subscriber already exists"

    def test_register_with_new_number_updates_contact(self, client):
        client.post(
            f"{API}/subscribers/register",
            json={"externalId": "player-1", "contact": "+66812345678"},
        )

        response = client.post(
            f"{API}/subscribers/register",
            json={"externalId": "player-1", "contact": "+66899999999"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Mobile number updated successfully"
        assert response.json()["data"]["subscriber"]["contact"] == "+66899999999"

    def test_number_owned_by_another_player_conflicts(self, client):
        client.post(
            f"{API}/subscribers/register",
            json={"externalId": "player-1", "contact": "+66812345678"},
        )

        response = client.post(
            f"{API}/subscribers/register",
            json={"externalId": "player-2", "contact": "+66812345678"},
        )

        assert response.status_code == 409
        assert error_code(response) == "CONTACT_ALREADY_REGISTERED"

    def test_invalid_contact_is_rejected(self, client):
        response = client.post(
            f"{API}/subscribers/register",
            json={"externalId": "player-1", "contact": "call me"},
        )

        assert response.status_code == 400
        assert error_code(response) == "INVALID_CONTACT"

    def test_missing_fields_are_rejected(self, client):
        response = client.post(
            f"{API}/subscribers/register", json={"externalId": " ", "contact": ""}
        )

        assert response.status_code == 400
        assert error_code(response) == "MISSING_FIELDS"

    def test_status_reports_registration(self, client):
        client.post(
            f"{API}/subscribers/register",
            json={"externalId": "player-1", "contact": "+66812345678"},
        )

        known = client.post(f"{API}/subscribers/status", json={"externalId": "player-1"})
        unknown = client.post(f"{API}/subscribers/status", json={"externalId": "player-x"})

        assert known.json()["data"]["subscribed"] is True
        assert known.json()["data"]["subscriber"]["externalId"] == "player-1"
        assert unknown.json()["data"] == {"subscribed": False, "subscriber": None}

    def test_unsubscribe_removes_all_memberships(self, client, db_session):
        client.post(
            f"{API}/subscribers/register",
            json={"externalId": "player-1", "contact": "+66812345678"},
        )

        response = client.post(
            f"{API}/subscribers/unsubscribe", json={"contact": "+66812345678"}
        )

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Successfully unsubscribed"
        db_session.expire_all()
        subscriber = db_session.execute(
            select(Subscriber).where(Subscriber.external_id == "player-1")
        ).scalar_one()
        assert subscriber.groups == []

    def test_unsubscribe_unknown_subscriber(self, client):
        response = client.post(
            f"{API}/subscribers/unsubscribe", json={"externalId": "player-x"}
        )

        assert response.status_code == 404
        assert error_code(response) == "SUBSCRIBER_NOT_FOUND"

    def test_unsubscribe_needs_an_identifier(self, client):
        response = client.post(f"{API}/subscribers/unsubscribe", json={})

        assert response.status_code == 400


class TestGroups:
    def test_sender_can_list_groups_with_member_counts(
        self, client, sender_headers, default_group, create_subscriber
    ):
        create_subscriber("p1", groups=[default_group])
        create_subscriber("p2", groups=[default_group])

        response = client.get(f"{API}/groups", headers=sender_headers)

        assert response.status_code == 200
        groups = response.json()["data"]
        assert groups[0]["name"] == settings.DEFAULT_GROUP_NAME
        assert groups[0]["memberCount"] == 2

    def test_sender_cannot_create_groups(self, client, sender_headers):
        response = client.post(
            f"{API}/groups", json={"name": "VIP Users"}, headers=sender_headers
        )

        assert response.status_code == 403

    def test_admin_creates_group_with_members(
        self, client, admin_headers, create_subscriber
    ):
        subscriber = create_subscriber("p1")

        response = client.post(
            f"{API}/groups",
            json={"name": "VIP Users", "subscriberIds": [subscriber.id]},
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.json()["data"]["memberCount"] == 1

    def test_duplicate_group_name_conflicts(self, client, admin_headers, create_group):
        create_group("VIP Users")

        response = client.post(
            f"{API}/groups", json={"name": "VIP Users"}, headers=admin_headers
        )

        assert response.status_code == 409
        assert error_code(response) == "GROUP_NAME_EXISTS"

    def test_update_group_membership(
        self, client, admin_headers, create_group, create_subscriber
    ):
        vip = create_group("VIP Users")
        keep = create_subscriber("p1", groups=[vip])
        drop = create_subscriber("p2", groups=[vip])
        add = create_subscriber("p3")

        response = client.patch(
            f"{API}/groups/{vip.id}",
            json={
                "description": "Premium",
                "subscriberIdsAdd": [add.id, keep.id],
                "subscriberIdsRemove": [drop.id],
            },
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["memberCount"] == 2
        assert response.json()["data"]["description"] == "Premium"

    def test_default_group_cannot_be_deleted_or_renamed(
        self, client, admin_headers, default_group
    ):
        deleted = client.delete(f"{API}/groups/{default_group.id}", headers=admin_headers)
        renamed = client.patch(
            f"{API}/groups/{default_group.id}",
            json={"name": "Everyone"},
            headers=admin_headers,
        )

        assert deleted.status_code == 403
        assert renamed.status_code == 403
        assert error_code(deleted) == "DEFAULT_GROUP_PROTECTED"

    def test_delete_group(self, client, admin_headers, create_group):
        vip = create_group("VIP Users")

        response = client.delete(f"{API}/groups/{vip.id}", headers=admin_headers)
        missing = client.delete(f"{API}/groups/{vip.id}", headers=admin_headers)

        assert response.status_code == 200
        assert missing.status_code == 404


class TestNotifications:
    def _audience(self, default_group, create_group, create_subscriber):
        vip = create_group("VIP Users")
        create_subscriber("player-a", groups=[default_group, vip])
        create_subscriber("player-b", groups=[default_group])
        return vip

    def test_sender_sends_to_group(
        self,
        client,
        sender_headers,
        default_group,
        create_group,
        create_subscriber,
        fake_provider,
        db_session,
    ):
        vip = self._audience(default_group, create_group, create_subscriber)

        response = client.post(
            f"{API}/notifications",
            json={"title": "Flash sale", "message": "VIP only", "groups": [vip.id]},
            headers=sender_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["providerDispatchId"] == "notif-123"
        assert data["log"]["status"] == "SENT"
        assert fake_provider.last_payload()["include_player_ids"] == ["player-a"]
        db_session.expire_all()
        assert len(db_session.execute(select(NotificationLog)).scalars().all()) == 1

    def test_empty_group_is_unprocessable(
        self, client, sender_headers, create_group, fake_provider
    ):
        empty = create_group("Nobody")

        response = client.post(
            f"{API}/notifications",
            json={"title": "Hi", "message": "There", "groups": [empty.id]},
            headers=sender_headers,
        )

        assert response.status_code == 422
        assert error_code(response) == "NO_RECIPIENTS"
        assert fake_provider.send_requests == []

    def test_provider_failure_is_bad_gateway(
        self,
        client,
        sender_headers,
        default_group,
        create_group,
        create_subscriber,
        fake_provider,
    ):
        vip = self._audience(default_group, create_group, create_subscriber)
        fake_provider.send_status = 500

        response = client.post(
            f"{API}/notifications",
            json={"title": "Hi", "message": "There", "groups": [vip.id]},
            headers=sender_headers,
        )

        assert response.status_code == 502

    def test_missing_credentials_is_configuration_error(
        self, client, sender_headers, create_group
    ):
        group = create_group("VIP Users")

        def unconfigured():
            raise ConfigurationError(
                "OneSignal credentials not configured properly",
                error_code="ONESIGNAL_CONFIG_MISSING",
            )

        app.dependency_overrides[get_onesignal_client] = unconfigured

        response = client.post(
            f"{API}/notifications",
            json={"title": "Hi", "message": "There", "groups": [group.id]},
            headers=sender_headers,
        )

        assert response.status_code == 500
        assert error_code(response) == "ONESIGNAL_CONFIG_MISSING"

    def test_history_is_paginated(
        self,
        client,
        sender_headers,
        default_group,
        create_group,
        create_subscriber,
    ):
        vip = self._audience(default_group, create_group, create_subscriber)
        for title in ("one", "two"):
            client.post(
                f"{API}/notifications",
                json={"title": title, "message": "m", "groups": [vip.id]},
                headers=sender_headers,
            )

        response = client.get(
            f"{API}/notifications",
            params={"pageSize": 1, "status": "SENT"},
            headers=sender_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 2
        assert data["totalPages"] == 2
        assert len(data["results"]) == 1


class TestAdminSubscribers:
    def test_sender_cannot_access_admin_routes(self, client, sender_headers):
        assert client.get(f"{API}/admin/subscribers", headers=sender_headers).status_code == 403
        assert client.post(f"{API}/admin/sync", headers=sender_headers).status_code == 403

    def test_list_and_search(self, client, admin_headers, create_subscriber):
        create_subscriber("player-1", "+66811111111")
        create_subscriber("player-2", "+66822222222")

        everything = client.get(f"{API}/admin/subscribers", headers=admin_headers)
        searched = client.get(
            f"{API}/admin/subscribers",
            params={"search": "2222"},
            headers=admin_headers,
        )

        assert everything.json()["data"]["total"] == 2
        results = searched.json()["data"]["results"]
        assert [r["externalId"] for r in results] == ["player-2"]

    def test_stats(self, client, admin_headers, default_group, create_subscriber):
        create_subscriber("player-1", groups=[default_group])
        create_subscriber("player-2")

        response = client.get(f"{API}/admin/subscribers/stats", headers=admin_headers)

        data = response.json()["data"]
        assert data["totalSubscribers"] == 2
        assert data["activeSubscribers"] == 1
        assert data["activePercentage"] == 50.0
        assert data["totalGroups"] == 1
        assert "lastUpdated" in data

    def test_csv_export(self, client, admin_headers, default_group, create_subscriber):
        create_subscriber("player-1", "+66811111111", groups=[default_group])

        response = client.get(
            f"{API}/admin/subscribers/export",
            params={"includeGroups": "true"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "all_subscribers_" in response.headers["content-disposition"]
        lines = response.text.strip().splitlines()
        assert lines[0] == "id,externalId,contact,createdAt,groups"
        assert "player-1" in lines[1]
        assert settings.DEFAULT_GROUP_NAME in lines[1]

    def test_json_export(self, client, admin_headers, create_subscriber):
        create_subscriber("player-1", "+66811111111")

        response = client.get(
            f"{API}/admin/subscribers/export",
            params={"format": "json"},
            headers=admin_headers,
        )

        data = response.json()["data"]
        assert data["total"] == 1
        assert data["data"][0]["externalId"] == "player-1"


class TestAdminSync:
    def test_sync_creates_subscribers(self, client, admin_headers, fake_provider):
        fake_provider.players = [make_player("p1"), make_player("p2", notification_types=0)]

        response = client.post(f"{API}/admin/sync", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["data"]["summary"]["localCreated"] == 1
        assert body["data"]["summary"]["providerIgnored"] == 1

    def test_empty_provider_is_a_warning(self, client, admin_headers):
        response = client.post(f"{API}/admin/sync", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "warning"
        assert response.json()["data"]["status"] == "empty"

    def test_provider_outage_is_bad_gateway(self, client, admin_headers, fake_provider):
        fake_provider.players = [make_player("p1")]
        fake_provider.fail_on_offset = {0: 500}

        response = client.post(f"{API}/admin/sync", headers=admin_headers)

        assert response.status_code == 502
        assert error_code(response) == "SYNC_ABORTED"
        assert response.json()["meta"]["failed_page"] == 1

    def test_sync_status(self, client, admin_headers, fake_provider, create_subscriber):
        create_subscriber("p1")
        fake_provider.players = [make_player("p1")]

        response = client.get(f"{API}/admin/sync", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["syncNeeded"] is False
        assert response.json()["message"] == "Local subscribers are in sync"


@pytest.fixture
def captured_logs():
    """Collect (message, request_id) pairs for every record emitted during the test."""
    records = []
    sink_id = logger.add(
        lambda message: records.append(
            (message.record["message"], message.record["extra"].get("request_id"))
        ),
        level="DEBUG",
    )
    yield records
    logger.remove(sink_id)


class TestRequestIdInServiceLogs:
    REQUEST_ID = "6e1fd168-3f5b-4c0e-9a55-1b2c3d4e5f60"

    def request_ids_for(self, records, message):
        return [request_id for text, request_id in records if text == message]

    def test_sync_logs_carry_request_id(
        self, client, admin_headers, fake_provider, captured_logs
    ):
        fake_provider.players = [make_player("p1")]

        response = client.post(
            f"{API}/admin/sync",
            headers={**admin_headers, "X-Request-ID": self.REQUEST_ID},
        )

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == self.REQUEST_ID
        assert self.request_ids_for(captured_logs, "Fetched players from provider") == [
            self.REQUEST_ID
        ]
        assert self.request_ids_for(captured_logs, "Subscriber sync finished") == [
            self.REQUEST_ID
        ]

    def test_dispatch_logs_carry_request_id(
        self,
        client,
        sender_headers,
        default_group,
        create_subscriber,
        fake_provider,
        captured_logs,
    ):
        create_subscriber("player-a", groups=[default_group])

        response = client.post(
            f"{API}/notifications",
            json={"title": "Hello", "message": "World", "groups": [default_group.id]},
            headers={**sender_headers, "X-Request-ID": self.REQUEST_ID},
        )

        assert response.status_code == 200
        assert self.request_ids_for(captured_logs, "Notification dispatched") == [
            self.REQUEST_ID
        ]

    def test_logs_outside_a_request_use_app(self, captured_logs):
        get_logger().info("Background message")

        assert self.request_ids_for(captured_logs, "Background message") == ["app"]


class TestDatabaseFailures:
    def test_database_failure_is_reported_without_details(
        self, client, sender_headers
    ):
        class BrokenGroupService:
            async def list_groups(self, search=None):
                raise OperationalError("SELECT groups", {}, Exception("disk I/O error"))

        app.dependency_overrides[get_group_service] = lambda: BrokenGroupService()

        response = client.get(f"{API}/groups", headers=sender_headers)

        assert response.status_code == 500
        assert error_code(response) == "DATABASE_ERROR"
        assert response.json()["message"] == "A database error occurred"
        assert "disk I/O" not in response.text
