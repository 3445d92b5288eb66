import json
from typing import Any, Dict, Generator, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config.settings import settings
from app.db.models import Base, Group, Subscriber, User, UserRole
from app.db.session import get_sync_session
from app.main import app
from app.services.onesignal.onesignal_client import (
    OneSignalClient,
    get_onesignal_client,
)
from app.utils.auth import AuthUtils


# Test database setup
TEST_DATABASE_URL = "sqlite://"


@pytest.fixture
def test_engine():
    """Create a fresh in-memory database for each test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, class_=Session, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a database session for each test."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


class FakeOneSignal:
    """In-memory stand-in for the OneSignal REST API, served through httpx.MockTransport."""

    def __init__(self, players: Optional[List[Dict[str, Any]]] = None):
        self.players: List[Dict[str, Any]] = list(players or [])
        self.total_count: Optional[int] = None
        self.fail_on_offset: Dict[int, int] = {}
        # When set, every page is full and total_count keeps running ahead of the offset
        self.endless_growth: Optional[int] = None
        self.send_status = 200
        self.send_body: Optional[Dict[str, Any]] = None
        self.cancel_status = 200
        self.notification_id = "notif-123"
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "GET" and path == "/players":
            offset = int(request.url.params.get("offset", 0))
            limit = int(request.url.params.get("limit", 300))
            if offset in self.fail_on_offset:
                return httpx.Response(
                    self.fail_on_offset[offset], json={"errors": ["Internal error"]}
                )
            if self.endless_growth is not None:
                total = offset + self.endless_growth
                page = [make_player(f"endless-{offset + i}") for i in range(limit)]
            else:
                total = self.total_count if self.total_count is not None else len(self.players)
                page = self.players[offset : offset + limit]
            return httpx.Response(
                200,
                json={
                    "total_count": total,
                    "offset": offset,
                    "limit": limit,
                    "players": page,
                },
            )

        if request.method == "POST" and path == "/notifications":
            if self.send_status != 200:
                return httpx.Response(
                    self.send_status, json={"errors": ["Notification rejected"]}
                )
            payload = json.loads(request.content)
            body = self.send_body or {
                "id": self.notification_id,
                "recipients": len(payload.get("include_player_ids", [])),
            }
            return httpx.Response(200, json=body)

        if request.method == "DELETE" and path.startswith("/notifications/"):
            return httpx.Response(
                self.cancel_status, json={"success": self.cancel_status == 200}
            )

        return httpx.Response(404, json={"errors": ["Not found"]})

    @property
    def send_requests(self) -> List[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == "POST" and r.url.path == "/notifications"
        ]

    @property
    def player_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/players"]

    def last_payload(self) -> Dict[str, Any]:
        return json.loads(self.send_requests[-1].content)


def make_player(player_id: str, **overrides) -> Dict[str, Any]:
    """Build a raw provider player record that passes the active filter by default."""
    player = {
        "id": player_id,
        "notification_types": 1,
        "invalid_identifier": False,
        "external_user_id": None,
        "tags": {},
    }
    player.update(overrides)
    return player


@pytest.fixture
def fake_provider() -> FakeOneSignal:
    return FakeOneSignal()


@pytest.fixture
def onesignal_client(fake_provider) -> OneSignalClient:
    return OneSignalClient(
        app_id="test-app-id",
        api_key="test-api-key",
        transport=httpx.MockTransport(fake_provider.handler),
    )


# Test data factories
@pytest.fixture
def create_group(db_session: Session):
    def _create(name: str, description: Optional[str] = None) -> Group:
        group = Group(name=name, description=description)
        db_session.add(group)
        db_session.commit()
        db_session.refresh(group)
        return group

    return _create


@pytest.fixture
def default_group(create_group) -> Group:
    return create_group(settings.DEFAULT_GROUP_NAME, "Default group")


@pytest.fixture
def create_subscriber(db_session: Session):
    def _create(
        external_id: str,
        contact: Optional[str] = None,
        groups: Optional[List[Group]] = None,
    ) -> Subscriber:
        subscriber = Subscriber(external_id=external_id, contact=contact)
        subscriber.groups = list(groups or [])
        db_session.add(subscriber)
        db_session.commit()
        db_session.refresh(subscriber)
        return subscriber

    return _create


@pytest.fixture
def create_user(db_session: Session):
    def _create(email: str, password: str, role: UserRole, is_active: bool = True) -> User:
        user = User(
            email=email,
            password=AuthUtils.hash_password(password),
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create


@pytest.fixture
def admin_user(create_user) -> User:
    return create_user("admin@example.com", "admin-password", UserRole.ADMIN)


@pytest.fixture
def sender_user(create_user) -> User:
    return create_user("sender@example.com", "sender-password", UserRole.SENDER)


def bearer_headers(user: User) -> Dict[str, str]:
    token = AuthUtils.generate_access_token(user.id, user.email, user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user) -> Dict[str, str]:
    return bearer_headers(admin_user)


@pytest.fixture
def sender_headers(sender_user) -> Dict[str, str]:
    return bearer_headers(sender_user)


@pytest.fixture
def client(session_factory, onesignal_client) -> Generator[TestClient, None, None]:
    """API client bound to the test database and the fake provider."""

    def override_get_sync_session():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_sync_session] = override_get_sync_session
    app.dependency_overrides[get_onesignal_client] = lambda: onesignal_client

    yield TestClient(app)

    app.dependency_overrides.clear()
