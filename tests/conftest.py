from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable, Iterator

import jwt
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient
from motor.motor_asyncio import AsyncIOMotorDatabase

from mutual.config import get_settings
from mutual.db import close_mongo_connection, connect_to_mongo, get_db
from mutual.main import app
from mutual.repositories import (
    LeaseRepository,
    MatchRepository,
    MessageRepository,
    ProfileRepository,
    SwipeRepository,
)
from mutual.services.conversation_service import ConversationChannel
from mutual.services.events import EventHub
from mutual.services.match_resolver import MatchResolver
from mutual.services.match_service import MatchStateMachine
from mutual.services.swipe_service import SwipeLedger

TEST_JWT_SECRET = "test-secret"


@pytest.fixture(autouse=True)
def _env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MONGO_URI", "mongodb://localhost:27017/test")
    monkeypatch.setenv("MONGO_DB_NAME", "mutual-test")
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("REDIS_PUBSUB_ENABLED", "false")
    monkeypatch.delenv("REDIS_URL", raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest_asyncio.fixture
async def mongo_client(monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[AsyncMongoMockClient]:
    client = AsyncMongoMockClient()

    def _client_factory(*_args, **_kwargs) -> AsyncMongoMockClient:
        return client

    monkeypatch.setattr("mutual.db.AsyncIOMotorClient", _client_factory)
    yield client
    client.close()


@pytest_asyncio.fixture
async def db(mongo_client: AsyncMongoMockClient) -> AsyncIterator[AsyncIOMotorDatabase]:
    await connect_to_mongo()
    yield get_db()
    await close_mongo_connection()


@pytest.fixture
def hub() -> EventHub:
    return EventHub(instance_id="test-instance")


@pytest.fixture
def profiles(db: AsyncIOMotorDatabase) -> ProfileRepository:
    return ProfileRepository(db)


@pytest.fixture
def ledger(db: AsyncIOMotorDatabase, profiles: ProfileRepository) -> SwipeLedger:
    swipes = SwipeRepository(db)
    return SwipeLedger(swipes, profiles, MatchResolver(swipes, MatchRepository(db)))


@pytest.fixture
def machine(db: AsyncIOMotorDatabase, profiles: ProfileRepository, hub: EventHub) -> MatchStateMachine:
    return MatchStateMachine(
        MatchRepository(db),
        MessageRepository(db),
        profiles,
        LeaseRepository(db, ttl_ms=5000, wait_ms=2000, poll_interval=0.005),
        hub,
    )


@pytest.fixture
def channel(db: AsyncIOMotorDatabase, hub: EventHub) -> ConversationChannel:
    return ConversationChannel(
        MatchRepository(db),
        MessageRepository(db),
        hub,
        max_length=20,
        page_default=50,
        page_max=200,
    )


@pytest.fixture
def make_users(profiles: ProfileRepository) -> Callable[..., object]:
    async def _make(*user_ids: str) -> None:
        for index, user_id in enumerate(user_ids):
            await profiles.ensure_profile(user_id=user_id, now_ms=1_000 + index, name=user_id.title())

    return _make


@pytest.fixture
def make_match(
    make_users: Callable[..., object],
    ledger: SwipeLedger,
) -> Callable[..., object]:
    """Create a pending match between two users through reciprocal likes."""

    async def _make(first: str, second: str):
        await make_users(first, second)
        await ledger.record_swipe(first, second, "like")
        outcome = await ledger.record_swipe(second, first, "like")
        assert outcome.resolution.created
        return outcome.resolution.match_id

    return _make


def mint_token(user_id: str, *, secret: str = TEST_JWT_SECRET, ttl_seconds: int = 3600) -> str:
    """Stand-in for the identity provider: an HS256 token with ``sub`` = user id."""

    now = int(time.time())
    return jwt.encode({"sub": user_id, "iat": now, "exp": now + ttl_seconds}, secret, algorithm="HS256")


@pytest.fixture
def token_for() -> Callable[[str], str]:
    return mint_token


@pytest.fixture
def auth_headers(token_for: Callable[[str], str]) -> Callable[[str], dict[str, str]]:
    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_for(user_id)}"}

    return _headers


@pytest_asyncio.fixture
async def api_client(mongo_client: AsyncMongoMockClient) -> AsyncIterator[AsyncClient]:
    await connect_to_mongo()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    await close_mongo_connection()


@pytest.fixture
def ws_client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """Synchronous client for the WebSocket streams; startup and shutdown run around it."""

    mongo = AsyncMongoMockClient()
    monkeypatch.setattr("mutual.db.AsyncIOMotorClient", lambda *_args, **_kwargs: mongo)
    with TestClient(app) as client:
        yield client
