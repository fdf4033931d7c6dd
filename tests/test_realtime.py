from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from mutual.models.events import match_topic, user_topic
from mutual.routers import realtime
from mutual.routers.realtime import StreamOutbox
from mutual.services.events import get_event_hub


def _matched_pair(client: TestClient, auth_headers, first: str, second: str) -> str:
    for user in (first, second):
        assert client.get("/api/matches", headers=auth_headers(user)).status_code == 200
    client.post("/api/swipes", json={"targetId": second, "direction": "like"}, headers=auth_headers(first))
    resp = client.post("/api/swipes", json={"targetId": first, "direction": "like"}, headers=auth_headers(second))
    assert resp.status_code == 200, resp.text
    return resp.json()["matchId"]


def test_match_stream_delivers_messages_and_releases_subscription(ws_client, auth_headers, token_for) -> None:
    match_id = _matched_pair(ws_client, auth_headers, "alice", "bob")
    assert ws_client.post(f"/api/matches/{match_id}/activate", headers=auth_headers("alice")).status_code == 200
    topic = match_topic(match_id)

    with ws_client.websocket_connect(f"/api/ws/matches/{match_id}?token={token_for('bob')}") as ws:
        assert get_event_hub().subscriber_count(topic) == 1
        resp = ws_client.post(
            f"/api/matches/{match_id}/messages", json={"content": "yo"}, headers=auth_headers("alice")
        )
        assert resp.status_code == 201
        event = ws.receive_json()

    assert event["type"] == "message_created"
    assert event["matchId"] == match_id
    assert event["message"]["id"] == resp.json()["id"]
    assert event["message"]["content"] == "yo"
    assert get_event_hub().subscriber_count(topic) == 0


def test_match_stream_refuses_non_participants(ws_client, auth_headers, token_for) -> None:
    match_id = _matched_pair(ws_client, auth_headers, "alice", "bob")

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect(f"/api/ws/matches/{match_id}?token={token_for('carol')}"):
            pass

    assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION
    assert get_event_hub().subscriber_count(match_topic(match_id)) == 0


@pytest.mark.parametrize("query", ["", "?token=not-a-jwt"])
def test_user_stream_requires_token(ws_client, query) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect(f"/api/ws/me{query}"):
            pass

    assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION


def test_user_stream_receives_match_changes(ws_client, auth_headers, token_for) -> None:
    match_id = _matched_pair(ws_client, auth_headers, "alice", "bob")

    with ws_client.websocket_connect(f"/api/ws/me?token={token_for('bob')}") as ws:
        resp = ws_client.post(f"/api/matches/{match_id}/activate", headers=auth_headers("alice"))
        assert resp.status_code == 200
        event = ws.receive_json()

    assert event["type"] == "match_changed"
    assert event["matchId"] == match_id
    assert event["status"] == "active"
    assert sorted(event["participants"]) == ["alice", "bob"]
    assert get_event_hub().subscriber_count(user_topic("bob")) == 0


class _HandshakeFailingSocket:
    def __init__(self, token: str) -> None:
        self.query_params = {"token": token}
        self.closed_with = None

    async def accept(self) -> None:
        raise RuntimeError("handshake failed")

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code


class _StalledSocket:
    url = SimpleNamespace(path="/api/ws/me")

    def __init__(self) -> None:
        self.closed_with = None
        self._never = asyncio.Event()

    async def receive_text(self) -> str:
        await self._never.wait()
        return ""

    async def send_json(self, event) -> None:
        await self._never.wait()

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code


@pytest.mark.asyncio
async def test_failed_handshake_releases_subscription(make_match, token_for) -> None:
    match_id = await make_match("alice", "bob")
    socket = _HandshakeFailingSocket(token_for("bob"))

    with pytest.raises(RuntimeError):
        await realtime.match_stream(socket, str(match_id))

    assert get_event_hub().subscriber_count(match_topic(match_id)) == 0


@pytest.mark.asyncio
async def test_outbox_stops_buffering_when_full() -> None:
    outbox = StreamOutbox(2)
    enqueue = outbox.handler()

    for n in range(4):
        enqueue({"n": n})

    assert outbox.queue.qsize() == 2
    assert outbox.overflowed.is_set()


@pytest.mark.asyncio
async def test_stalled_client_is_disconnected() -> None:
    outbox = StreamOutbox(1)
    enqueue = outbox.handler()
    socket = _StalledSocket()
    enqueue({"n": 1})
    enqueue({"n": 2})

    await asyncio.wait_for(realtime._pump(socket, outbox), timeout=1)

    assert socket.closed_with == status.WS_1013_TRY_AGAIN_LATER
