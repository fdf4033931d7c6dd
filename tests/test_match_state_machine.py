from __future__ import annotations

import asyncio

import pytest
from bson import ObjectId

from mutual.models.events import user_topic
from mutual.models.match import MatchStatus
from mutual.repositories import LeaseRepository, MatchRepository, MessageRepository
from mutual.services.exceptions import (
    ConcurrentUpdateError,
    MatchEndedError,
    MatchNotFoundError,
    NotParticipantError,
)
from mutual.services.match_service import MatchStateMachine


async def _status(db, match_id) -> str:
    doc = await db["matches"].find_one({"_id": match_id})
    return doc["status"]


async def _pointer(db, user_id):
    doc = await db["profiles"].find_one({"userId": user_id})
    return doc.get("activeMatchId")


@pytest.mark.asyncio
async def test_activate_promotes_pending_match(make_match, machine, db) -> None:
    match_id = await make_match("alice", "bob")

    match = await machine.activate(match_id, "alice")

    assert match.status is MatchStatus.ACTIVE
    assert await _status(db, match_id) == "active"
    assert await _pointer(db, "alice") == match_id


@pytest.mark.asyncio
async def test_switching_active_match_demotes_previous(make_match, make_users, machine, db) -> None:
    first = await make_match("alice", "bob")
    await make_users("carol")
    second = await make_match("alice", "carol")

    await machine.activate(first, "alice")
    await machine.activate(second, "alice")

    assert await _status(db, first) == "pending"
    assert await _status(db, second) == "active"
    assert await _pointer(db, "alice") == second


@pytest.mark.asyncio
async def test_activation_only_moves_requesters_pointer(make_match, machine, db) -> None:
    match_id = await make_match("alice", "bob")

    await machine.activate(match_id, "alice")

    assert await _pointer(db, "alice") == match_id
    assert await _pointer(db, "bob") is None


@pytest.mark.asyncio
async def test_activate_is_idempotent(make_match, machine, hub, db) -> None:
    match_id = await make_match("alice", "bob")
    await machine.activate(match_id, "alice")
    events = []
    hub.subscribe(user_topic("bob"), events.append)

    again = await machine.activate(match_id, "alice")

    assert again.status is MatchStatus.ACTIVE
    assert events == []
    assert await db["matches"].count_documents({"status": "active"}) == 1


@pytest.mark.asyncio
async def test_non_participant_cannot_activate(make_match, make_users, machine, db) -> None:
    match_id = await make_match("alice", "bob")
    await make_users("carol")

    with pytest.raises(NotParticipantError):
        await machine.activate(match_id, "carol")

    assert await _status(db, match_id) == "pending"
    assert await _pointer(db, "carol") is None


@pytest.mark.asyncio
async def test_activate_unknown_match(make_users, machine) -> None:
    await make_users("alice")

    with pytest.raises(MatchNotFoundError):
        await machine.activate(ObjectId(), "alice")


@pytest.mark.asyncio
async def test_end_clears_pointer_and_is_terminal(make_match, machine, db) -> None:
    match_id = await make_match("alice", "bob")
    await machine.activate(match_id, "alice")

    ended = await machine.end(match_id, "alice")

    assert ended.status is MatchStatus.ENDED
    assert await _pointer(db, "alice") is None
    with pytest.raises(MatchEndedError):
        await machine.activate(match_id, "bob")
    assert await _status(db, match_id) == "ended"


@pytest.mark.asyncio
async def test_end_twice_is_idempotent(make_match, machine, hub) -> None:
    match_id = await make_match("alice", "bob")
    await machine.end(match_id, "bob")
    events = []
    hub.subscribe(user_topic("alice"), events.append)

    again = await machine.end(match_id, "alice")

    assert again.status is MatchStatus.ENDED
    assert events == []


@pytest.mark.asyncio
async def test_counterpart_ending_hides_stale_pointer(make_match, machine, db) -> None:
    match_id = await make_match("alice", "bob")
    await machine.activate(match_id, "alice")

    await machine.end(match_id, "bob")

    # alice's pointer still names the match, but the status is authoritative
    assert await _pointer(db, "alice") == match_id
    assert await machine.get_active_match("alice") is None


@pytest.mark.asyncio
async def test_get_active_match_follows_pointer(make_match, machine) -> None:
    match_id = await make_match("alice", "bob")
    assert await machine.get_active_match("alice") is None

    await machine.activate(match_id, "alice")

    active = await machine.get_active_match("alice")
    assert active is not None and active.id == match_id
    assert await machine.get_active_match("bob") is None


@pytest.mark.asyncio
async def test_concurrent_activations_leave_one_active(make_match, make_users, machine, db) -> None:
    await make_users("carol", "dave")
    ids = [
        await make_match("alice", "bob"),
        await make_match("alice", "carol"),
        await make_match("alice", "dave"),
    ]

    await asyncio.gather(*(machine.activate(match_id, "alice") for match_id in ids))

    statuses = {match_id: await _status(db, match_id) for match_id in ids}
    active = [match_id for match_id, status in statuses.items() if status == "active"]
    assert len(active) == 1
    assert await _pointer(db, "alice") == active[0]
    assert await db["user_leases"].count_documents({}) == 0


@pytest.mark.asyncio
async def test_held_lease_surfaces_conflict(make_match, profiles, hub, db) -> None:
    match_id = await make_match("alice", "bob")
    leases = LeaseRepository(db, ttl_ms=60_000, wait_ms=0)
    machine = MatchStateMachine(MatchRepository(db), MessageRepository(db), profiles, leases, hub)
    token = await leases.acquire("activation:alice")

    with pytest.raises(ConcurrentUpdateError):
        await machine.activate(match_id, "alice")

    await leases.release("activation:alice", token)
    match = await machine.activate(match_id, "alice")
    assert match.status is MatchStatus.ACTIVE


@pytest.mark.asyncio
async def test_expired_lease_is_taken_over(db) -> None:
    leases = LeaseRepository(db, ttl_ms=1, wait_ms=0)
    await db["user_leases"].insert_one({"_id": "activation:alice", "token": "stale", "expiresAt": 0})

    token = await leases.try_acquire("activation:alice")

    assert token is not None and token != "stale"
    stored = await db["user_leases"].find_one({"_id": "activation:alice"})
    assert stored["token"] == token


@pytest.mark.asyncio
async def test_status_changes_are_published_to_both_users(make_match, make_users, machine, hub) -> None:
    first = await make_match("alice", "bob")
    await make_users("carol")
    second = await make_match("alice", "carol")
    await machine.activate(first, "alice")
    bob_events, carol_events = [], []
    hub.subscribe(user_topic("bob"), bob_events.append)
    hub.subscribe(user_topic("carol"), carol_events.append)

    await machine.activate(second, "alice")

    assert [(e["matchId"], e["status"]) for e in bob_events] == [(str(first), "pending")]
    assert [(e["matchId"], e["status"]) for e in carol_events] == [(str(second), "active")]
    assert all(e["type"] == "match_changed" for e in bob_events + carol_events)


@pytest.mark.asyncio
async def test_list_matches_builds_summaries(make_match, make_users, machine, channel, db) -> None:
    first = await make_match("alice", "bob")
    await make_users("carol")
    second = await make_match("alice", "carol")
    await machine.activate(first, "alice")
    await channel.send(first, "bob", "hey alice")
    await channel.send(first, "bob", "you there?")

    summaries = {s.id: s for s in await machine.list_matches("alice")}

    assert set(summaries) == {first, second}
    active = summaries[first]
    assert active.is_active
    assert active.unread_count == 2
    assert active.last_message is not None and active.last_message.content == "you there?"
    assert active.other_user is not None and active.other_user.user_id == "bob"
    assert active.other_user.name == "Bob"
    idle = summaries[second]
    assert not idle.is_active
    assert idle.last_message is None
    assert idle.unread_count == 0

    bob_view = await machine.list_matches("bob")
    assert [s.id for s in bob_view] == [first]
    assert not bob_view[0].is_active
    assert bob_view[0].unread_count == 0


@pytest.mark.asyncio
async def test_failed_pointer_write_rolls_activation_back(
    make_match, make_users, machine, profiles, db, monkeypatch
) -> None:
    first = await make_match("alice", "bob")
    await make_users("carol")
    second = await make_match("alice", "carol")
    await machine.activate(first, "alice")

    async def _pointer_write_fails(**_kwargs):
        raise RuntimeError("profile write failed")

    monkeypatch.setattr(profiles, "set_active_match", _pointer_write_fails)

    with pytest.raises(RuntimeError):
        await machine.activate(second, "alice")

    assert await _status(db, first) == "active"
    assert await _status(db, second) == "pending"
    assert await _pointer(db, "alice") == first
    assert await db["user_leases"].count_documents({}) == 0
