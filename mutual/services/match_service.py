from __future__ import annotations

import logging
import time
from typing import List, Optional

from bson import ObjectId

from ..config import get_settings
from ..db import get_db
from ..models.events import MatchChanged, user_topic
from ..models.match import MatchDocument, MatchStatus, MatchSummary, MessagePreview
from ..models.profile import ProfileSnapshot
from ..repositories.exceptions import LeaseUnavailableError
from ..repositories.lease import LeaseRepository
from ..repositories.match import MatchRepository
from ..repositories.message import MessageRepository
from ..repositories.profile import ProfileRepository
from .events import EventHub, get_event_hub
from .exceptions import (
    ConcurrentUpdateError,
    MatchEndedError,
    MatchNotFoundError,
    NotParticipantError,
)

LOGGER = logging.getLogger("uvicorn.error")

_OPEN_STATUSES = (MatchStatus.PENDING, MatchStatus.ACTIVE)


async def notify_match_changed(
    hub: EventHub,
    match_id: ObjectId,
    status: MatchStatus,
    participants: tuple[str, str],
    *,
    created: bool = False,
) -> None:
    event = MatchChanged(
        matchId=match_id,
        status=status,
        participants=list(participants),
        created=created,
    ).model_dump(by_alias=True, mode="json")
    for user_id in participants:
        await hub.publish(user_topic(user_id), event)


class MatchStateMachine:
    """Match lifecycle (pending -> active -> ended) and the per-user active pointer.

    ``activate`` and ``end`` run under a per-user lease so that the three
    writes of an activation (promote target, demote previous, move pointer)
    never interleave with another activation by the same user. The match
    status is authoritative; ``activeMatchId`` is the requester's routing hint.
    """

    def __init__(
        self,
        matches: MatchRepository,
        messages: MessageRepository,
        profiles: ProfileRepository,
        leases: LeaseRepository,
        hub: EventHub,
    ) -> None:
        self._matches = matches
        self._messages = messages
        self._profiles = profiles
        self._leases = leases
        self._hub = hub

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    @staticmethod
    def _lease_key(user_id: str) -> str:
        return f"activation:{user_id}"

    async def _load_for(self, match_id: ObjectId, user_id: str) -> MatchDocument:
        match = await self._matches.get(match_id)
        if match is None:
            raise MatchNotFoundError("match not found")
        if not match.has_participant(user_id):
            raise NotParticipantError("you are not part of this match")
        return match

    async def get_match(self, match_id: ObjectId, user_id: str) -> MatchDocument:
        return await self._load_for(match_id, user_id)

    async def activate(self, match_id: ObjectId, user_id: str) -> MatchDocument:
        match = await self._load_for(match_id, user_id)
        if match.status is MatchStatus.ENDED:
            raise MatchEndedError("this match has ended")
        try:
            async with self._leases.hold(self._lease_key(user_id)):
                return await self._activate_locked(match.id, user_id)
        except LeaseUnavailableError as exc:
            raise ConcurrentUpdateError("another update for this user is in progress") from exc

    async def _activate_locked(self, match_id: ObjectId, user_id: str) -> MatchDocument:
        now = self._now_ms()
        profile = await self._profiles.ensure_profile(user_id=user_id, now_ms=now)
        previous_id = profile.active_match_id

        target = await self._matches.get(match_id)
        if target is None:  # pragma: no cover - matches are never deleted
            raise MatchNotFoundError("match not found")
        if target.status is MatchStatus.ENDED:
            raise MatchEndedError("this match has ended")
        if previous_id == target.id and target.status is MatchStatus.ACTIVE:
            return target

        promoted = await self._matches.transition(
            target.id,
            from_statuses=_OPEN_STATUSES,
            to_status=MatchStatus.ACTIVE,
            updated_at=now,
        )
        if promoted is None:
            raise MatchEndedError("this match has ended")

        demoted: Optional[MatchDocument] = None
        try:
            if previous_id is not None and previous_id != target.id:
                demoted = await self._matches.transition(
                    previous_id,
                    from_statuses=(MatchStatus.ACTIVE,),
                    to_status=MatchStatus.PENDING,
                    updated_at=now,
                )
            await self._profiles.set_active_match(
                user_id=user_id,
                match_id=target.id,
                updated_at=now,
            )
        except Exception:
            LOGGER.warning("Activation of %s for %s failed; compensating", target.id, user_id)
            await self._compensate(target, demoted)
            raise

        LOGGER.info(
            "User %s activated match %s (previous=%s, demoted=%s)",
            user_id,
            target.id,
            previous_id,
            bool(demoted),
        )
        if demoted is not None:
            await notify_match_changed(self._hub, demoted.id, demoted.status, demoted.participants)
        if target.status is not MatchStatus.ACTIVE:
            await notify_match_changed(self._hub, promoted.id, promoted.status, promoted.participants)
        return promoted

    async def _compensate(
        self,
        target_before: MatchDocument,
        demoted: Optional[MatchDocument],
    ) -> None:
        now = self._now_ms()
        try:
            if target_before.status is MatchStatus.PENDING:
                await self._matches.transition(
                    target_before.id,
                    from_statuses=(MatchStatus.ACTIVE,),
                    to_status=MatchStatus.PENDING,
                    updated_at=now,
                )
            if demoted is not None:
                await self._matches.transition(
                    demoted.id,
                    from_statuses=(MatchStatus.PENDING,),
                    to_status=MatchStatus.ACTIVE,
                    updated_at=now,
                )
        except Exception as exc:
            LOGGER.error("Compensation for match %s failed: %s", target_before.id, exc)

    async def end(self, match_id: ObjectId, user_id: str) -> MatchDocument:
        match = await self._load_for(match_id, user_id)
        try:
            async with self._leases.hold(self._lease_key(user_id)):
                now = self._now_ms()
                ended = await self._matches.transition(
                    match.id,
                    from_statuses=_OPEN_STATUSES,
                    to_status=MatchStatus.ENDED,
                    updated_at=now,
                )
                await self._profiles.clear_active_match_if(
                    user_id=user_id,
                    match_id=match.id,
                    updated_at=now,
                )
        except LeaseUnavailableError as exc:
            raise ConcurrentUpdateError("another update for this user is in progress") from exc

        if ended is None:
            # Already ended: ending is idempotent
            current = await self._matches.get(match.id)
            return current or match

        LOGGER.info("User %s ended match %s", user_id, match.id)
        await notify_match_changed(self._hub, ended.id, ended.status, ended.participants)
        return ended

    async def get_active_match(self, user_id: str) -> Optional[MatchDocument]:
        """The match the user's pointer designates, if that match is still active."""

        profile = await self._profiles.get_by_user_id(user_id)
        if profile is None or profile.active_match_id is None:
            return None
        match = await self._matches.get(profile.active_match_id)
        if match is None or match.status is not MatchStatus.ACTIVE:
            return None
        if not match.has_participant(user_id):  # pragma: no cover - pointer is only set by activate
            return None
        return match

    async def list_matches(self, user_id: str) -> List[MatchSummary]:
        matches = await self._matches.list_for_user(user_id)
        if not matches:
            return []
        profiles = await self._profiles.get_many(
            [user_id, *(m.counterpart_of(user_id) for m in matches)]
        )
        own = profiles.get(user_id)
        pointer = own.active_match_id if own else None

        out: List[MatchSummary] = []
        for match in matches:
            other_id = match.counterpart_of(user_id)
            other = profiles.get(other_id)
            last = await self._messages.last_message(match.id)
            unread = await self._messages.count_unread(match.id, user_id)
            out.append(
                MatchSummary(
                    id=match.id,
                    userA=match.user_a,
                    userB=match.user_b,
                    status=match.status,
                    createdAt=match.created_at,
                    updatedAt=match.updated_at,
                    otherUser=ProfileSnapshot(
                        userId=other_id,
                        name=other.name if other else None,
                        photos=list(other.photos) if other else [],
                        bio=other.bio if other else None,
                    ),
                    lastMessage=MessagePreview(
                        content=last.content,
                        senderId=last.sender_id,
                        createdAt=last.created_at,
                    )
                    if last
                    else None,
                    unreadCount=unread,
                    isActive=match.status is MatchStatus.ACTIVE and pointer == match.id,
                )
            )
        return out


def get_match_state_machine() -> MatchStateMachine:
    settings = get_settings()
    db = get_db()
    return MatchStateMachine(
        MatchRepository(db),
        MessageRepository(db),
        ProfileRepository(db),
        LeaseRepository(
            db,
            ttl_ms=settings.activation_lock_ttl_ms,
            wait_ms=settings.activation_lock_wait_ms,
        ),
        get_event_hub(),
    )


__all__ = ["MatchStateMachine", "get_match_state_machine", "notify_match_changed"]
