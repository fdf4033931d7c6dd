from __future__ import annotations

import logging
import time
from typing import Optional

from bson import ObjectId

from ..config import get_settings
from ..db import get_db
from ..models.events import MessageCreated, MessageUpdated, match_topic
from ..models.match import MatchDocument
from ..models.message import Message, MessagePage
from ..repositories.match import MatchRepository
from ..repositories.message import MessageRepository
from .events import EventHub, Handler, Subscription, get_event_hub
from .exceptions import (
    ContentTooLongError,
    EmptyContentError,
    MatchNotActiveError,
    MatchNotFoundError,
    NotParticipantError,
)

LOGGER = logging.getLogger("uvicorn.error")


class ConversationChannel:
    """Ordered message log for a match, gated on the match being active."""

    def __init__(
        self,
        matches: MatchRepository,
        messages: MessageRepository,
        hub: EventHub,
        *,
        max_length: int = 2000,
        page_default: int = 50,
        page_max: int = 200,
    ) -> None:
        self._matches = matches
        self._messages = messages
        self._hub = hub
        self._max_length = max_length
        self._page_default = page_default
        self._page_max = page_max

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def _load_for(self, match_id: ObjectId, user_id: str) -> MatchDocument:
        match = await self._matches.get(match_id)
        if match is None:
            raise MatchNotFoundError("match not found")
        if not match.has_participant(user_id):
            raise NotParticipantError("you are not part of this match")
        return match

    async def send(self, match_id: ObjectId, sender_id: str, content: str) -> Message:
        match = await self._load_for(match_id, sender_id)
        text = (content or "").strip()
        if not text:
            raise EmptyContentError("message content is empty")
        if len(text) > self._max_length:
            raise ContentTooLongError(f"message exceeds {self._max_length} characters")

        # The status check and the sequence reservation are one conditional
        # write: once "ended" is stored no further slot can be claimed.
        slot = await self._matches.reserve_message_slot(match.id, now_ms=self._now_ms())
        if slot is None:
            raise MatchNotActiveError("this conversation is not active")

        doc = await self._messages.insert_message(
            match_id=match.id,
            sender_id=sender_id,
            content=text,
            seq=slot.message_seq,
            created_at=slot.last_message_at or self._now_ms(),
        )
        message = Message.from_document(doc)
        await self._hub.publish(
            match_topic(match.id),
            MessageCreated(matchId=match.id, message=message).model_dump(by_alias=True, mode="json"),
        )
        return message

    async def mark_read(self, match_id: ObjectId, reader_id: str) -> int:
        match = await self._load_for(match_id, reader_id)
        unread = await self._messages.unread_ids(match.id, reader_id)
        if not unread:
            return 0
        read_at = self._now_ms()
        marked = await self._messages.stamp_read(unread, read_at=read_at)
        if marked:
            for doc in await self._messages.get_many(unread):
                if doc.read_at != read_at:
                    continue
                await self._hub.publish(
                    match_topic(match.id),
                    MessageUpdated(
                        matchId=match.id,
                        message=Message.from_document(doc),
                    ).model_dump(by_alias=True, mode="json"),
                )
        return marked

    async def list_messages(
        self,
        match_id: ObjectId,
        reader_id: str,
        *,
        after: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> MessagePage:
        match = await self._load_for(match_id, reader_id)
        n = max(1, min(int(limit or self._page_default), self._page_max))
        # One extra row tells us whether another page exists
        docs = await self._messages.list_page(match.id, after_seq=after, limit=n + 1)
        has_more = len(docs) > n
        page = [Message.from_document(doc) for doc in docs[:n]]
        next_cursor = page[-1].seq if has_more and page else None
        return MessagePage(messages=page, next=next_cursor)

    async def subscribe(self, match_id: ObjectId, user_id: str, handler: Handler) -> Subscription:
        await self._load_for(match_id, user_id)
        return self._hub.subscribe(match_topic(match_id), handler)


def get_conversation_channel() -> ConversationChannel:
    settings = get_settings()
    db = get_db()
    return ConversationChannel(
        MatchRepository(db),
        MessageRepository(db),
        get_event_hub(),
        max_length=settings.message_max_length,
        page_default=settings.message_page_default,
        page_max=settings.message_page_max,
    )


__all__ = ["ConversationChannel", "get_conversation_channel"]
