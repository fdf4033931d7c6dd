"""Repository helpers for conversation messages."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from ..db.collections import MESSAGES_COLLECTION
from ..models.message import MessageDocument

LOGGER = logging.getLogger("uvicorn.error")


class MessageRepository:
    """Append-only message log; the only mutation is the ``readAt`` stamp."""

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[MESSAGES_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def insert_message(
        self,
        *,
        match_id: ObjectId,
        sender_id: str,
        content: str,
        seq: int,
        created_at: int,
    ) -> MessageDocument:
        doc = {
            "_id": ObjectId(),
            "matchId": match_id,
            "senderId": sender_id,
            "content": content,
            "seq": seq,
            "createdAt": created_at,
            "readAt": None,
        }
        await self._collection.insert_one(doc)
        return MessageDocument(**doc)

    async def list_page(
        self,
        match_id: ObjectId,
        *,
        after_seq: Optional[int],
        limit: int,
    ) -> List[MessageDocument]:
        """Oldest-first page of at most ``limit`` messages with ``seq > after_seq``."""

        query: dict[str, object] = {"matchId": match_id}
        if after_seq is not None:
            query["seq"] = {"$gt": int(after_seq)}
        cursor = self._collection.find(query).sort("seq", ASCENDING).limit(limit)
        return [MessageDocument(**doc) async for doc in cursor]

    async def get_many(self, message_ids: Iterable[ObjectId]) -> List[MessageDocument]:
        ids = list(message_ids)
        if not ids:
            return []
        cursor = self._collection.find({"_id": {"$in": ids}}).sort("seq", ASCENDING)
        return [MessageDocument(**doc) async for doc in cursor]

    async def last_message(self, match_id: ObjectId) -> Optional[MessageDocument]:
        cursor = self._collection.find({"matchId": match_id}).sort("seq", DESCENDING).limit(1)
        async for doc in cursor:
            return MessageDocument(**doc)
        return None

    async def count_unread(self, match_id: ObjectId, reader_id: str) -> int:
        return await self._collection.count_documents(
            {"matchId": match_id, "senderId": {"$ne": reader_id}, "readAt": None}
        )

    async def unread_ids(self, match_id: ObjectId, reader_id: str) -> List[ObjectId]:
        cursor = self._collection.find(
            {"matchId": match_id, "senderId": {"$ne": reader_id}, "readAt": None},
            projection={"_id": 1},
        )
        return [doc["_id"] async for doc in cursor]

    async def stamp_read(self, message_ids: Iterable[ObjectId], *, read_at: int) -> int:
        """Set ``readAt`` on the given messages that are still unread.

        The ``readAt: None`` guard keeps the stamp write-once under concurrent
        readers. Returns how many messages this call stamped.
        """

        ids = list(message_ids)
        if not ids:
            return 0
        result = await self._collection.update_many(
            {"_id": {"$in": ids}, "readAt": None},
            {"$set": {"readAt": read_at}},
        )
        return int(result.modified_count)


__all__ = ["MessageRepository"]
