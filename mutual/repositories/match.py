"""Repository helpers for match documents."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..db.collections import MATCHES_COLLECTION
from ..models.match import MatchDocument, MatchStatus

LOGGER = logging.getLogger("uvicorn.error")


class MatchRepository:
    """MongoDB access layer for matches.

    Status writes are always conditional on the status currently stored, so a
    transition computed from a stale read cannot overwrite a newer one.
    """

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[MATCHES_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def insert_if_absent(
        self,
        *,
        user_a: str,
        user_b: str,
        created_at: int,
    ) -> Tuple[MatchDocument, bool]:
        """Create a pending match for the canonical pair unless one exists.

        Returns the stored match and whether this call inserted it.
        """

        created = False
        try:
            result = await self._collection.update_one(
                {"userA": user_a, "userB": user_b},
                {
                    "$setOnInsert": {
                        "_id": ObjectId(),
                        "userA": user_a,
                        "userB": user_b,
                        "status": MatchStatus.PENDING.value,
                        "messageSeq": 0,
                        "createdAt": created_at,
                        "updatedAt": created_at,
                    }
                },
                upsert=True,
            )
            created = result.upserted_id is not None
        except DuplicateKeyError:
            # A concurrent resolver won the insert; the unique pair index
            # guarantees the row we read back is the only one.
            pass

        doc = await self._collection.find_one({"userA": user_a, "userB": user_b})
        if not doc:  # pragma: no cover - the upsert above guarantees a row
            raise RuntimeError("match upsert did not produce a document")
        return MatchDocument(**doc), created

    async def get(self, match_id: ObjectId) -> Optional[MatchDocument]:
        doc = await self._collection.find_one({"_id": match_id})
        return MatchDocument(**doc) if doc else None

    async def list_for_user(self, user_id: str) -> List[MatchDocument]:
        cursor = self._collection.find(
            {"$or": [{"userA": user_id}, {"userB": user_id}]}
        ).sort([("updatedAt", DESCENDING), ("_id", DESCENDING)])
        return [MatchDocument(**doc) async for doc in cursor]

    async def transition(
        self,
        match_id: ObjectId,
        *,
        from_statuses: Iterable[MatchStatus],
        to_status: MatchStatus,
        updated_at: int,
    ) -> Optional[MatchDocument]:
        """Move ``match_id`` to ``to_status`` if its stored status is in ``from_statuses``.

        Returns the updated match, or ``None`` when the guard did not hold.
        """

        allowed = [status.value for status in from_statuses]
        doc = await self._collection.find_one_and_update(
            {"_id": match_id, "status": {"$in": allowed}},
            {"$set": {"status": to_status.value, "updatedAt": updated_at}},
            return_document=ReturnDocument.AFTER,
        )
        return MatchDocument(**doc) if doc else None

    async def reserve_message_slot(
        self,
        match_id: ObjectId,
        *,
        now_ms: int,
    ) -> Optional[MatchDocument]:
        """Claim the next message sequence number while the match is active.

        ``lastMessageAt`` only ever grows, so the timestamp handed to the
        message is non-decreasing in sequence order. Returns ``None`` if the
        match is not active at the moment of the write.
        """

        doc = await self._collection.find_one_and_update(
            {"_id": match_id, "status": MatchStatus.ACTIVE.value},
            {
                "$inc": {"messageSeq": 1},
                "$max": {"lastMessageAt": now_ms, "updatedAt": now_ms},
            },
            return_document=ReturnDocument.AFTER,
        )
        return MatchDocument(**doc) if doc else None


__all__ = ["MatchRepository"]
