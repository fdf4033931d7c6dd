"""Repository helpers for the append-only swipe ledger."""

from __future__ import annotations

import logging

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from ..db.collections import SWIPES_COLLECTION
from ..models.swipe import SwipeDirection, SwipeDocument
from .exceptions import DuplicateKeyRepositoryError

LOGGER = logging.getLogger("uvicorn.error")


class SwipeRepository:
    """Insert-only access to swipes."""

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[SWIPES_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def insert_swipe(
        self,
        *,
        swiper_id: str,
        swiped_id: str,
        direction: SwipeDirection,
        created_at: int,
    ) -> SwipeDocument:
        doc = {
            "_id": ObjectId(),
            "swiperId": swiper_id,
            "swipedId": swiped_id,
            "direction": direction.value,
            "createdAt": created_at,
        }
        try:
            await self._collection.insert_one(doc)
        except DuplicateKeyError as exc:
            LOGGER.debug("Duplicate swipe %s -> %s", swiper_id, swiped_id)
            raise DuplicateKeyRepositoryError("swipe already recorded") from exc
        return SwipeDocument(**doc)

    async def has_like(self, swiper_id: str, swiped_id: str) -> bool:
        doc = await self._collection.find_one(
            {
                "swiperId": swiper_id,
                "swipedId": swiped_id,
                "direction": SwipeDirection.LIKE.value,
            },
            projection={"_id": 1},
        )
        return doc is not None

    async def list_swiped_ids(self, swiper_id: str) -> set[str]:
        cursor = self._collection.find({"swiperId": swiper_id}, projection={"_id": 0, "swipedId": 1})
        return {doc["swipedId"] async for doc in cursor if doc.get("swipedId")}


__all__ = ["SwipeRepository"]
