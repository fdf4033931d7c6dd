"""Repository helpers for the profile collection."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ReturnDocument

from ..db.collections import PROFILES_COLLECTION
from ..models.profile import ProfileDocument
from .exceptions import NotFoundRepositoryError

LOGGER = logging.getLogger("uvicorn.error")


class ProfileRepository:
    """Thin abstraction over the profile MongoDB collection.

    Only ``activeMatchId`` is written by the matching core; the other writers
    here exist for the profile-creation side effect of authentication.
    """

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[PROFILES_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def ensure_profile(
        self,
        *,
        user_id: str,
        now_ms: int,
        name: Optional[str] = None,
        photos: Optional[Iterable[str]] = None,
        bio: Optional[str] = None,
    ) -> ProfileDocument:
        """Return the profile for ``user_id``, creating an empty one on first sight."""

        doc = await self._collection.find_one_and_update(
            {"userId": user_id},
            {
                "$setOnInsert": {
                    "_id": ObjectId(),
                    "userId": user_id,
                    "name": name,
                    "photos": list(photos or []),
                    "bio": bio,
                    "activeMatchId": None,
                    "createdAt": now_ms,
                    "updatedAt": now_ms,
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        if not doc:  # pragma: no cover - upsert always returns a document
            raise NotFoundRepositoryError("profile upsert failed")
        return ProfileDocument(**doc)

    async def get_by_user_id(self, user_id: str) -> Optional[ProfileDocument]:
        doc = await self._collection.find_one({"userId": user_id})
        return ProfileDocument(**doc) if doc else None

    async def exists(self, user_id: str) -> bool:
        doc = await self._collection.find_one({"userId": user_id}, projection={"_id": 1})
        return doc is not None

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, ProfileDocument]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        out: dict[str, ProfileDocument] = {}
        async for doc in self._collection.find({"userId": {"$in": ids}}):
            profile = ProfileDocument(**doc)
            out[profile.user_id] = profile
        return out

    async def set_active_match(
        self,
        *,
        user_id: str,
        match_id: Optional[ObjectId],
        updated_at: int,
    ) -> ProfileDocument:
        result = await self._collection.find_one_and_update(
            {"userId": user_id},
            {"$set": {"activeMatchId": match_id, "updatedAt": updated_at}},
            return_document=ReturnDocument.AFTER,
        )
        if not result:
            raise NotFoundRepositoryError("profile not found")
        return ProfileDocument(**result)

    async def clear_active_match_if(
        self,
        *,
        user_id: str,
        match_id: ObjectId,
        updated_at: int,
    ) -> bool:
        """Null the pointer only while it still designates ``match_id``."""

        result = await self._collection.update_one(
            {"userId": user_id, "activeMatchId": match_id},
            {"$set": {"activeMatchId": None, "updatedAt": updated_at}},
        )
        return bool(result.modified_count)


__all__ = ["ProfileRepository"]
