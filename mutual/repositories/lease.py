"""Short-lived per-user leases stored in MongoDB.

A lease is a document keyed by ``<scope>:<userId>``; the unique ``_id`` makes
acquisition an atomic insert-if-absent, and ``expiresAt`` lets a crashed
holder's lease be taken over once it lapses.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from ..db.collections import USER_LEASES_COLLECTION
from .exceptions import LeaseUnavailableError

LOGGER = logging.getLogger("uvicorn.error")


class LeaseRepository:
    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        *,
        ttl_ms: int,
        wait_ms: int,
        poll_interval: float = 0.02,
    ) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[USER_LEASES_COLLECTION]
        self._ttl_ms = max(1, int(ttl_ms))
        self._wait_ms = max(0, int(wait_ms))
        self._poll_interval = poll_interval

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def try_acquire(self, key: str) -> Optional[str]:
        """Single acquisition attempt; returns the lease token or ``None``."""

        token = uuid.uuid4().hex
        now = self._now_ms()
        try:
            await self._collection.insert_one(
                {"_id": key, "token": token, "expiresAt": now + self._ttl_ms}
            )
            return token
        except DuplicateKeyError:
            pass
        # Take over a lapsed lease
        stolen = await self._collection.find_one_and_update(
            {"_id": key, "expiresAt": {"$lt": now}},
            {"$set": {"token": token, "expiresAt": now + self._ttl_ms}},
        )
        if stolen is not None:
            LOGGER.warning("Took over expired lease %s", key)
            return token
        return None

    async def acquire(self, key: str) -> str:
        deadline = time.monotonic() + self._wait_ms / 1000.0
        while True:
            token = await self.try_acquire(key)
            if token is not None:
                return token
            if time.monotonic() >= deadline:
                LOGGER.warning("Lease %s still held after %sms", key, self._wait_ms)
                raise LeaseUnavailableError(f"lease {key} is held by another operation")
            await asyncio.sleep(self._poll_interval)

    async def release(self, key: str, token: str) -> bool:
        result = await self._collection.delete_one({"_id": key, "token": token})
        return bool(result.deleted_count)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[str]:
        token = await self.acquire(key)
        try:
            yield token
        finally:
            await self.release(key, token)


__all__ = ["LeaseRepository"]
