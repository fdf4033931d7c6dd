from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from .collections import (
    MATCHES_COLLECTION,
    MESSAGES_COLLECTION,
    PROFILES_COLLECTION,
    SWIPES_COLLECTION,
)


async def ensure_profile_indexes(db: AsyncIOMotorDatabase) -> None:
    collection = db[PROFILES_COLLECTION]
    await collection.create_index("userId", name="profiles_user_id_unique", unique=True)
    await collection.create_index([("createdAt", DESCENDING)], name="profiles_created_at_idx")


async def ensure_swipe_indexes(db: AsyncIOMotorDatabase) -> None:
    collection = db[SWIPES_COLLECTION]
    await collection.create_index(
        [("swiperId", ASCENDING), ("swipedId", ASCENDING)],
        name="swipes_swiper_swiped_unique",
        unique=True,
    )
    await collection.create_index(
        [("swipedId", ASCENDING), ("direction", ASCENDING)],
        name="swipes_swiped_direction_idx",
    )


async def ensure_match_indexes(db: AsyncIOMotorDatabase) -> None:
    collection = db[MATCHES_COLLECTION]
    # userA < userB is enforced by the resolver; the unique pair is the
    # serialization point for concurrent mutual likes.
    await collection.create_index(
        [("userA", ASCENDING), ("userB", ASCENDING)],
        name="matches_pair_unique",
        unique=True,
    )
    await collection.create_index("userA", name="matches_user_a_idx")
    await collection.create_index("userB", name="matches_user_b_idx")
    await collection.create_index([("updatedAt", DESCENDING)], name="matches_updated_at_idx")


async def ensure_message_indexes(db: AsyncIOMotorDatabase) -> None:
    collection = db[MESSAGES_COLLECTION]
    await collection.create_index(
        [("matchId", ASCENDING), ("seq", ASCENDING)],
        name="messages_match_seq_unique",
        unique=True,
    )
    await collection.create_index(
        [("matchId", ASCENDING), ("senderId", ASCENDING), ("readAt", ASCENDING)],
        name="messages_unread_idx",
    )


__all__ = [
    "ensure_profile_indexes",
    "ensure_swipe_indexes",
    "ensure_match_indexes",
    "ensure_message_indexes",
]
