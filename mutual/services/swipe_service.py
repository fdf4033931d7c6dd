from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from ..db import get_db
from ..models.swipe import SwipeDirection, SwipeDocument
from ..repositories.exceptions import DuplicateKeyRepositoryError
from ..repositories.match import MatchRepository
from ..repositories.profile import ProfileRepository
from ..repositories.swipe import SwipeRepository
from .exceptions import DuplicateSwipeError, InvalidTargetError
from .match_resolver import NO_MATCH, MatchResolution, MatchResolver

LOGGER = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class SwipeOutcome:
    swipe: SwipeDocument
    resolution: MatchResolution = NO_MATCH


class SwipeLedger:
    """Write-once record of like/pass judgments, feeding the match resolver."""

    def __init__(
        self,
        swipes: SwipeRepository,
        profiles: ProfileRepository,
        resolver: MatchResolver,
    ) -> None:
        self._swipes = swipes
        self._profiles = profiles
        self._resolver = resolver

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def record_swipe(
        self,
        swiper_id: str,
        target_id: str,
        direction: SwipeDirection,
    ) -> SwipeOutcome:
        swiper = (swiper_id or "").strip()
        target = (target_id or "").strip()
        if not swiper or not target:
            raise InvalidTargetError("swiper and target are required")
        if swiper == target:
            raise InvalidTargetError("cannot swipe on yourself")
        if not await self._profiles.exists(target):
            raise InvalidTargetError("target user not found")

        try:
            swipe = await self._swipes.insert_swipe(
                swiper_id=swiper,
                swiped_id=target,
                direction=SwipeDirection(direction),
                created_at=self._now_ms(),
            )
        except DuplicateKeyRepositoryError:
            raise DuplicateSwipeError("already swiped on this user") from None

        if swipe.direction is not SwipeDirection.LIKE:
            return SwipeOutcome(swipe=swipe)

        resolution = await self._resolver.resolve_match(swiper, target)
        return SwipeOutcome(swipe=swipe, resolution=resolution)

    async def list_swiped_targets(self, user_id: str) -> set[str]:
        if not user_id:
            return set()
        return await self._swipes.list_swiped_ids(user_id)


def get_swipe_ledger() -> SwipeLedger:
    db = get_db()
    swipes = SwipeRepository(db)
    resolver = MatchResolver(swipes, MatchRepository(db))
    return SwipeLedger(swipes, ProfileRepository(db), resolver)


__all__ = ["SwipeLedger", "SwipeOutcome", "get_swipe_ledger"]
