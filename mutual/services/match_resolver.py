from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from bson import ObjectId

from ..models.match import MatchStatus
from ..repositories.match import MatchRepository
from ..repositories.swipe import SwipeRepository
from .exceptions import InvalidTargetError

LOGGER = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class MatchResolution:
    match_id: Optional[ObjectId] = None
    created: bool = False
    status: Optional[MatchStatus] = None

    @property
    def matched(self) -> bool:
        return self.match_id is not None


NO_MATCH = MatchResolution()


def canonical_pair(first: str, second: str) -> Tuple[str, str]:
    if first == second:
        raise InvalidTargetError("a match needs two distinct users")
    return (first, second) if first < second else (second, first)


class MatchResolver:
    """Turns reciprocal likes into exactly one match per unordered pair."""

    def __init__(self, swipes: SwipeRepository, matches: MatchRepository) -> None:
        self._swipes = swipes
        self._matches = matches

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def resolve_match(self, liker_id: str, liked_id: str) -> MatchResolution:
        if not await self._swipes.has_like(liked_id, liker_id):
            return NO_MATCH

        user_a, user_b = canonical_pair(liker_id, liked_id)
        # An existing row, including an ended one, is returned unchanged.
        match, created = await self._matches.insert_if_absent(
            user_a=user_a,
            user_b=user_b,
            created_at=self._now_ms(),
        )
        if created:
            LOGGER.info("Match %s created for %s/%s", match.id, user_a, user_b)
        return MatchResolution(match_id=match.id, created=created, status=match.status)


__all__ = ["MatchResolution", "MatchResolver", "NO_MATCH", "canonical_pair"]
