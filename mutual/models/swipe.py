from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .identifiers import PyObjectId


class SwipeDirection(str, Enum):
    LIKE = "like"
    PASS = "pass"


class SwipeDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: PyObjectId = Field(alias="_id", serialization_alias="id")
    swiper_id: str = Field(alias="swiperId")
    swiped_id: str = Field(alias="swipedId")
    direction: SwipeDirection
    created_at: int = Field(alias="createdAt")


class SwipeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_id: str = Field(alias="targetId", min_length=1)
    direction: SwipeDirection


class SwipeResponse(BaseModel):
    """Outcome of a swipe.

    ``matched`` is true whenever a match exists for the pair after the swipe;
    ``isNewMatch`` only when this swipe created it, which is what the client
    uses to show the match celebration exactly once.
    """

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    swipe: SwipeDocument
    matched: bool = False
    match_id: Optional[PyObjectId] = Field(default=None, alias="matchId")
    is_new_match: bool = Field(default=False, alias="isNewMatch")


class SwipedTargetsResponse(BaseModel):
    targets: List[str] = Field(default_factory=list)


__all__ = [
    "SwipeDirection",
    "SwipeDocument",
    "SwipeRequest",
    "SwipeResponse",
    "SwipedTargetsResponse",
]
