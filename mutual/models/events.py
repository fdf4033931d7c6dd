"""Real-time event payloads pushed to match and user streams."""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from .identifiers import PyObjectId
from .match import MatchStatus
from .message import Message


class MessageCreated(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    type: Literal["message_created"] = "message_created"
    match_id: PyObjectId = Field(alias="matchId")
    message: Message


class MessageUpdated(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    type: Literal["message_updated"] = "message_updated"
    match_id: PyObjectId = Field(alias="matchId")
    message: Message


class MatchChanged(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    type: Literal["match_changed"] = "match_changed"
    match_id: PyObjectId = Field(alias="matchId")
    status: MatchStatus
    participants: List[str] = Field(default_factory=list)
    created: bool = False


def match_topic(match_id: object) -> str:
    return f"match:{match_id}"


def user_topic(user_id: str) -> str:
    return f"user:{user_id}"


__all__ = [
    "MessageCreated",
    "MessageUpdated",
    "MatchChanged",
    "match_topic",
    "user_topic",
]
