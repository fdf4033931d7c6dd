from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .identifiers import PyObjectId
from .profile import ProfileSnapshot


class MatchStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    ENDED = "ended"


class MatchDocument(BaseModel):
    """Canonical match document stored in MongoDB (``user_a < user_b``)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", arbitrary_types_allowed=True)

    id: PyObjectId = Field(alias="_id")
    user_a: str = Field(alias="userA")
    user_b: str = Field(alias="userB")
    status: MatchStatus = MatchStatus.PENDING
    message_seq: int = Field(default=0, alias="messageSeq")
    last_message_at: Optional[int] = Field(default=None, alias="lastMessageAt")
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")

    @property
    def participants(self) -> tuple[str, str]:
        return self.user_a, self.user_b

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.user_a, self.user_b)

    def counterpart_of(self, user_id: str) -> str:
        return self.user_b if user_id == self.user_a else self.user_a


class Match(BaseModel):
    """Public representation of a match returned via the API."""

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: PyObjectId
    user_a: str = Field(alias="userA")
    user_b: str = Field(alias="userB")
    status: MatchStatus
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")

    @classmethod
    def from_document(cls, doc: MatchDocument) -> "Match":
        return cls(
            id=doc.id,
            userA=doc.user_a,
            userB=doc.user_b,
            status=doc.status,
            createdAt=doc.created_at,
            updatedAt=doc.updated_at,
        )


class MessagePreview(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    sender_id: str = Field(alias="senderId")
    created_at: int = Field(alias="createdAt")


class MatchSummary(Match):
    """Match list entry: the match, its counterpart and unread metadata."""

    other_user: Optional[ProfileSnapshot] = Field(default=None, alias="otherUser")
    last_message: Optional[MessagePreview] = Field(default=None, alias="lastMessage")
    unread_count: int = Field(default=0, alias="unreadCount")
    is_active: bool = Field(default=False, alias="isActive")


class MatchesResponse(BaseModel):
    matches: List[MatchSummary] = Field(default_factory=list)


class ActiveMatchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    match: Optional[Match] = None


__all__ = [
    "MatchStatus",
    "MatchDocument",
    "Match",
    "MessagePreview",
    "MatchSummary",
    "MatchesResponse",
    "ActiveMatchResponse",
]
