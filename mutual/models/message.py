from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .identifiers import PyObjectId


class MessageDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: PyObjectId = Field(alias="_id")
    match_id: PyObjectId = Field(alias="matchId")
    sender_id: str = Field(alias="senderId")
    content: str
    seq: int
    created_at: int = Field(alias="createdAt")
    read_at: Optional[int] = Field(default=None, alias="readAt")


class Message(BaseModel):
    """Public message shape; ``id`` doubles as the client de-duplication key."""

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: PyObjectId
    match_id: PyObjectId = Field(alias="matchId")
    sender_id: str = Field(alias="senderId")
    content: str
    seq: int
    created_at: int = Field(alias="createdAt")
    read_at: Optional[int] = Field(default=None, alias="readAt")

    @classmethod
    def from_document(cls, doc: MessageDocument) -> "Message":
        return cls(
            id=doc.id,
            matchId=doc.match_id,
            senderId=doc.sender_id,
            content=doc.content,
            seq=doc.seq,
            createdAt=doc.created_at,
            readAt=doc.read_at,
        )


class MessageCreateRequest(BaseModel):
    content: str


class MessagePage(BaseModel):
    messages: List[Message] = Field(default_factory=list)
    next: Optional[int] = None


class MarkReadResponse(BaseModel):
    marked: int = 0


__all__ = [
    "MessageDocument",
    "Message",
    "MessageCreateRequest",
    "MessagePage",
    "MarkReadResponse",
]
