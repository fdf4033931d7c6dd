from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .identifiers import PyObjectId


class ProfileDocument(BaseModel):
    """Profile record as stored in MongoDB.

    The matching core only ever writes ``activeMatchId``; every other field is
    owned by the profile editor and read here for list views.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow", arbitrary_types_allowed=True)

    id: PyObjectId = Field(alias="_id")
    user_id: str = Field(alias="userId")
    name: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    bio: Optional[str] = None
    active_match_id: Optional[PyObjectId] = Field(default=None, alias="activeMatchId")
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")


class ProfileSnapshot(BaseModel):
    """Counterpart card embedded in match list entries."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    name: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    bio: Optional[str] = None


__all__ = ["ProfileDocument", "ProfileSnapshot"]
