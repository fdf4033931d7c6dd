"""Shared router dependencies: bearer auth, id parsing, domain error mapping."""

from __future__ import annotations

from bson import ObjectId
from fastapi import Depends, Header, HTTPException, status

from ..models.identifiers import parse_object_id
from ..services.auth_service import AuthService, get_auth_service
from ..services.exceptions import (
    ConcurrentUpdateError,
    ContentTooLongError,
    DuplicateSwipeError,
    EmptyContentError,
    InvalidTargetError,
    MatchEndedError,
    MatchingError,
    MatchNotActiveError,
    MatchNotFoundError,
    NotParticipantError,
)

_STATUS_BY_ERROR: dict[type[MatchingError], int] = {
    InvalidTargetError: status.HTTP_400_BAD_REQUEST,
    EmptyContentError: status.HTTP_400_BAD_REQUEST,
    ContentTooLongError: status.HTTP_400_BAD_REQUEST,
    DuplicateSwipeError: status.HTTP_409_CONFLICT,
    NotParticipantError: status.HTTP_403_FORBIDDEN,
    MatchNotFoundError: status.HTTP_404_NOT_FOUND,
    MatchNotActiveError: status.HTTP_409_CONFLICT,
    MatchEndedError: status.HTTP_409_CONFLICT,
    ConcurrentUpdateError: status.HTTP_409_CONFLICT,
}


def http_error(exc: MatchingError) -> HTTPException:
    code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail={"code": exc.code, "message": exc.message})


def _extract_token(authorization: str) -> str:
    if not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing bearer token")
    return token


async def require_current_user_id(
    authorization: str = Header(default=""),
    auth: AuthService = Depends(get_auth_service),
) -> str:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authorization required")
    token = _extract_token(authorization)
    profile = await auth.get_profile_from_token(token)
    if not profile:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")
    return profile.user_id


def match_id_param(match_id: str) -> ObjectId:
    oid = parse_object_id(match_id)
    if oid is None:
        raise http_error(MatchNotFoundError("match not found"))
    return oid


__all__ = ["http_error", "match_id_param", "require_current_user_id"]
