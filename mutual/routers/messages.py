from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query, status

from ..models.message import MarkReadResponse, Message, MessageCreateRequest, MessagePage
from ..services.conversation_service import ConversationChannel, get_conversation_channel
from ..services.exceptions import MatchingError
from .deps import http_error, match_id_param, require_current_user_id

router = APIRouter(prefix="/matches/{match_id}", tags=["messages"])


@router.get("/messages", response_model=MessagePage)
async def list_messages(
    after: Optional[int] = Query(default=None, ge=0),
    limit: Optional[int] = Query(default=None, ge=1),
    user_id: str = Depends(require_current_user_id),
    match_id: ObjectId = Depends(match_id_param),
    channel: ConversationChannel = Depends(get_conversation_channel),
) -> MessagePage:
    try:
        return await channel.list_messages(match_id, user_id, after=after, limit=limit)
    except MatchingError as exc:
        raise http_error(exc) from exc


@router.post("/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreateRequest,
    user_id: str = Depends(require_current_user_id),
    match_id: ObjectId = Depends(match_id_param),
    channel: ConversationChannel = Depends(get_conversation_channel),
) -> Message:
    try:
        return await channel.send(match_id, user_id, payload.content)
    except MatchingError as exc:
        raise http_error(exc) from exc


@router.post("/read", response_model=MarkReadResponse)
async def mark_read(
    user_id: str = Depends(require_current_user_id),
    match_id: ObjectId = Depends(match_id_param),
    channel: ConversationChannel = Depends(get_conversation_channel),
) -> MarkReadResponse:
    try:
        marked = await channel.mark_read(match_id, user_id)
    except MatchingError as exc:
        raise http_error(exc) from exc
    return MarkReadResponse(marked=marked)


__all__ = ["router"]
