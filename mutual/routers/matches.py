from bson import ObjectId
from fastapi import APIRouter, Depends

from ..models.match import ActiveMatchResponse, Match, MatchesResponse
from ..services.exceptions import MatchingError
from ..services.match_service import MatchStateMachine, get_match_state_machine
from .deps import http_error, match_id_param, require_current_user_id

router = APIRouter(prefix="/matches", tags=["matches"])


@router.get("", response_model=MatchesResponse)
async def list_matches(
    user_id: str = Depends(require_current_user_id),
    machine: MatchStateMachine = Depends(get_match_state_machine),
) -> MatchesResponse:
    return MatchesResponse(matches=await machine.list_matches(user_id))


@router.get("/active", response_model=ActiveMatchResponse)
async def get_active_match(
    user_id: str = Depends(require_current_user_id),
    machine: MatchStateMachine = Depends(get_match_state_machine),
) -> ActiveMatchResponse:
    match = await machine.get_active_match(user_id)
    return ActiveMatchResponse(match=Match.from_document(match) if match else None)


@router.get("/{match_id}", response_model=Match)
async def get_match(
    user_id: str = Depends(require_current_user_id),
    match_id: ObjectId = Depends(match_id_param),
    machine: MatchStateMachine = Depends(get_match_state_machine),
) -> Match:
    try:
        match = await machine.get_match(match_id, user_id)
    except MatchingError as exc:
        raise http_error(exc) from exc
    return Match.from_document(match)


@router.post("/{match_id}/activate", response_model=Match)
async def activate_match(
    user_id: str = Depends(require_current_user_id),
    match_id: ObjectId = Depends(match_id_param),
    machine: MatchStateMachine = Depends(get_match_state_machine),
) -> Match:
    try:
        match = await machine.activate(match_id, user_id)
    except MatchingError as exc:
        raise http_error(exc) from exc
    return Match.from_document(match)


@router.post("/{match_id}/end", response_model=Match)
async def end_match(
    user_id: str = Depends(require_current_user_id),
    match_id: ObjectId = Depends(match_id_param),
    machine: MatchStateMachine = Depends(get_match_state_machine),
) -> Match:
    try:
        match = await machine.end(match_id, user_id)
    except MatchingError as exc:
        raise http_error(exc) from exc
    return Match.from_document(match)


__all__ = ["router"]
