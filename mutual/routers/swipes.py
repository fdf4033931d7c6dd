from fastapi import APIRouter, Depends

from ..models.match import MatchStatus
from ..models.swipe import SwipeRequest, SwipeResponse, SwipedTargetsResponse
from ..services.events import get_event_hub
from ..services.exceptions import MatchingError
from ..services.match_resolver import canonical_pair
from ..services.match_service import notify_match_changed
from ..services.swipe_service import SwipeLedger, get_swipe_ledger
from .deps import http_error, require_current_user_id

router = APIRouter(prefix="/swipes", tags=["swipes"])


@router.post("", response_model=SwipeResponse)
async def create_swipe(
    payload: SwipeRequest,
    user_id: str = Depends(require_current_user_id),
    ledger: SwipeLedger = Depends(get_swipe_ledger),
) -> SwipeResponse:
    try:
        outcome = await ledger.record_swipe(user_id, payload.target_id, payload.direction)
    except MatchingError as exc:
        raise http_error(exc) from exc

    resolution = outcome.resolution
    if resolution.created:
        await notify_match_changed(
            get_event_hub(),
            resolution.match_id,
            resolution.status or MatchStatus.PENDING,
            canonical_pair(outcome.swipe.swiper_id, outcome.swipe.swiped_id),
            created=True,
        )

    return SwipeResponse(
        swipe=outcome.swipe,
        matched=resolution.matched,
        matchId=resolution.match_id,
        isNewMatch=resolution.created,
    )


@router.get("/targets", response_model=SwipedTargetsResponse)
async def list_swiped_targets(
    user_id: str = Depends(require_current_user_id),
    ledger: SwipeLedger = Depends(get_swipe_ledger),
) -> SwipedTargetsResponse:
    targets = await ledger.list_swiped_targets(user_id)
    return SwipedTargetsResponse(targets=sorted(targets))


__all__ = ["router"]
