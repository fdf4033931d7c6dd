from .conversation_service import ConversationChannel, get_conversation_channel
from .match_resolver import MatchResolution, MatchResolver, canonical_pair
from .match_service import MatchStateMachine, get_match_state_machine
from .swipe_service import SwipeLedger, SwipeOutcome, get_swipe_ledger

__all__ = [
    "ConversationChannel",
    "get_conversation_channel",
    "MatchResolution",
    "MatchResolver",
    "canonical_pair",
    "MatchStateMachine",
    "get_match_state_machine",
    "SwipeLedger",
    "SwipeOutcome",
    "get_swipe_ledger",
]
