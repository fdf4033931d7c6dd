"""Repository layer to abstract MongoDB access patterns."""

from .lease import LeaseRepository
from .match import MatchRepository
from .message import MessageRepository
from .profile import ProfileRepository
from .swipe import SwipeRepository

__all__ = [
    "LeaseRepository",
    "MatchRepository",
    "MessageRepository",
    "ProfileRepository",
    "SwipeRepository",
]
