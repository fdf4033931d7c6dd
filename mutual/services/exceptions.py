"""Domain errors raised by the matching services.

Each error carries a stable ``code`` so clients can tell "this conversation is
not active" apart from "you are not part of this match".
"""

from __future__ import annotations


class MatchingError(Exception):
    code = "matching_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code.replace("_", " "))

    @property
    def message(self) -> str:
        return str(self)


# Validation
class InvalidTargetError(MatchingError):
    code = "invalid_target"


class DuplicateSwipeError(MatchingError):
    code = "duplicate_swipe"


class EmptyContentError(MatchingError):
    code = "empty_content"


class ContentTooLongError(MatchingError):
    code = "content_too_long"


# Authorization
class NotParticipantError(MatchingError):
    code = "not_participant"


# State
class MatchNotFoundError(MatchingError):
    code = "match_not_found"


class MatchNotActiveError(MatchingError):
    code = "match_not_active"


class MatchEndedError(MatchingError):
    code = "match_ended"


class ConcurrentUpdateError(MatchingError):
    code = "conflict"


__all__ = [
    "MatchingError",
    "InvalidTargetError",
    "DuplicateSwipeError",
    "EmptyContentError",
    "ContentTooLongError",
    "NotParticipantError",
    "MatchNotFoundError",
    "MatchNotActiveError",
    "MatchEndedError",
    "ConcurrentUpdateError",
]
