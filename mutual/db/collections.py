"""MongoDB collection names used by the matching service."""

from __future__ import annotations

PROFILES_COLLECTION = "profiles"
SWIPES_COLLECTION = "swipes"
MATCHES_COLLECTION = "matches"
MESSAGES_COLLECTION = "messages"
USER_LEASES_COLLECTION = "user_leases"

__all__ = [
    "PROFILES_COLLECTION",
    "SWIPES_COLLECTION",
    "MATCHES_COLLECTION",
    "MESSAGES_COLLECTION",
    "USER_LEASES_COLLECTION",
]
