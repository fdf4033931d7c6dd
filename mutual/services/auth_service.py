from __future__ import annotations

import time
from typing import Any, Dict, Optional

import jwt

from ..config import get_settings
from ..db import get_db
from ..models.profile import ProfileDocument
from ..repositories.profile import ProfileRepository


class AuthService:
    """Verifies identity-provider tokens and yields the caller's profile.

    Sign-up and sign-in live with the identity provider; this service only
    decodes the HS256 bearer token it issues (``sub`` is the user id) and
    creates the profile record the first time a user is seen.
    """

    def __init__(
        self,
        repository: ProfileRepository,
        *,
        jwt_secret: str,
    ) -> None:
        self._repository = repository
        self._jwt_secret = jwt_secret

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    def decode_token(self, token: str) -> Optional[Dict[str, Any]]:
        if not self._jwt_secret:
            return None
        try:
            return jwt.decode(token, self._jwt_secret, algorithms=["HS256"])
        except jwt.PyJWTError:
            return None

    def user_id_from_token(self, token: str) -> Optional[str]:
        if not token:
            return None
        payload = self.decode_token(token)
        if not payload:
            return None
        user_id = str(payload.get("sub") or "").strip()
        return user_id or None

    async def get_profile_from_token(self, token: str) -> Optional[ProfileDocument]:
        user_id = self.user_id_from_token(token)
        if not user_id:
            return None
        return await self._repository.ensure_profile(user_id=user_id, now_ms=self._now_ms())


def get_auth_service() -> AuthService:
    settings = get_settings()
    return AuthService(
        ProfileRepository(get_db()),
        jwt_secret=settings.jwt_secret,
    )


__all__ = ["AuthService", "get_auth_service"]
