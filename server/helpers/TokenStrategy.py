from datetime import timedelta
from typing import Optional
from jose import jwt, JWTError

from .Clock import utc_now

ALGORITHM = "HS256"


class TokenStrategy:
    """Issues and verifies the bearer tokens that identify a user."""

    def __init__(self, secret_key: str, expire_minutes: int):
        self._secret_key = secret_key
        self._expire_minutes = expire_minutes

    def create_access_token(self, user_id: str) -> str:
        payload = {
            "sub": user_id,
            "exp": utc_now() + timedelta(minutes=self._expire_minutes)
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def verify_access_token(self, token: str) -> Optional[str]:
        """Return the user id carried by the token, or None if it is invalid or expired."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None
        return payload.get("sub")
