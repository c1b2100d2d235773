"""
Admin authentication for catalog imports.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from rlscat.config import AdminConfig
from rlscat.utils.crypto import verify_password

TOKEN_SUBJECT = "rlscat-admin"
TOKEN_ALGORITHM = "HS256"


class AdminAuthService:
    """Issues and checks admin bearer tokens."""

    def __init__(self, config: AdminConfig):
        self.config = config

    @property
    def enabled(self) -> bool:
        return bool(self.config.password_hash and self.config.jwt_secret)

    def authenticate(self, password: str) -> Optional[str]:
        """
        Check the admin password.

        Returns:
            A signed token on success, None otherwise.
        """
        if not self.enabled or not password:
            return None
        if not verify_password(password, self.config.password_hash):
            return None
        return self._issue_token()

    def _issue_token(self) -> str:
        issued = datetime.now(timezone.utc)
        payload = {
            "sub": TOKEN_SUBJECT,
            "iat": issued,
            "exp": issued + timedelta(hours=self.config.jwt_expire_hours),
        }
        return jwt.encode(payload, self.config.jwt_secret, algorithm=TOKEN_ALGORITHM)

    def verify_token(self, token: str) -> bool:
        """True if the token is signed with our secret, unexpired, and for the admin."""
        if not self.config.jwt_secret:
            return False
        try:
            claims = jwt.decode(token, self.config.jwt_secret, algorithms=[TOKEN_ALGORITHM])
        except jwt.PyJWTError:
            return False
        return claims.get("sub") == TOKEN_SUBJECT

    @staticmethod
    def bearer_token(authorization: Optional[str]) -> Optional[str]:
        """Pull the token out of an ``Authorization: Bearer <token>`` header."""
        if not authorization:
            return None
        scheme, _, token = authorization.strip().partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token or " " in token:
            return None
        return token
