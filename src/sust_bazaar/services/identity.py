"""Credential issuance and verification.

The same verifier backs the REST ``get_current_user`` dependency and the
realtime relay handshake, so both surfaces reject exactly the same tokens.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from sust_bazaar.core.errors import Forbidden, Unauthenticated
from sust_bazaar.core.settings import settings
from sust_bazaar.models import User

__all__ = ["Identity", "IdentityVerifier", "create_access_token"]


@dataclass(frozen=True)
class Identity:
    """Resolved, non-banned caller."""

    user_id: int
    display_name: str
    user: User


def create_access_token(user_id: int, extra_claims: dict[str, str] | None = None) -> str:
    """Create a signed JWT access token for ``user_id``."""
    to_encode: dict[str, object] = {"sub": str(user_id)}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


class IdentityVerifier:
    """Resolve bearer tokens to active user accounts."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _decode_subject(self, token: str) -> int:
        try:
            payload = jwt.decode(
                token,
                settings.secret_key,
                algorithms=[settings.jwt_algorithm],
            )
        except JWTError as err:
            raise Unauthenticated() from err

        subject = payload.get("sub")
        if subject is None:
            raise Unauthenticated()
        try:
            return int(subject)
        except (TypeError, ValueError) as err:
            raise Unauthenticated() from err

    def verify(self, token: str | None) -> Identity:
        """Return the identity behind ``token``.

        Raises:
            Unauthenticated: If the token is missing, malformed, expired or
                fails signature verification.
            Forbidden: If the account no longer exists or is banned.
        """
        if not token or not token.strip():
            raise Unauthenticated("Authentication required")

        user_id = self._decode_subject(token.strip())
        user = self.db.get(User, user_id)
        if user is None:
            raise Forbidden("Account no longer exists")
        if user.is_banned:
            raise Forbidden("Account has been banned")
        return Identity(user_id=user.id, display_name=user.name, user=user)
