"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, WebSocket
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, sessionmaker

from sust_bazaar.db.session import SessionLocal, get_db
from sust_bazaar.models import User
from sust_bazaar.services.identity import IdentityVerifier
from sust_bazaar.services.realtime import ChatRelay, RoomRegistry

# Missing credentials are reported by the verifier so every failure is a 401.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_session_factory() -> sessionmaker[Session]:
    """Return the factory the realtime relay opens one session per event with."""
    return SessionLocal


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from the bearer token.

    Raises:
        Unauthenticated: If the token is missing or invalid.
        Forbidden: If the account is banned or no longer exists.
    """
    token = credentials.credentials if credentials is not None else None
    return IdentityVerifier(db).verify(token).user


def get_room_registry(websocket: WebSocket) -> RoomRegistry:
    """Return the registry created at application start-up."""
    return websocket.app.state.room_registry


def get_chat_relay(
    registry: Annotated[RoomRegistry, Depends(get_room_registry)],
) -> ChatRelay:
    """Return a relay bound to the application's room registry."""
    return ChatRelay(registry)


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
ChatRelayDep = Annotated[ChatRelay, Depends(get_chat_relay)]
SessionFactoryDep = Annotated[sessionmaker[Session], Depends(get_session_factory)]
