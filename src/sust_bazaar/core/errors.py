"""Error taxonomy shared by the REST layer and the realtime relay.

Every failure a chat operation can produce is one of the classes below. The
REST layer maps them to HTTP statuses through a single exception handler;
the realtime relay serializes them into ``error`` events for the sender.
"""

from __future__ import annotations

from typing import Any

from fastapi import status


class ChatError(RuntimeError):
    """Base exception for chat domain failures."""

    kind: str = "server_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def serialize(self) -> dict[str, Any]:
        """Return the error as a JSON-ready mapping."""
        return {"kind": self.kind, "detail": self.detail}


class Unauthenticated(ChatError):
    """Credential is missing, malformed, expired or has a bad signature."""

    kind = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Could not validate credentials"


class Forbidden(ChatError):
    """Caller is authenticated but not allowed to perform the action."""

    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class NotFound(ChatError):
    """Chat, listing or user does not exist."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidRequest(ChatError):
    """Request is well-formed but violates a chat rule."""

    kind = "invalid_request"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class ServerError(ChatError):
    """The backing store failed."""


__all__ = [
    "ChatError",
    "Forbidden",
    "InvalidRequest",
    "NotFound",
    "ServerError",
    "Unauthenticated",
]
