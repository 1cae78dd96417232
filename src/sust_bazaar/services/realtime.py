"""Realtime chat relay over WebSockets.

Two pieces live here:

- :class:`RoomRegistry` owns the mapping of room name to live connections. One
  registry is created when the application starts, stored on ``app.state`` and
  closed at shutdown.
- :class:`ChatRelay` authenticates a connection at handshake time and handles
  the client events (``join_chat``, ``send_message``) against the chat
  directory and the message store, answering every event with either an
  acknowledgement or an ``error`` event.

Thread Safety:
    The registry is meant for a single event loop. Handlers for one connection
    run to completion in order; handlers of different connections may
    interleave between awaits.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import WebSocket, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sust_bazaar.core.errors import ChatError, InvalidRequest, ServerError
from sust_bazaar.schemas.realtime import (
    EVENT_CHAT_JOINED,
    EVENT_ERROR,
    EVENT_JOIN_CHAT,
    EVENT_MESSAGE_ACK,
    EVENT_RECEIVE_MESSAGE,
    EVENT_SEND_MESSAGE,
    JoinChatPayload,
    SendMessagePayload,
    WsInbound,
    WsOutbound,
)
from sust_bazaar.services.chat_directory import ChatDirectory
from sust_bazaar.services.identity import IdentityVerifier
from sust_bazaar.services.message_store import MessageStore, to_message_out

__all__ = ["ChatRelay", "Connection", "RoomRegistry", "room_name"]

logger = logging.getLogger(__name__)


def room_name(chat_id: int) -> str:
    """Return the relay room that carries broadcasts for ``chat_id``."""
    return f"chat_{chat_id}"


class Connection:
    """A live WebSocket bound to one authenticated user for its lifetime."""

    def __init__(self, websocket: WebSocket, user_id: int, display_name: str) -> None:
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.display_name = display_name
        self.rooms: set[str] = set()

    async def send(self, event: str, data: dict[str, Any]) -> None:
        """Send one server event to the client."""
        envelope = WsOutbound(event=event, data=data)
        await self.websocket.send_json(envelope.model_dump(mode="json"))

    async def close(self, code: int = status.WS_1001_GOING_AWAY) -> None:
        await self.websocket.close(code=code)

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, user_id={self.user_id})"


class RoomRegistry:
    """In-memory room membership for all live relay connections."""

    def __init__(self) -> None:
        self._rooms: dict[str, set[Connection]] = defaultdict(set)
        self._connections: set[Connection] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register(self, connection: Connection) -> None:
        """Track a newly authenticated connection."""
        if self._closed:
            raise RuntimeError("RoomRegistry is closed")
        self._connections.add(connection)

    def join(self, connection: Connection, room: str) -> None:
        """Add ``connection`` to ``room``. Joining twice is a no-op."""
        self._rooms[room].add(connection)
        connection.rooms.add(room)

    def members(self, room: str) -> list[Connection]:
        """Return the connections currently in ``room``."""
        return list(self._rooms.get(room, ()))

    def discard(self, connection: Connection) -> None:
        """Forget a connection and every room membership it holds."""
        for room in list(connection.rooms):
            members = self._rooms.get(room)
            if members is not None:
                members.discard(connection)
                if not members:
                    del self._rooms[room]
        connection.rooms.clear()
        self._connections.discard(connection)

    async def broadcast(self, room: str, event: str, data: dict[str, Any]) -> int:
        """Send an event to every member of ``room``.

        Members whose send fails are dropped from the registry.

        Returns:
            Number of connections the event was delivered to.
        """
        members = self.members(room)
        if not members:
            return 0
        results = await asyncio.gather(
            *(member.send(event, data) for member in members),
            return_exceptions=True,
        )
        delivered = 0
        for member, result in zip(members, results):
            if isinstance(result, Exception):
                logger.warning("Dropping dead connection %r from %s: %s", member, room, result)
                self.discard(member)
            else:
                delivered += 1
        return delivered

    async def close(self) -> None:
        """Close every live connection and clear all rooms."""
        self._closed = True
        connections = list(self._connections)
        for connection in connections:
            try:
                await connection.close()
            except RuntimeError as exc:
                # Socket already closed by the peer.
                logger.debug("Connection %r already closed: %s", connection, exc)
        self._rooms.clear()
        self._connections.clear()
        logger.info("Room registry closed (%d connections)", len(connections))


def _error_context(data: Any) -> dict[str, Any]:
    """Pull the identifiers a client needs to match an error to its request."""
    context: dict[str, Any] = {}
    if isinstance(data, dict):
        if "chatId" in data:
            context["chatId"] = data["chatId"]
        if "clientId" in data:
            context["clientId"] = data["clientId"]
    elif isinstance(data, (int, str)):
        context["chatId"] = data
    return context


Handler = Callable[[Connection, Any, Session], Awaitable[None]]


class ChatRelay:
    """Handle realtime chat events for authenticated connections."""

    def __init__(self, registry: RoomRegistry) -> None:
        self.registry = registry
        self._handlers: dict[str, Handler] = {
            EVENT_JOIN_CHAT: self.join_chat,
            EVENT_SEND_MESSAGE: self.send_message,
        }

    async def connect(self, websocket: WebSocket, token: str | None, db: Session) -> Connection | None:
        """Authenticate and accept a WebSocket.

        Returns:
            The registered connection, or None if the handshake was refused.
            Bad credentials close the socket with a policy-violation code; a
            registry that is shutting down closes it with going-away.
        """
        if self.registry.closed:
            await websocket.close(code=status.WS_1001_GOING_AWAY, reason="Server shutting down")
            return None

        try:
            identity = IdentityVerifier(db).verify(token)
        except ChatError as err:
            logger.warning("Rejected realtime handshake: %s", err.detail)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=err.detail)
            return None

        connection = Connection(websocket, identity.user_id, identity.display_name)
        # No await between the closed check and register.
        self.registry.register(connection)
        await websocket.accept()
        logger.info("User %s connected (%s)", identity.display_name, connection.id)
        return connection

    def disconnect(self, connection: Connection) -> None:
        """Drop all room memberships of a closed connection."""
        self.registry.discard(connection)
        logger.info("User %s disconnected (%s)", connection.display_name, connection.id)

    async def reject_frame(self, connection: Connection) -> None:
        """Answer a frame that is not a JSON text envelope, such as binary data."""
        await self._send_error(connection, None, InvalidRequest("Malformed event"), {})

    async def dispatch(self, connection: Connection, raw: str, db: Session) -> None:
        """Parse one client frame and run its handler."""
        try:
            inbound = WsInbound.model_validate_json(raw)
        except ValidationError:
            await self.reject_frame(connection)
            return

        handler = self._handlers.get(inbound.event)
        if handler is None:
            await self._send_error(
                connection,
                inbound.event,
                InvalidRequest(f"Unknown event '{inbound.event}'"),
                {},
            )
            return

        context = _error_context(inbound.data)
        try:
            await handler(connection, inbound.data, db)
        except ChatError as err:
            logger.warning(
                "Rejected %s from user %s: %s", inbound.event, connection.user_id, err.detail
            )
            await self._send_error(connection, inbound.event, err, context)
        except SQLAlchemyError:
            logger.error(
                "Store failure handling %s from user %s",
                inbound.event,
                connection.user_id,
                exc_info=True,
            )
            db.rollback()
            await self._send_error(connection, inbound.event, ServerError(), context)

    async def join_chat(self, connection: Connection, data: Any, db: Session) -> None:
        """Add the connection to a chat room it participates in."""
        payload_data = data if isinstance(data, dict) else {"chatId": data}
        try:
            payload = JoinChatPayload.model_validate(payload_data)
        except ValidationError as err:
            raise InvalidRequest("join_chat requires a chat id") from err

        chat = ChatDirectory(db).assert_participant(payload.chat_id, connection.user_id)
        room = room_name(chat.id)
        self.registry.join(connection, room)
        logger.info("User %s joined %s", connection.display_name, room)
        await connection.send(EVENT_CHAT_JOINED, {"chatId": chat.id})

    async def send_message(self, connection: Connection, data: Any, db: Session) -> None:
        """Persist a message from a participant and broadcast it to the room."""
        try:
            payload = SendMessagePayload.model_validate(data)
        except ValidationError as err:
            raise InvalidRequest("send_message requires chatId and message") from err

        chat = ChatDirectory(db).assert_participant(payload.chat_id, connection.user_id)
        message = MessageStore(db).append(chat.id, connection.user_id, payload.message)
        record = to_message_out(message).model_dump(mode="json")

        await self.registry.broadcast(room_name(chat.id), EVENT_RECEIVE_MESSAGE, record)
        await connection.send(
            EVENT_MESSAGE_ACK,
            {"chatId": chat.id, "messageId": message.id, "clientId": payload.client_id},
        )

    async def _send_error(
        self,
        connection: Connection,
        event: str | None,
        err: ChatError,
        context: dict[str, Any],
    ) -> None:
        await connection.send(EVENT_ERROR, {"event": event, **err.serialize(), **context})
