"""Envelope and payload models for the realtime relay."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

EVENT_JOIN_CHAT = "join_chat"
EVENT_SEND_MESSAGE = "send_message"
EVENT_CHAT_JOINED = "chat_joined"
EVENT_RECEIVE_MESSAGE = "receive_message"
EVENT_MESSAGE_ACK = "message_ack"
EVENT_ERROR = "error"


class WsInbound(BaseModel):
    """Client → Server."""

    event: str  # join_chat | send_message
    data: Any = None


class WsOutbound(BaseModel):
    """Server → Client."""

    event: str  # chat_joined | receive_message | message_ack | error
    data: dict[str, Any] = {}


class JoinChatPayload(BaseModel):
    """Room join request; clients may send the bare chat id instead."""

    chat_id: int = Field(..., alias="chatId")

    model_config = ConfigDict(populate_by_name=True)


class SendMessagePayload(BaseModel):
    """Message submission over the relay."""

    chat_id: int = Field(..., alias="chatId")
    message: str
    client_id: str | None = Field(None, alias="clientId")

    model_config = ConfigDict(populate_by_name=True)
