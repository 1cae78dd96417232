"""Chat and message Pydantic schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from sust_bazaar.schemas.user import UserPublic


class ChatCreate(BaseModel):
    """Request body for resolving or opening a chat thread.

    At most one listing may be named. Without a listing the counterpart must
    be given explicitly as ``participantId``.
    """

    product_id: int | None = Field(None, alias="productId")
    accommodation_id: int | None = Field(None, alias="accommodationId")
    participant_id: int | None = Field(None, alias="participantId")

    model_config = ConfigDict(populate_by_name=True)


class ListingSummary(BaseModel):
    """Short description of the listing a thread is about."""

    kind: str
    id: int
    title: str
    price: Decimal


class MessageOut(BaseModel):
    """Message record as returned over REST and broadcast over the relay."""

    id: int
    chat_id: int
    sender_id: int
    text: str
    is_read: bool
    created_at: datetime
    sender: UserPublic

    model_config = ConfigDict(from_attributes=True)


class ChatOut(BaseModel):
    """Chat thread with participant identities and listing context."""

    id: int
    participant_a_id: int
    participant_b_id: int
    product_id: int | None
    accommodation_id: int | None
    created_at: datetime
    updated_at: datetime
    participant_a: UserPublic
    participant_b: UserPublic
    listing: ListingSummary | None = None

    model_config = ConfigDict(from_attributes=True)


class ChatThreadOut(ChatOut):
    """Entry in the caller's thread list."""

    counterpart: UserPublic
    last_message: MessageOut | None = None
    unread_count: int = 0
