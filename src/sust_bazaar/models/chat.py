# src/sust_bazaar/models/chat.py
"""Models describing chat threads and the messages exchanged in them."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sust_bazaar.db.session import Base
from sust_bazaar.db.time import utcnow
from sust_bazaar.models.listing import Accommodation, Product
from sust_bazaar.models.user import User

LISTING_PRODUCT = "product"
LISTING_ACCOMMODATION = "accommodation"


def listing_key_for(kind: str | None, listing_id: int | None) -> str:
    """Return the normalized listing key stored on a chat ("" for no listing)."""
    if kind is None or listing_id is None:
        return ""
    return f"{kind}:{listing_id}"


class Chat(Base):
    """Thread between exactly two users, optionally about one listing.

    ``participant_a_id`` is the user who opened the thread. The pair is also
    stored sorted in ``participant_low_id``/``participant_high_id`` so that the
    unordered pair plus ``listing_key`` can carry a unique constraint.
    """

    __tablename__ = "chats"
    __table_args__ = (
        CheckConstraint("participant_a_id <> participant_b_id", name="ck_chats_distinct_participants"),
        CheckConstraint(
            "product_id IS NULL OR accommodation_id IS NULL",
            name="ck_chats_single_listing",
        ),
        UniqueConstraint(
            "participant_low_id",
            "participant_high_id",
            "listing_key",
            name="uq_chats_pair_listing",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    participant_a_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    participant_b_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    participant_low_id: Mapped[int] = mapped_column(Integer, nullable=False)
    participant_high_id: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("products.id"), nullable=True)
    accommodation_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("accommodations.id"), nullable=True
    )
    listing_key: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, index=True)

    participant_a: Mapped[User] = relationship("User", foreign_keys=[participant_a_id])
    participant_b: Mapped[User] = relationship("User", foreign_keys=[participant_b_id])
    product: Mapped[Product | None] = relationship("Product")
    accommodation: Mapped[Accommodation | None] = relationship("Accommodation")

    @property
    def participant_ids(self) -> tuple[int, int]:
        """Return both participant ids."""
        return (self.participant_a_id, self.participant_b_id)

    def has_participant(self, user_id: int) -> bool:
        """Return True if ``user_id`` is one of the two participants."""
        return user_id in self.participant_ids

    def counterpart_of(self, user_id: int) -> User:
        """Return the participant that is not ``user_id``."""
        if self.participant_a_id == user_id:
            return self.participant_b
        return self.participant_a


class Message(Base):
    """Text message appended to a chat thread.

    Immutable once written except for ``is_read``.
    """

    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_chat_created", "chat_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(Integer, ForeignKey("chats.id"), nullable=False)
    sender_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    chat: Mapped[Chat] = relationship("Chat")
    sender: Mapped[User] = relationship("User")
