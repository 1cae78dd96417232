"""Append-only message log per chat thread."""
from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from sust_bazaar.core.errors import InvalidRequest, NotFound
from sust_bazaar.core.settings import settings
from sust_bazaar.db.time import utcnow
from sust_bazaar.models import Chat, Message
from sust_bazaar.schemas.chat import MessageOut
from sust_bazaar.schemas.user import UserPublic

__all__ = ["MessageStore", "to_message_out"]


class MessageStore:
    """Persist and read chat messages.

    ``append`` does not check that the sender belongs to the chat; callers
    authorize first through :meth:`ChatDirectory.assert_participant`.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def append(self, chat_id: int, sender_id: int, text: str | None) -> Message:
        """Write a new unread message and bump the chat's ``updated_at``.

        Raises:
            InvalidRequest: If the text is empty after trimming or too long.
            NotFound: If the chat does not exist.
        """
        body = (text or "").strip()
        if not body:
            raise InvalidRequest("Message text cannot be empty")
        if len(body) > settings.max_message_length:
            raise InvalidRequest(
                f"Message text exceeds {settings.max_message_length} characters"
            )

        chat = self.db.get(Chat, chat_id)
        if chat is None:
            raise NotFound("Chat not found")

        now = utcnow()
        message = Message(
            chat_id=chat_id,
            sender_id=sender_id,
            text=body,
            is_read=False,
            created_at=now,
        )
        chat.updated_at = now
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def list_for(self, chat_id: int, reader_id: int) -> list[Message]:
        """Return the full history of a chat, oldest first.

        Every unread message in the chat written by someone other than
        ``reader_id`` is marked read in the same transaction, so the returned
        rows already reflect the new read state.
        """
        (
            self.db.query(Message)
            .filter(
                Message.chat_id == chat_id,
                Message.sender_id != reader_id,
                Message.is_read.is_(False),
            )
            .update({Message.is_read: True}, synchronize_session="fetch")
        )
        messages = (
            self.db.query(Message)
            .options(selectinload(Message.sender))
            .filter(Message.chat_id == chat_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
            .all()
        )
        self.db.commit()
        return messages

    def last_messages(self, chat_ids: Sequence[int]) -> dict[int, Message]:
        """Return the most recent message of each chat that has one, keyed by chat id."""
        if not chat_ids:
            return {}
        ranked = (
            select(
                Message.id.label("message_id"),
                func.row_number()
                .over(
                    partition_by=Message.chat_id,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                )
                .label("position"),
            )
            .where(Message.chat_id.in_(chat_ids))
            .subquery()
        )
        latest = (
            self.db.query(Message)
            .options(selectinload(Message.sender))
            .join(ranked, ranked.c.message_id == Message.id)
            .filter(ranked.c.position == 1)
            .all()
        )
        return {message.chat_id: message for message in latest}

    def unread_counts(self, chat_ids: Sequence[int], reader_id: int) -> dict[int, int]:
        """Return, per chat, how many counterpart messages ``reader_id`` has not read.

        Chats with nothing unread are absent from the result.
        """
        if not chat_ids:
            return {}
        rows = (
            self.db.query(Message.chat_id, func.count(Message.id))
            .filter(
                Message.chat_id.in_(chat_ids),
                Message.sender_id != reader_id,
                Message.is_read.is_(False),
            )
            .group_by(Message.chat_id)
            .all()
        )
        return {chat_id: count for chat_id, count in rows}


def to_message_out(message: Message) -> MessageOut:
    """Convert a Message ORM instance to its API schema."""
    return MessageOut(
        id=message.id,
        chat_id=message.chat_id,
        sender_id=message.sender_id,
        text=message.text,
        is_read=message.is_read,
        created_at=message.created_at,
        sender=UserPublic(id=message.sender.id, name=message.sender.name),
    )
