"""Resolve, create and authorize chat threads.

A thread is identified by the unordered pair of its participants plus the
listing it is about. ``{A, B, product 42}`` and ``{B, A, product 42}`` are the
same thread; ``{A, B, no listing}`` is a different one.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from sust_bazaar.core.errors import Forbidden, InvalidRequest, NotFound
from sust_bazaar.models import (
    LISTING_ACCOMMODATION,
    LISTING_PRODUCT,
    Accommodation,
    Chat,
    Message,
    Product,
    User,
)
from sust_bazaar.models.chat import listing_key_for
from sust_bazaar.schemas.chat import ChatOut, ChatThreadOut, ListingSummary
from sust_bazaar.schemas.user import UserPublic
from sust_bazaar.services.message_store import MessageStore, to_message_out

__all__ = [
    "ChatDirectory",
    "ChatThread",
    "ListingRef",
    "to_chat_out",
    "to_thread_out",
]

_LISTING_MODELS: dict[str, type[Product] | type[Accommodation]] = {
    LISTING_PRODUCT: Product,
    LISTING_ACCOMMODATION: Accommodation,
}


@dataclass(frozen=True)
class ListingRef:
    """Tagged pointer to the product or accommodation a chat is about."""

    kind: str
    id: int

    @property
    def key(self) -> str:
        return listing_key_for(self.kind, self.id)

    @classmethod
    def from_ids(cls, product_id: int | None, accommodation_id: int | None) -> ListingRef | None:
        """Build a reference from the two optional request ids."""
        if product_id is not None and accommodation_id is not None:
            raise InvalidRequest("A chat can reference a product or an accommodation, not both")
        if product_id is not None:
            return cls(LISTING_PRODUCT, product_id)
        if accommodation_id is not None:
            return cls(LISTING_ACCOMMODATION, accommodation_id)
        return None


@dataclass
class ChatThread:
    """A chat annotated for the caller's thread list."""

    chat: Chat
    last_message: Message | None
    unread_count: int


class ChatDirectory:
    """Directory of chat threads backed by the ``chats`` table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _base_query(self):
        return self.db.query(Chat).options(
            selectinload(Chat.participant_a),
            selectinload(Chat.participant_b),
            selectinload(Chat.product),
            selectinload(Chat.accommodation),
        )

    def get(self, chat_id: int) -> Chat | None:
        """Return a chat by id."""
        return self._base_query().filter(Chat.id == chat_id).first()

    def assert_participant(self, chat_id: int, user_id: int) -> Chat:
        """Return the chat if ``user_id`` participates in it.

        Raises:
            NotFound: If the chat does not exist.
            Forbidden: If the user is not one of the two participants.
        """
        chat = self.get(chat_id)
        if chat is None:
            raise NotFound("Chat not found")
        if not chat.has_participant(user_id):
            raise Forbidden("Access denied")
        return chat

    def list_threads_for(self, user_id: int) -> list[ChatThread]:
        """Return every thread of ``user_id``, most recently active first."""
        chats = (
            self._base_query()
            .filter(or_(Chat.participant_a_id == user_id, Chat.participant_b_id == user_id))
            .order_by(Chat.updated_at.desc(), Chat.id.desc())
            .all()
        )
        chat_ids = [chat.id for chat in chats]
        store = MessageStore(self.db)
        last_messages = store.last_messages(chat_ids)
        unread = store.unread_counts(chat_ids, user_id)
        return [
            ChatThread(
                chat=chat,
                last_message=last_messages.get(chat.id),
                unread_count=unread.get(chat.id, 0),
            )
            for chat in chats
        ]

    def _resolve_listing_owner(self, listing: ListingRef) -> int:
        model = _LISTING_MODELS.get(listing.kind)
        if model is None:
            raise InvalidRequest(f"Unknown listing kind '{listing.kind}'")
        record = self.db.get(model, listing.id)
        if record is None:
            raise NotFound(f"{listing.kind.capitalize()} not found")
        owner_id = record.owner_id
        if owner_id is None or self.db.get(User, owner_id) is None:
            raise NotFound("Listing owner not found")
        return owner_id

    def _find(self, user_id: int, counterparty_id: int, listing_key: str) -> Chat | None:
        low, high = sorted((user_id, counterparty_id))
        return (
            self._base_query()
            .filter(
                Chat.participant_low_id == low,
                Chat.participant_high_id == high,
                Chat.listing_key == listing_key,
            )
            .first()
        )

    def get_or_create(
        self,
        user_id: int,
        counterparty_id: int | None = None,
        listing: ListingRef | None = None,
    ) -> Chat:
        """Return the unique thread for the pair and listing, creating it if absent.

        When a listing is given and ``counterparty_id`` is omitted, the
        listing owner is the counterparty.

        Raises:
            InvalidRequest: Self-chat, chat about one's own listing, or no
                counterparty at all.
            NotFound: The listing, its owner or the counterparty does not exist.
        """
        if counterparty_id is not None and counterparty_id == user_id:
            raise InvalidRequest("Cannot chat with yourself")

        if listing is not None:
            owner_id = self._resolve_listing_owner(listing)
            if owner_id == user_id:
                raise InvalidRequest("Cannot chat about your own listing")
            if counterparty_id is None:
                counterparty_id = owner_id
        elif counterparty_id is None:
            raise InvalidRequest("A listing or a participant is required")

        if self.db.get(User, counterparty_id) is None:
            raise NotFound("User not found")

        listing_key = listing.key if listing is not None else ""
        existing = self._find(user_id, counterparty_id, listing_key)
        if existing is not None:
            return existing

        low, high = sorted((user_id, counterparty_id))
        chat = Chat(
            participant_a_id=user_id,
            participant_b_id=counterparty_id,
            participant_low_id=low,
            participant_high_id=high,
            product_id=listing.id if listing and listing.kind == LISTING_PRODUCT else None,
            accommodation_id=(
                listing.id if listing and listing.kind == LISTING_ACCOMMODATION else None
            ),
            listing_key=listing_key,
        )
        self.db.add(chat)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent first contact inserted the same thread.
            self.db.rollback()
            winner = self._find(user_id, counterparty_id, listing_key)
            if winner is None:
                raise
            return winner
        return self.get(chat.id) or chat


def _listing_summary(chat: Chat) -> ListingSummary | None:
    if chat.product is not None:
        return ListingSummary(
            kind=LISTING_PRODUCT,
            id=chat.product.id,
            title=chat.product.title,
            price=chat.product.price,
        )
    if chat.accommodation is not None:
        return ListingSummary(
            kind=LISTING_ACCOMMODATION,
            id=chat.accommodation.id,
            title=chat.accommodation.title,
            price=chat.accommodation.price,
        )
    return None


def _public(user: User) -> UserPublic:
    return UserPublic(id=user.id, name=user.name)


def to_chat_out(chat: Chat) -> ChatOut:
    """Convert a Chat ORM instance to its API schema."""
    return ChatOut(
        id=chat.id,
        participant_a_id=chat.participant_a_id,
        participant_b_id=chat.participant_b_id,
        product_id=chat.product_id,
        accommodation_id=chat.accommodation_id,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
        participant_a=_public(chat.participant_a),
        participant_b=_public(chat.participant_b),
        listing=_listing_summary(chat),
    )


def to_thread_out(thread: ChatThread, viewer_id: int) -> ChatThreadOut:
    """Convert an annotated thread to its API schema from ``viewer_id``'s side."""
    base = to_chat_out(thread.chat)
    return ChatThreadOut(
        **base.model_dump(),
        counterpart=_public(thread.chat.counterpart_of(viewer_id)),
        last_message=(
            to_message_out(thread.last_message) if thread.last_message is not None else None
        ),
        unread_count=thread.unread_count,
    )
