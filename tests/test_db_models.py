# tests/test_db_models.py
"""Database-level constraints on chats and messages."""

import pytest
from sqlalchemy.exc import IntegrityError

from sust_bazaar.models import Chat, Message


def _chat(a: int, b: int, listing_key: str = "") -> Chat:
    low, high = sorted((a, b))
    return Chat(
        participant_a_id=a,
        participant_b_id=b,
        participant_low_id=low,
        participant_high_id=high,
        listing_key=listing_key,
    )


def test_chat_rejects_identical_participants(db_session, test_user) -> None:
    """A chat row whose two participants are the same user cannot be stored."""
    db_session.add(_chat(test_user.id, test_user.id))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_chat_pair_and_listing_are_unique(db_session, test_user, other_user) -> None:
    """Both orderings of a pair map to the same unique key."""
    db_session.add(_chat(test_user.id, other_user.id))
    db_session.commit()

    db_session.add(_chat(other_user.id, test_user.id))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_chat_allows_distinct_listing_contexts(db_session, test_user, other_user) -> None:
    """The same pair may hold one thread per listing context."""
    db_session.add(_chat(test_user.id, other_user.id))
    db_session.add(_chat(test_user.id, other_user.id, "product:1"))
    db_session.commit()

    assert db_session.query(Chat).count() == 2


def test_message_defaults_to_unread(db_session, chat, test_user) -> None:
    message = Message(chat_id=chat.id, sender_id=test_user.id, text="hello")
    db_session.add(message)
    db_session.commit()
    db_session.refresh(message)

    assert message.is_read is False
    assert message.created_at is not None
