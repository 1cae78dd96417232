# src/sust_bazaar/api/v1/endpoints/chats.py
"""Chat thread and message history endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from sust_bazaar.api.v1.dependencies import CurrentUserDep, SessionDep
from sust_bazaar.schemas.chat import ChatCreate, ChatOut, ChatThreadOut, MessageOut
from sust_bazaar.services.chat_directory import (
    ChatDirectory,
    ListingRef,
    to_chat_out,
    to_thread_out,
)
from sust_bazaar.services.message_store import MessageStore, to_message_out

router = APIRouter(prefix="/chats", tags=["chats"])


@router.get("", response_model=list[ChatThreadOut])
async def list_chats(current_user: CurrentUserDep, db: SessionDep) -> list[ChatThreadOut]:
    """List the caller's threads, most recently active first."""
    threads = ChatDirectory(db).list_threads_for(current_user.id)
    return [to_thread_out(thread, current_user.id) for thread in threads]


@router.post("/create", response_model=ChatOut)
async def get_or_create_chat(
    payload: ChatCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> ChatOut:
    """Return the thread for the caller, the counterpart and the listing.

    The thread is created on first contact.
    """
    listing = ListingRef.from_ids(payload.product_id, payload.accommodation_id)
    chat = ChatDirectory(db).get_or_create(
        current_user.id,
        counterparty_id=payload.participant_id,
        listing=listing,
    )
    return to_chat_out(chat)


@router.get("/{chat_id}/messages", response_model=list[MessageOut])
async def get_chat_messages(
    chat_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[MessageOut]:
    """Return the full ordered history of a chat.

    Fetching the history marks the counterpart's messages as read.
    """
    ChatDirectory(db).assert_participant(chat_id, current_user.id)
    messages = MessageStore(db).list_for(chat_id, current_user.id)
    return [to_message_out(message) for message in messages]
