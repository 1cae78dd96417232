# tests/v1/test_realtime.py
"""End-to-end tests for the realtime WebSocket endpoint."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool
from starlette.websockets import WebSocketDisconnect

from sust_bazaar.api.v1.dependencies import get_session_factory
from sust_bazaar.db.session import Base, get_db
from sust_bazaar.models import Message, User
from sust_bazaar.services.chat_directory import ChatDirectory
from sust_bazaar.services.identity import create_access_token


def _ws_url(user) -> str:
    return f"/api/v1/ws?token={create_access_token(user.id)}"


def test_connection_without_token_rejected(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/v1/ws"):
            pass
    assert exc_info.value.code == 1008


def test_connection_with_bad_token_rejected(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/v1/ws?token=garbage"):
            pass


def test_two_participants_exchange_messages(client, db_session, chat, test_user, other_user) -> None:
    with client.websocket_connect(_ws_url(test_user)) as alice:
        with client.websocket_connect(_ws_url(other_user)) as bob:
            alice.send_json({"event": "join_chat", "data": chat.id})
            assert alice.receive_json() == {"event": "chat_joined", "data": {"chatId": chat.id}}
            bob.send_json({"event": "join_chat", "data": {"chatId": chat.id}})
            assert bob.receive_json()["event"] == "chat_joined"

            alice.send_json(
                {"event": "send_message", "data": {"chatId": chat.id, "message": "hello", "clientId": "a1"}}
            )

            delivered = bob.receive_json()
            assert delivered["event"] == "receive_message"
            assert delivered["data"]["text"] == "hello"
            assert delivered["data"]["sender"]["id"] == test_user.id

            assert alice.receive_json()["event"] == "receive_message"
            ack = alice.receive_json()
            assert ack["event"] == "message_ack"
            assert ack["data"]["clientId"] == "a1"

    assert db_session.query(Message).count() == 1


def test_outsider_message_not_relayed(client, db_session, chat, test_user, outsider) -> None:
    """The member's next frame is the legitimate message, not the spam."""
    with client.websocket_connect(_ws_url(test_user)) as member:
        member.send_json({"event": "join_chat", "data": chat.id})
        member.receive_json()

        with client.websocket_connect(_ws_url(outsider)) as intruder:
            intruder.send_json(
                {"event": "send_message", "data": {"chatId": chat.id, "message": "spam"}}
            )
            error = intruder.receive_json()
            assert error["event"] == "error"
            assert error["data"]["kind"] == "forbidden"

            intruder.send_json({"event": "join_chat", "data": chat.id})
            assert intruder.receive_json()["data"]["kind"] == "forbidden"

        member.send_json({"event": "send_message", "data": {"chatId": chat.id, "message": "legit"}})
        assert member.receive_json()["data"]["text"] == "legit"
        assert member.receive_json()["event"] == "message_ack"

    assert [m.text for m in db_session.query(Message).all()] == ["legit"]


def test_malformed_frame_keeps_connection_open(client, chat, test_user) -> None:
    with client.websocket_connect(_ws_url(test_user)) as ws:
        ws.send_text("not json")
        assert ws.receive_json()["data"]["detail"] == "Malformed event"

        ws.send_json({"event": "join_chat", "data": chat.id})
        assert ws.receive_json()["event"] == "chat_joined"


def test_binary_frame_answered_with_error(client, chat, test_user) -> None:
    with client.websocket_connect(_ws_url(test_user)) as ws:
        ws.send_bytes(b"\x00\x01")
        error = ws.receive_json()
        assert error["event"] == "error"
        assert error["data"]["kind"] == "invalid_request"
        assert error["data"]["detail"] == "Malformed event"

        ws.send_json({"event": "join_chat", "data": chat.id})
        assert ws.receive_json()["event"] == "chat_joined"


def _student(name: str, email: str) -> User:
    return User(
        name=name,
        email=email,
        password_hash="unused",
        phone="01712345678",
        department="CSE",
        season="Spring 2025",
    )


def test_idle_socket_does_not_hold_a_pool_connection(app, client, tmp_path) -> None:
    """REST keeps working while a joined socket sits idle on a one-connection pool."""
    pooled = create_engine(
        f"sqlite:///{tmp_path / 'pool.db'}",
        poolclass=QueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=1,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=pooled)
    factory = sessionmaker(bind=pooled, autoflush=False, expire_on_commit=False)
    with factory() as db:
        alice = _student("Alice", "alice@student.sust.edu")
        bob = _student("Bob", "bob@student.sust.edu")
        db.add_all([alice, bob])
        db.commit()
        chat_id = ChatDirectory(db).get_or_create(alice.id, bob.id).id

    def _pooled_session():
        with factory() as db:
            yield db

    app.dependency_overrides[get_db] = _pooled_session
    app.dependency_overrides[get_session_factory] = lambda: factory
    try:
        with client.websocket_connect(_ws_url(alice)) as ws:
            ws.send_json({"event": "join_chat", "data": chat_id})
            assert ws.receive_json()["event"] == "chat_joined"

            response = client.get(
                "/api/v1/chats",
                headers={"Authorization": f"Bearer {create_access_token(bob.id)}"},
            )
            assert response.status_code == 200
            assert [thread["id"] for thread in response.json()] == [chat_id]
    finally:
        pooled.dispose()
