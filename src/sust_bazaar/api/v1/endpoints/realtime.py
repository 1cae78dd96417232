# src/sust_bazaar/api/v1/endpoints/realtime.py
"""WebSocket entry point for the realtime chat relay."""

from __future__ import annotations

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from sust_bazaar.api.v1.dependencies import ChatRelayDep, SessionFactoryDep

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def realtime_endpoint(
    websocket: WebSocket,
    session_factory: SessionFactoryDep,
    relay: ChatRelayDep,
    token: str | None = Query(None),
) -> None:
    """Authenticate with ``?token=`` then exchange JSON ``{event, data}`` frames.

    A database session is opened for the handshake and for each frame, and
    closed before the next receive, so idle sockets hold no pool connection.
    """
    with session_factory() as db:
        connection = await relay.connect(websocket, token, db)
    if connection is None:
        return

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                await relay.reject_frame(connection)
                continue
            with session_factory() as db:
                await relay.dispatch(connection, text, db)
    except WebSocketDisconnect:
        pass
    finally:
        relay.disconnect(connection)
