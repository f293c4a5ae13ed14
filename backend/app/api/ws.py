# app/api/ws.py

import json
import logging
from typing import Optional

import anyio
from fastapi import APIRouter, WebSocket

from app.core.config import COOKIE_NAME
from app.core.security import AuthError, decode_token, extract_token
from app.realtime.router import EventRouter
from app.realtime.session import ConnectionSession

logger = logging.getLogger(__name__)

router = APIRouter()


def _socket_identity(websocket: WebSocket) -> Optional[str]:
    """Username from the session cookie or ?token=, None when absent or invalid"""
    token = extract_token(
        websocket.cookies.get(COOKIE_NAME) or websocket.query_params.get("token"),
        websocket.headers.get("Authorization"),
    )
    if token is None:
        return None
    try:
        return decode_token(token)
    except AuthError as e:
        logger.debug("Ignoring socket credential: %s", e)
        return None


@router.websocket("/ws")
async def realtime(websocket: WebSocket):
    event_router: EventRouter = websocket.app.state.event_router

    await websocket.accept()
    session = ConnectionSession(websocket, authenticated_username=_socket_identity(websocket))
    event_router.register(session)
    session.start()
    logger.debug("Opened %r", session)

    try:
        while True:
            incoming = await websocket.receive()
            if incoming["type"] == "websocket.disconnect":
                break
            raw = incoming.get("text")
            if raw is None:
                continue
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Dropping non-JSON frame on %r", session)
                continue
            if not isinstance(message, dict):
                continue

            await event_router.dispatch(session, message.get("event"), message.get("data"))
    finally:
        # Presence cleanup must finish even when the handler is being cancelled
        with anyio.CancelScope(shield=True):
            await event_router.disconnect(session)
            await session.wait_closed()
        logger.debug("Closed %r", session)
