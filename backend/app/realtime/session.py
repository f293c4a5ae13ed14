# app/realtime/session.py

import asyncio
import contextlib
import enum
import itertools
import logging
from typing import Optional

from starlette.websockets import WebSocketDisconnect

from app.core.config import OUTBOUND_QUEUE_SIZE
from app.realtime.events import frame

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


class SessionState(str, enum.Enum):
    CONNECTED = "connected"
    IDENTIFIED = "identified"
    CLOSED = "closed"


class ConnectionSession:
    """
    One open WebSocket.

    Outbound frames go through a bounded queue drained by a writer task,
    so emitting never waits on the client. When the queue is full the
    frame is dropped for this connection only.
    """

    def __init__(self, websocket, authenticated_username: Optional[str] = None,
                 queue_size: int = OUTBOUND_QUEUE_SIZE):
        self.id = next(_session_ids)
        self.websocket = websocket
        self.state = SessionState.CONNECTED
        self.username: Optional[str] = None
        # Set when the socket carried a valid session cookie/token
        self.authenticated_username = authenticated_username
        self.dropped = 0
        self._broken = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None

    def __repr__(self):
        return f"<ConnectionSession #{self.id} {self.state.value} {self.username or '-'}>"

    # ---------- lifecycle ----------

    def start(self):
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop(), name=f"ws-writer-{self.id}")

    def bind(self, username: str):
        """CONNECTED/IDENTIFIED -> IDENTIFIED. Re-binding simply overwrites."""
        if self.state is SessionState.CLOSED:
            return
        self.username = username
        self.state = SessionState.IDENTIFIED

    def mark_closed(self) -> bool:
        """Move to CLOSED. True only for the call that performed the transition."""
        if self.state is SessionState.CLOSED:
            return False
        self.state = SessionState.CLOSED
        if self._writer is not None:
            self._writer.cancel()
        return True

    async def wait_closed(self):
        if self._writer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer

    @property
    def is_open(self) -> bool:
        return self.state is not SessionState.CLOSED

    # ---------- outbound ----------

    def send(self, event: str, data: dict) -> bool:
        """Queue a frame without blocking. False if closed or the queue is full."""
        if not self.is_open or self._broken:
            return False
        try:
            self._queue.put_nowait(frame(event, data))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Outbound queue full for %r, dropped %s", self, event)
            return False
        return True

    async def flush(self):
        """Wait until every queued frame has been handed to the socket."""
        await self._queue.join()

    async def _write_loop(self):
        while True:
            item = await self._queue.get()
            try:
                await self.websocket.send_json(item)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug("Send failed on %r: %s", self, e)
                self._broken = True
                self._queue.task_done()
                self._discard_pending()
                return
            self._queue.task_done()

    def _discard_pending(self):
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._queue.task_done()
