# app/realtime/router.py

"""
Event router: the realtime core.

Receives inbound events from connection sessions, keeps the presence
table current, persists durable events through the message store and
fans outbound events out to the right live connections.

Each connection's events are awaited one at a time by its reader loop;
events from different connections interleave freely. Store calls are the
only suspension points. Emission only enqueues on the target session, so
a slow client never holds up the router.
"""

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from app.core.config import REALTIME_REQUIRE_AUTH
from app.core.message_logic import clean_text, coerce_message_ids, utcnow
from app.realtime import events
from app.realtime.presence import PresenceTable
from app.realtime.session import ConnectionSession

logger = logging.getLogger(__name__)


class DeleteOutcome(str, enum.Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    FAILED = "failed"


class EventRouter:
    def __init__(
        self,
        store,
        presence: Optional[PresenceTable] = None,
        require_auth: bool = REALTIME_REQUIRE_AUTH,
        run_sync: Callable[..., Awaitable[Any]] = run_in_threadpool,
    ):
        self.store = store
        self.presence = presence if presence is not None else PresenceTable()
        self.require_auth = require_auth
        self._run_sync = run_sync
        # Every open socket, identified or not; target of broadcasts
        self._connections: Set[ConnectionSession] = set()
        # Serializes online/offline writes per username
        self._presence_locks: Dict[str, asyncio.Lock] = {}

        self._handlers = {
            events.ANNOUNCE: self._on_announce,
            events.SEND_MESSAGE: self._on_send_message,
            events.TYPING: self._on_typing,
            events.STOP_TYPING: self._on_stop_typing,
            events.MARK_READ: self._on_mark_read,
            events.DELETE_MESSAGE: self._on_delete_message,
        }

    # =========================
    # CONNECTIONS
    # =========================

    def register(self, session: ConnectionSession):
        self._connections.add(session)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def online_usernames(self) -> List[str]:
        return sorted(self.presence.list_online())

    async def disconnect(self, session: ConnectionSession) -> List[str]:
        """
        Runs once per connection, however many times the transport reports
        the close. Returns the usernames that went offline.
        """
        if not session.mark_closed():
            return []
        self._connections.discard(session)

        removed = self.presence.remove(session)
        if not removed:
            return []

        seen_at = utcnow()
        for username in removed:
            logger.info("%s went offline", username)
            try:
                await self._persist_presence(username, seen_at)
            except SQLAlchemyError:
                logger.exception("Could not persist offline state for %s", username)

        self._broadcast_presence()
        return removed

    # =========================
    # INBOUND
    # =========================

    async def dispatch(self, session: ConnectionSession, event: Any, data: Any):
        """Validate one inbound frame and run its handler. Bad input is a silent no-op."""
        if not session.is_open or not isinstance(event, str):
            return None

        handler = self._handlers.get(event)
        if handler is None:
            logger.debug("Ignoring unknown event %r from %r", event, session)
            return None

        schema = events.INBOUND_SCHEMAS[event]
        try:
            payload = schema.model_validate(data if data is not None else {})
        except ValidationError as e:
            logger.debug("Ignoring malformed %s from %r: %s", event, session, e.error_count())
            return None

        return await handler(session, payload)

    async def _on_announce(self, session, payload: events.AnnouncePayload):
        return await self.announce(session, payload.username)

    async def _on_send_message(self, session, payload: events.SendMessagePayload):
        return await self.send_message(
            session, payload.sender, payload.receiver, payload.text, client_id=payload.clientId
        )

    async def _on_typing(self, session, payload: events.TypingPayload):
        return self.typing(session, payload.sender, payload.receiver)

    async def _on_stop_typing(self, session, payload: events.TypingPayload):
        return self.typing(session, payload.sender, payload.receiver, stop=True)

    async def _on_mark_read(self, session, payload: events.MarkReadPayload):
        return await self.mark_read(session, payload.messageIds, payload.sender, payload.receiver)

    async def _on_delete_message(self, session, payload: events.DeleteMessagePayload):
        return await self.delete_message(
            payload.messageId, origin=session, requester=self._connection_identity(session)
        )

    # =========================
    # OPERATIONS
    # =========================

    async def announce(self, session: ConnectionSession, username: str) -> bool:
        if not self._identity_allowed(session, username, events.ANNOUNCE):
            return False

        previous = self.presence.announce(username, session)
        session.bind(username)
        if previous is not None and previous is not session:
            logger.info("%s reconnected, %r no longer routed", username, previous)
        else:
            logger.info("%s is online", username)

        try:
            await self._persist_presence(username)
        except SQLAlchemyError:
            logger.exception("Could not persist online state for %s", username)

        self._broadcast_presence()
        return True

    async def send_message(
        self,
        session: ConnectionSession,
        sender: str,
        receiver: str,
        text: str,
        client_id: Optional[str] = None,
    ) -> Optional[dict]:
        """Persist and deliver. Returns the saved message, or None if nothing was sent."""
        text = clean_text(text)
        if text is None:
            return None
        if not self._sender_allowed(session, sender, events.SEND_MESSAGE):
            return None

        try:
            saved = await self._run_sync(self.store.save_message, sender, receiver, text)
        except SQLAlchemyError:
            logger.exception("Failed to store message %s -> %s", sender, receiver)
            self._local_error(session, events.SEND_MESSAGE, "Message could not be saved")
            return None

        target = self.presence.resolve(receiver)
        if target is not None and target is not session:
            target.send(events.MESSAGE_RECEIVED, saved)

        echo = dict(saved, clientId=client_id) if client_id is not None else saved
        session.send(events.MESSAGE_RECEIVED, echo)
        return saved

    def typing(self, session: ConnectionSession, sender: str, receiver: str, stop: bool = False) -> bool:
        """Forward a typing signal. False when the receiver is offline (dropped)."""
        event = events.STOP_TYPING if stop else events.TYPING
        if not self._sender_allowed(session, sender, event):
            return False

        target = self.presence.resolve(receiver)
        if target is None:
            return False
        return target.send(event, {"sender": sender})

    async def mark_read(
        self, session: ConnectionSession, message_ids: Any, sender: str, receiver: str
    ) -> Optional[List[int]]:
        """
        Mark messages read and tell their author. `sender` is the author of
        the messages, `receiver` the user who read them.
        """
        if not isinstance(message_ids, (list, tuple)):
            return None
        ids = coerce_message_ids(message_ids)
        if not ids:
            return None

        try:
            await self._run_sync(self.store.mark_read, ids)
        except SQLAlchemyError:
            logger.exception("Failed to mark %d message(s) read for %s", len(ids), receiver)
            self._local_error(session, events.MARK_READ, "Messages could not be marked read")
            return None

        target = self.presence.resolve(sender)
        if target is not None:
            target.send(events.MESSAGES_READ, {"messageIds": ids})
        return ids

    async def delete_message(
        self,
        message_id: Any,
        origin: Optional[ConnectionSession] = None,
        requester: Optional[str] = None,
    ) -> DeleteOutcome:
        """
        Delete by id and notify the two participants (plus the requesting
        connection). Unknown ids are NOT_FOUND and emit nothing.

        When `requester` is given it must be the message's sender or
        receiver, otherwise nothing is deleted and the outcome is FORBIDDEN.
        """
        ids = coerce_message_ids([message_id])
        if not ids:
            return DeleteOutcome.NOT_FOUND
        if origin is not None and requester is None and self.require_auth:
            self._local_error(origin, events.DELETE_MESSAGE, "Not authenticated")
            return DeleteOutcome.FORBIDDEN

        try:
            if requester is not None:
                found = await self._run_sync(self.store.get_message, ids[0])
                if found is None:
                    return DeleteOutcome.NOT_FOUND
                if requester not in (found["sender"], found["receiver"]):
                    logger.warning("%s tried to delete message %s of another conversation", requester, ids[0])
                    if origin is not None:
                        self._local_error(origin, events.DELETE_MESSAGE, "Not a participant of this message")
                    return DeleteOutcome.FORBIDDEN
            deleted = await self._run_sync(self.store.delete_message, ids[0])
        except SQLAlchemyError:
            logger.exception("Failed to delete message %s", ids[0])
            if origin is not None:
                self._local_error(origin, events.DELETE_MESSAGE, "Message could not be deleted")
            return DeleteOutcome.FAILED

        if deleted is None:
            return DeleteOutcome.NOT_FOUND

        self._emit_to_participants(
            (deleted["sender"], deleted["receiver"]),
            events.MESSAGE_DELETED,
            {"messageId": deleted["id"]},
            extra=origin,
        )
        return DeleteOutcome.DELETED

    def publish_message(self, message: dict) -> int:
        """Deliver a message saved outside the socket path (REST) to both participants."""
        return self._emit_to_participants(
            (message["sender"], message["receiver"]), events.MESSAGE_RECEIVED, message
        )

    # =========================
    # HELPERS
    # =========================

    def _identity_allowed(self, session: ConnectionSession, username: str, event: str) -> bool:
        bound = session.authenticated_username
        if bound is None and self.require_auth:
            self._local_error(session, event, "Not authenticated")
            return False
        if bound is not None and bound != username:
            logger.warning("%r tried to announce as %s", session, username)
            self._local_error(session, event, "Username does not match credentials")
            return False
        return True

    @staticmethod
    def _connection_identity(session: ConnectionSession) -> Optional[str]:
        return session.username or session.authenticated_username

    async def _persist_presence(self, username: str, seen_at=None):
        """
        Write the username's current presence to the store. Writes for one
        username run in order and each reads presence only once it holds
        the lock, so the last write always matches the presence table.
        """
        lock = self._presence_locks.setdefault(username, asyncio.Lock())
        async with lock:
            if self.presence.resolve(username) is not None:
                await self._run_sync(self.store.set_online, username)
            else:
                await self._run_sync(self.store.set_offline, username, seen_at or utcnow())

    def _sender_allowed(self, session: ConnectionSession, sender: str, event: str) -> bool:
        identity = self._connection_identity(session)
        if identity is None:
            if self.require_auth:
                self._local_error(session, event, "Not authenticated")
                return False
            return True
        if identity != sender:
            self._local_error(session, event, "Sender does not match this connection")
            return False
        return True

    def _emit_to_participants(
        self,
        usernames: Iterable[str],
        event: str,
        data: Dict[str, Any],
        extra: Optional[ConnectionSession] = None,
    ) -> int:
        targets = []
        for username in usernames:
            handle = self.presence.resolve(username)
            if handle is not None and all(handle is not t for t in targets):
                targets.append(handle)
        if extra is not None and all(extra is not t for t in targets):
            targets.append(extra)

        return sum(1 for target in targets if target.send(event, data))

    def _broadcast_presence(self):
        self.broadcast(events.PRESENCE_CHANGED, {"onlineUsernames": self.online_usernames()})

    def broadcast(self, event: str, data: Dict[str, Any]) -> int:
        return sum(1 for session in list(self._connections) if session.send(event, data))

    def _local_error(self, session: ConnectionSession, event: str, detail: str):
        session.send(events.ERROR, {"event": event, "detail": detail})
