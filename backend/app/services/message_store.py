# app/services/message_store.py

from datetime import datetime
from typing import Optional, Sequence

from app.core import message as message_core
from app.core import user as user_core
from app.infra.postgres import db_session


class MessageStore:
    """
    Durable side of the realtime router.
    Every call runs in its own DB session and returns plain dicts, so
    results can cross from the threadpool back into the event loop.
    """

    def __init__(self, session_factory=db_session):
        self._session = session_factory

    def save_message(self, sender: str, receiver: str, text: str) -> dict:
        with self._session() as session:
            msg = message_core.store_message(session, sender, receiver, text)
            return msg.to_dict()

    def get_message(self, message_id: int) -> Optional[dict]:
        with self._session() as session:
            msg = message_core.get_message(session, message_id)
            return msg.to_dict() if msg is not None else None

    def mark_read(self, message_ids: Sequence[int]) -> int:
        with self._session() as session:
            return message_core.mark_messages_read(session, message_ids)

    def delete_message(self, message_id: int) -> Optional[dict]:
        with self._session() as session:
            msg = message_core.delete_message(session, message_id)
            return msg.to_dict() if msg is not None else None

    def set_online(self, username: str) -> bool:
        with self._session() as session:
            return user_core.set_online(session, username)

    def set_offline(self, username: str, seen_at: Optional[datetime] = None) -> bool:
        with self._session() as session:
            return user_core.set_offline(session, username, seen_at)
