# app/realtime/events.py

"""
Wire format for the realtime channel.

Every frame, in both directions, is a JSON object:

    {"event": "<name>", "data": {...}}

Inbound payloads are validated with the models below. A payload that fails
validation is dropped without a reply.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# =========================
# CLIENT -> SERVER
# =========================

ANNOUNCE = "announce"
SEND_MESSAGE = "sendMessage"
TYPING = "typing"
STOP_TYPING = "stopTyping"
MARK_READ = "markRead"
DELETE_MESSAGE = "deleteMessage"

# =========================
# SERVER -> CLIENT
# =========================

PRESENCE_CHANGED = "presenceChanged"
MESSAGE_RECEIVED = "messageReceived"
MESSAGES_READ = "messagesRead"
MESSAGE_DELETED = "messageDeleted"
ERROR = "error"


class _Inbound(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AnnouncePayload(_Inbound):
    username: str = Field(..., min_length=1)


class SendMessagePayload(_Inbound):
    sender: str = Field(..., min_length=1)
    receiver: str = Field(..., min_length=1)
    text: str
    # Opaque key chosen by the client, echoed back untouched
    clientId: Optional[str] = None


class TypingPayload(_Inbound):
    sender: str = Field(..., min_length=1)
    receiver: str = Field(..., min_length=1)


class MarkReadPayload(_Inbound):
    messageIds: List[Union[int, str]]
    sender: str = Field(..., min_length=1)
    receiver: str = Field(..., min_length=1)


class DeleteMessagePayload(_Inbound):
    messageId: Union[int, str]


INBOUND_SCHEMAS = {
    ANNOUNCE: AnnouncePayload,
    SEND_MESSAGE: SendMessagePayload,
    TYPING: TypingPayload,
    STOP_TYPING: TypingPayload,
    MARK_READ: MarkReadPayload,
    DELETE_MESSAGE: DeleteMessagePayload,
}


def frame(event: str, data: dict) -> dict:
    return {"event": event, "data": data}
