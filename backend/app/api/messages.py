import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_current_user, get_event_router
from app.core.message import fetch_conversation, get_message, store_message, unread_counts
from app.core.message_logic import clean_text
from app.core.user import list_other_users
from app.infra.postgres import get_db
from app.models.user import User
from app.realtime.router import DeleteOutcome, EventRouter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/messages")


class SendMessageSchema(BaseModel):
    receiver: str
    text: str


@router.get("/contacts/list")
def list_contacts(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Everyone else, with the number of their messages I have not read yet"""
    try:
        counts = unread_counts(db, user.username)
        contacts = list_other_users(db, user.username)
    except SQLAlchemyError:
        logger.exception("Contacts lookup failed for %s", user.username)
        raise HTTPException(status_code=500, detail="Failed to load contacts")

    return [dict(c.to_dict(), unread=counts.get(c.username, 0)) for c in contacts]


@router.get("/{username}")
def conversation(username: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        messages = fetch_conversation(db, user.username, username)
    except SQLAlchemyError:
        logger.exception("History lookup failed for %s <-> %s", user.username, username)
        raise HTTPException(status_code=500, detail="Failed to load messages")

    return [m.to_dict() for m in messages]


@router.post("")
async def send_message(
    payload: SendMessageSchema,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    event_router: EventRouter = Depends(get_event_router),
):
    text = clean_text(payload.text)
    if text is None or not payload.receiver:
        raise HTTPException(status_code=400, detail="Missing receiver or text")

    try:
        saved = await run_in_threadpool(
            lambda: store_message(db, user.username, payload.receiver, text).to_dict()
        )
    except SQLAlchemyError:
        logger.exception("Failed to store message %s -> %s", user.username, payload.receiver)
        raise HTTPException(status_code=500, detail="Message could not be saved")

    event_router.publish_message(saved)
    return saved


@router.delete("/{message_id}")
async def delete_message(
    message_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    event_router: EventRouter = Depends(get_event_router),
):
    message = await run_in_threadpool(get_message, db, message_id)
    if message is None:
        raise HTTPException(status_code=404, detail="Message not found")
    if user.username not in (message.sender, message.receiver):
        raise HTTPException(status_code=403, detail="Not a participant of this message")

    # The router deletes in its own session
    db.close()

    outcome = await event_router.delete_message(message_id)
    if outcome is DeleteOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Message not found")
    if outcome is DeleteOutcome.FAILED:
        raise HTTPException(status_code=500, detail="Server error")

    return {"success": True, "id": message_id}
