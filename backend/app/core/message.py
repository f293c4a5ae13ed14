from typing import Dict, List, Optional, Sequence

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from app.models.message import Message


def store_message(db: Session, sender: str, receiver: str, text: str) -> Message:
    """Persist a new unread message and return it with its id assigned"""
    message = Message(sender=sender, receiver=receiver, text=text, read=False)

    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def get_message(db: Session, message_id: int) -> Optional[Message]:
    return db.get(Message, message_id)


def fetch_conversation(db: Session, user_a: str, user_b: str) -> List[Message]:
    """All messages exchanged between two users, oldest first"""
    return (
        db.query(Message)
        .filter(
            or_(
                and_(Message.sender == user_a, Message.receiver == user_b),
                and_(Message.sender == user_b, Message.receiver == user_a),
            )
        )
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )


def mark_messages_read(db: Session, message_ids: Sequence[int]) -> int:
    """Flip read=True for the given ids. Already-read rows are left alone."""
    if not message_ids:
        return 0

    updated = (
        db.query(Message)
        .filter(Message.id.in_(list(message_ids)), Message.read.is_(False))
        .update({Message.read: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def delete_message(db: Session, message_id: int) -> Optional[Message]:
    """
    Hard-delete a message.
    Returns the deleted row (detached) so callers know both participants,
    or None when the id does not exist.
    """
    message = db.get(Message, message_id)
    if message is None:
        return None

    db.delete(message)
    db.commit()
    return message


def unread_counts(db: Session, receiver: str) -> Dict[str, int]:
    """Unread message count per sender for one receiver"""
    rows = (
        db.query(Message.sender, func.count(Message.id))
        .filter(Message.receiver == receiver, Message.read.is_(False))
        .group_by(Message.sender)
        .all()
    )
    return {sender: count for sender, count in rows}
