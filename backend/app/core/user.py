# app/core/user.py

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.message_logic import utcnow
from app.models.user import User


def upsert_user(db: Session, username: str, name: Optional[str], avatar: Optional[str]) -> User:
    """Create the user on first login, refresh name/avatar afterwards"""
    user = db.query(User).filter(User.username == username).first()
    if user:
        if name:
            user.name = name
        if avatar:
            user.avatar = avatar
    else:
        user = User(username=username, name=name, avatar=avatar)
        db.add(user)

    db.commit()
    db.refresh(user)
    return user


def get_user(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def list_other_users(db: Session, username: str) -> List[User]:
    """Every user except the given one, ordered by username"""
    return (
        db.query(User)
        .filter(User.username != username)
        .order_by(User.username.asc())
        .all()
    )


def set_online(db: Session, username: str) -> bool:
    """Mark user online. Returns False when no such user exists."""
    updated = (
        db.query(User)
        .filter(User.username == username)
        .update({User.online: True}, synchronize_session=False)
    )
    db.commit()
    return updated > 0


def set_offline(db: Session, username: str, seen_at: Optional[datetime] = None) -> bool:
    """Mark user offline and stamp last_seen"""
    updated = (
        db.query(User)
        .filter(User.username == username)
        .update(
            {User.online: False, User.last_seen: seen_at or utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated > 0
