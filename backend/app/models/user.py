# app/models/user.py

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.core.message_logic import utcnow
from app.models.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Google e-mail; stable identity used everywhere else
    username = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    avatar = Column(String(1024), nullable=True)

    # Cache of presence membership, written by the event router
    online = Column(Boolean, nullable=False, default=False)
    last_seen = Column(DateTime(timezone=True), nullable=True, default=None)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "name": self.name,
            "avatar": self.avatar,
            "online": bool(self.online),
            "lastSeen": self.last_seen.isoformat() if self.last_seen else None,
        }
