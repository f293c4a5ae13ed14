from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text

from app.core.message_logic import utcnow
from app.models.base import Base


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)

    sender = Column(String(255), nullable=False, index=True)
    receiver = Column(String(255), nullable=False, index=True)
    text = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Only ever flips False -> True
    read = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_messages_pair_created", "sender", "receiver", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender": self.sender,
            "receiver": self.receiver,
            "text": self.text,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "read": bool(self.read),
        }
