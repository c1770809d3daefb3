import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, String, Uuid
from sqlalchemy.orm import relationship

from listing_chat.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationModel(Base):
    """SQLAlchemy model for conversations table."""

    __tablename__ = "conversations"
    __table_args__ = (
        Index("ix_conversations_activity", "last_message_at", "updated_at"),
        Index("ix_conversations_item_id", "item_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    item_id = Column(Uuid, nullable=True)
    item_title = Column(String(255), nullable=False, default="")
    item_owner_id = Column(Uuid, nullable=True)
    # "metadata" is reserved on declarative classes
    conversation_metadata = Column("metadata", JSON, nullable=False, default=dict)
    # sha256 of the sorted participant set plus the item id
    dedup_key = Column(String(64), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    participants = relationship(
        "ParticipantModel", back_populates="conversation", cascade="all, delete-orphan"
    )
    messages = relationship(
        "MessageModel", back_populates="conversation", cascade="all, delete-orphan"
    )
