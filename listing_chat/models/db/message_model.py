import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from listing_chat.database import Base
from listing_chat.models.api.messages import MessageType
from listing_chat.models.db.conversation_model import utcnow


class MessageModel(Base):
    """SQLAlchemy model for messages table.

    Rows are immutable once written apart from ``is_read``.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(Uuid, nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(
        Enum(
            MessageType,
            name="message_type",
            native_enum=False,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=MessageType.TEXT,
    )
    media_url = Column(String(1024), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    conversation = relationship("ConversationModel", back_populates="messages")
