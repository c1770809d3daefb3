from sqlalchemy import Column, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship

from listing_chat.database import Base
from listing_chat.models.db.conversation_model import utcnow


class ParticipantModel(Base):
    """SQLAlchemy model for conversation_participants table.

    The (conversation_id, user_id) primary key rules out duplicate members.
    """

    __tablename__ = "conversation_participants"
    __table_args__ = (Index("ix_conversation_participants_user_id", "user_id"),)

    conversation_id = Column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(Uuid, primary_key=True)
    last_read_message_id = Column(
        Uuid, ForeignKey("messages.id", ondelete="SET NULL"), nullable=True
    )
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    conversation = relationship("ConversationModel", back_populates="participants")
