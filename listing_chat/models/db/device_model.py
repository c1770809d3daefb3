import uuid

from sqlalchemy import Column, DateTime, String, UniqueConstraint, Uuid

from listing_chat.database import Base
from listing_chat.models.db.conversation_model import utcnow


class DeviceModel(Base):
    """SQLAlchemy model for user_devices table (push delivery tokens)."""

    __tablename__ = "user_devices"
    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_user_devices_user_token"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    token = Column(String(512), nullable=False)
    device_type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
