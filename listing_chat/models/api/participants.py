from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ParticipantResponse(BaseModel):
    """A user's membership in a conversation, with their read cutoff."""

    conversation_id: UUID
    user_id: UUID
    last_read_message_id: Optional[UUID] = None
    joined_at: datetime

    model_config = ConfigDict(from_attributes=True)
