import enum
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MessageType(str, enum.Enum):
    """Kinds of chat message; non-text kinds carry a media_url."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class InboundMessageEvent(BaseModel):
    """A message event as produced by the real-time transport."""

    conversation_id: UUID
    sender_id: UUID
    content: str = Field(..., max_length=10000)
    message_type: MessageType = MessageType.TEXT
    media_url: Optional[str] = Field(default=None, max_length=1024)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SendMessageRequest(BaseModel):
    """Request model for sending a message over HTTP."""

    content: str = Field(..., max_length=10000, description="Message content")
    message_type: MessageType = Field(default=MessageType.TEXT)
    media_url: Optional[str] = Field(
        default=None, max_length=1024, description="URL of the attached media"
    )


class MessageResponse(BaseModel):
    """Response model for message data."""

    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    message_type: MessageType
    media_url: Optional[str] = None
    is_read: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatHistoryResponse(BaseModel):
    """One page of a conversation's history, newest first."""

    messages: List[MessageResponse]
    total_count: int
    page: int
    page_size: int


class MarkReadRequest(BaseModel):
    # kept as a string so a malformed id surfaces as a chat ValidationError
    message_id: str = Field(..., description="Newest message the user has seen")


class UnreadCountResponse(BaseModel):
    conversation_id: UUID
    unread_count: int
