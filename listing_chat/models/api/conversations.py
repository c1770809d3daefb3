from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from listing_chat.models.api.messages import MessageType

METADATA_SCHEMA_VERSION = 1


class ConversationMetadata(BaseModel):
    """Listing context captured when a conversation is started.

    Only the keys below are accepted; adding one means bumping
    ``schema_version``.
    """

    schema_version: Literal[1] = METADATA_SCHEMA_VERSION
    source: Optional[str] = Field(
        default=None, max_length=50, description="Where the chat was started"
    )
    listing_price: Optional[float] = Field(default=None, ge=0)
    listing_currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    listing_image_url: Optional[str] = Field(default=None, max_length=1024)

    model_config = ConfigDict(extra="forbid")


class CreateConversationRequest(BaseModel):
    """Request model for starting (or resuming) a conversation."""

    participant_ids: List[UUID] = Field(..., min_length=2)
    item_id: Optional[UUID] = None
    item_title: str = Field(default="", max_length=255)
    item_owner_id: Optional[UUID] = Field(
        default=None, description="Defaults to the first participant"
    )
    metadata: ConversationMetadata = Field(default_factory=ConversationMetadata)


class ConversationResponse(BaseModel):
    """Response model for conversation data."""

    id: UUID
    item_id: Optional[UUID] = None
    item_title: str
    item_owner_id: Optional[UUID] = None
    metadata: ConversationMetadata
    participant_ids: List[UUID]
    created_at: datetime
    updated_at: datetime
    last_message_at: Optional[datetime] = None


class CounterpartSummary(BaseModel):
    user_id: UUID
    full_name: str = ""
    avatar_url: Optional[str] = None


class LastMessagePreview(BaseModel):
    sender_id: UUID
    content: str
    message_type: MessageType
    created_at: datetime


class ConversationSummary(BaseModel):
    """One row of a user's conversation list."""

    id: UUID
    item_id: Optional[UUID] = None
    item_title: str
    other_participant: CounterpartSummary
    last_message: Optional[LastMessagePreview] = None
    unread_count: int
    last_message_at: Optional[datetime] = None
    updated_at: datetime
