import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from listing_chat.clients.base_notification_client import BaseNotificationClient
from listing_chat.exceptions import ForbiddenError, NotFoundError, ValidationError
from listing_chat.models.api.conversations import (
    ConversationResponse,
    ConversationSummary,
    CreateConversationRequest,
)
from listing_chat.models.api.devices import DeviceResponse, DeviceType
from listing_chat.models.api.messages import (
    ChatHistoryResponse,
    InboundMessageEvent,
    MessageResponse,
)
from listing_chat.models.api.participants import ParticipantResponse
from listing_chat.repositories.conversation_list_projector import (
    ConversationListProjector,
)
from listing_chat.repositories.conversation_repository import ConversationRepository
from listing_chat.repositories.device_repository import DeviceRepository
from listing_chat.repositories.message_repository import MessageRepository
from listing_chat.repositories.read_tracker import ReadTracker
from listing_chat.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

MAX_CONVERSATION_PAGE = 1000
MAX_HISTORY_PAGE_SIZE = 100


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class ChatService:
    """Entry point for conversation, message and read-receipt operations.

    HTTP routers and the real-time hub call this and nothing below it. Store
    and validation errors propagate unchanged; notification errors never do.
    """

    def __init__(
        self, db: AsyncSession, notification_client: Optional[BaseNotificationClient] = None
    ):
        self.db = db
        self.conversation_repo = ConversationRepository(db)
        self.message_repo = MessageRepository(db)
        self.read_tracker = ReadTracker(db)
        self.list_projector = ConversationListProjector(db)
        self.device_repo = DeviceRepository(db)
        self.dispatcher = NotificationDispatcher(notification_client)

    # --- Conversations ---

    async def start_conversation(
        self, request: CreateConversationRequest
    ) -> ConversationResponse:
        """Create the conversation for these participants and item, or return it."""
        # the listing owner is conventionally the first participant
        item_owner_id = request.item_owner_id
        if item_owner_id is None and request.participant_ids:
            item_owner_id = request.participant_ids[0]

        return await self.conversation_repo.create_or_get(
            participant_ids=request.participant_ids,
            item_id=request.item_id,
            item_title=request.item_title,
            item_owner_id=item_owner_id,
            metadata=request.metadata,
        )

    async def list_conversations(
        self, user_id: UUID, limit: int = 100, offset: int = 0
    ) -> List[ConversationSummary]:
        if limit <= 0 or limit > MAX_CONVERSATION_PAGE:
            raise ValidationError(
                f"Limit must be between 1 and {MAX_CONVERSATION_PAGE}", field="limit"
            )
        if offset < 0:
            raise ValidationError("Offset must be non-negative", field="offset")

        return await self.list_projector.list_for_user(user_id, limit, offset)

    async def get_participant_ids(self, conversation_id: UUID) -> List[UUID]:
        """Participant user ids, for the real-time hub's routing."""
        return await self.conversation_repo.get_participant_ids(conversation_id)

    # --- Messages ---

    async def handle_inbound_message(self, event: InboundMessageEvent) -> MessageResponse:
        """Persist a message event, then fan out notifications in the background.

        1. Check the conversation exists and the sender belongs to it
        2. Append the message (conversation timestamps move in the same commit)
        3. Schedule push delivery to the other participants
        """
        participant_ids = await self._require_member(
            event.conversation_id, event.sender_id
        )

        message = MessageResponse(
            id=uuid4(),
            conversation_id=event.conversation_id,
            sender_id=event.sender_id,
            content=event.content,
            message_type=event.message_type,
            media_url=event.media_url or None,
            is_read=False,
            created_at=_as_utc(event.timestamp),
        )
        saved = await self.message_repo.append(message)
        logger.info(
            "Stored message %s in conversation %s", saved.id, saved.conversation_id
        )

        self.dispatcher.schedule(saved, participant_ids)
        return saved

    async def get_chat_history(
        self,
        conversation_id: UUID,
        page: int = 1,
        page_size: int = 50,
        user_id: Optional[UUID] = None,
    ) -> ChatHistoryResponse:
        """Newest-first page of a conversation's messages."""
        if page < 1:
            raise ValidationError("Page must be at least 1", field="page")
        if page_size < 1 or page_size > MAX_HISTORY_PAGE_SIZE:
            raise ValidationError(
                f"Page size must be between 1 and {MAX_HISTORY_PAGE_SIZE}",
                field="page_size",
            )

        if user_id is not None:
            await self._require_member(conversation_id, user_id)

        messages, total = await self.message_repo.list(conversation_id, page, page_size)
        return ChatHistoryResponse(
            messages=messages, total_count=total, page=page, page_size=page_size
        )

    async def get_last_message(
        self, user_id: UUID, conversation_id: UUID
    ) -> Optional[MessageResponse]:
        """The newest message, or None for a conversation nobody has written in."""
        await self._require_member(conversation_id, user_id)
        return await self.message_repo.get_last_message(conversation_id)

    # --- Read receipts ---

    async def mark_read(
        self, user_id: UUID, conversation_id: UUID, message_id: str
    ) -> ParticipantResponse:
        """Mark everything from the other participants up to message_id as read."""
        try:
            cutoff_id = UUID(message_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                f"Invalid message id: {message_id!r}", field="message_id"
            ) from exc

        await self._require_member(conversation_id, user_id)
        return await self.read_tracker.mark_read(user_id, conversation_id, cutoff_id)

    async def get_unread_count(self, user_id: UUID, conversation_id: UUID) -> int:
        await self._require_member(conversation_id, user_id)
        return await self.read_tracker.get_unread_count(user_id, conversation_id)

    # --- Devices ---

    async def register_device(
        self, user_id: UUID, token: str, device_type: DeviceType
    ) -> DeviceResponse:
        return await self.device_repo.upsert(user_id, token, device_type)

    async def unregister_device(self, user_id: UUID, token: str) -> None:
        removed = await self.device_repo.remove(user_id, token)
        if not removed:
            raise NotFoundError("Device not registered", resource="device")

    async def list_devices(self, user_id: UUID) -> List[DeviceResponse]:
        return await self.device_repo.list_for_user(user_id)

    async def _require_member(self, conversation_id: UUID, user_id: UUID) -> List[UUID]:
        participant_ids = await self.conversation_repo.get_participant_ids(
            conversation_id
        )
        if not participant_ids:
            raise NotFoundError("Conversation not found", resource="conversation")
        if user_id not in participant_ids:
            raise ForbiddenError()
        return participant_ids
