from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from listing_chat.dependencies import get_chat_service, get_current_user_id
from listing_chat.exceptions import ForbiddenError
from listing_chat.models.api.conversations import (
    ConversationResponse,
    ConversationSummary,
    CreateConversationRequest,
)
from listing_chat.models.api.messages import (
    ChatHistoryResponse,
    InboundMessageEvent,
    MarkReadRequest,
    MessageResponse,
    SendMessageRequest,
    UnreadCountResponse,
)
from listing_chat.models.api.participants import ParticipantResponse
from listing_chat.services.chat_service import ChatService

router = APIRouter()


@router.post("", response_model=ConversationResponse)
async def start_conversation(
    request: CreateConversationRequest,
    user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> ConversationResponse:
    """
    Start a conversation about an item, or return the existing one.

    The caller must be one of the participants. Repeating the call with the
    same participants and item returns the same conversation.
    """
    if user_id not in request.participant_ids:
        raise ForbiddenError("Caller must be a participant of the conversation")
    return await service.start_conversation(request)


@router.get("", response_model=List[ConversationSummary])
async def list_conversations(
    limit: int = Query(
        100, description="Maximum number of conversations to return", ge=1, le=1000
    ),
    offset: int = Query(0, description="Number of conversations to skip", ge=0),
    user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> List[ConversationSummary]:
    """
    List the caller's conversations, most recently active first.

    Each entry carries the other participant, the last message and the
    caller's unread count.
    """
    return await service.list_conversations(user_id, limit=limit, offset=offset)


@router.get("/{conversation_id}/messages", response_model=ChatHistoryResponse)
async def get_chat_history(
    conversation_id: UUID,
    page: int = Query(1, description="1-based page number", ge=1),
    page_size: int = Query(50, description="Messages per page", ge=1, le=100),
    user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> ChatHistoryResponse:
    """Get a page of the conversation's messages, newest first."""
    return await service.get_chat_history(
        conversation_id, page=page, page_size=page_size, user_id=user_id
    )


@router.get(
    "/{conversation_id}/messages/latest", response_model=Optional[MessageResponse]
)
async def get_last_message(
    conversation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> Optional[MessageResponse]:
    """Get the newest message, or null when the conversation has none."""
    return await service.get_last_message(user_id, conversation_id)


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: UUID,
    request: SendMessageRequest,
    user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> MessageResponse:
    """Send a message without the real-time connection."""
    event = InboundMessageEvent(
        conversation_id=conversation_id,
        sender_id=user_id,
        content=request.content,
        message_type=request.message_type,
        media_url=request.media_url,
    )
    return await service.handle_inbound_message(event)


@router.post("/{conversation_id}/read", response_model=ParticipantResponse)
async def mark_read(
    conversation_id: UUID,
    request: MarkReadRequest,
    user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> ParticipantResponse:
    """Mark the other participants' messages read up to the given message."""
    return await service.mark_read(user_id, conversation_id, request.message_id)


@router.get("/{conversation_id}/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    conversation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> UnreadCountResponse:
    count = await service.get_unread_count(user_id, conversation_id)
    return UnreadCountResponse(conversation_id=conversation_id, unread_count=count)
