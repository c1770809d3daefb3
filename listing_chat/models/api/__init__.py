# API models for request/response contracts
from .conversations import (
    ConversationMetadata,
    ConversationResponse,
    ConversationSummary,
    CounterpartSummary,
    CreateConversationRequest,
    LastMessagePreview,
)
from .devices import DeviceResponse, DeviceType, RegisterDeviceRequest
from .messages import (
    ChatHistoryResponse,
    InboundMessageEvent,
    MarkReadRequest,
    MessageResponse,
    MessageType,
    SendMessageRequest,
    UnreadCountResponse,
)
from .participants import ParticipantResponse

__all__ = [
    "ChatHistoryResponse",
    "ConversationMetadata",
    "ConversationResponse",
    "ConversationSummary",
    "CounterpartSummary",
    "CreateConversationRequest",
    "DeviceResponse",
    "DeviceType",
    "InboundMessageEvent",
    "LastMessagePreview",
    "MarkReadRequest",
    "MessageResponse",
    "MessageType",
    "ParticipantResponse",
    "RegisterDeviceRequest",
    "SendMessageRequest",
    "UnreadCountResponse",
]
