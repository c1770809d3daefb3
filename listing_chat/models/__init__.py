# Export all models
from .api import (
    ChatHistoryResponse,
    ConversationMetadata,
    ConversationResponse,
    ConversationSummary,
    CreateConversationRequest,
    DeviceResponse,
    InboundMessageEvent,
    MessageResponse,
    MessageType,
    ParticipantResponse,
)
from .db import (
    ConversationModel,
    DeviceModel,
    MessageModel,
    ParticipantModel,
    UserModel,
)

__all__ = [
    # API models
    "ChatHistoryResponse",
    "ConversationMetadata",
    "ConversationResponse",
    "ConversationSummary",
    "CreateConversationRequest",
    "DeviceResponse",
    "InboundMessageEvent",
    "MessageResponse",
    "MessageType",
    "ParticipantResponse",
    # DB models
    "ConversationModel",
    "DeviceModel",
    "MessageModel",
    "ParticipantModel",
    "UserModel",
]
