# Repository classes for database operations
from .base_repository import BaseRepository
from .conversation_list_projector import ConversationListProjector
from .conversation_repository import ConversationRepository, build_dedup_key
from .device_repository import DeviceRepository
from .message_repository import MessageRepository
from .read_tracker import ReadTracker

__all__ = [
    "BaseRepository",
    "ConversationListProjector",
    "ConversationRepository",
    "DeviceRepository",
    "MessageRepository",
    "ReadTracker",
    "build_dedup_key",
]
