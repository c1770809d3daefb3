# SQLAlchemy database models
from .conversation_model import ConversationModel
from .device_model import DeviceModel
from .message_model import MessageModel
from .participant_model import ParticipantModel
from .user_model import UserModel

__all__ = [
    "ConversationModel",
    "DeviceModel",
    "MessageModel",
    "ParticipantModel",
    "UserModel",
]
