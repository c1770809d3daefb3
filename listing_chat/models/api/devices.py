import enum
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DeviceType(str, enum.Enum):
    ANDROID = "android"
    IOS = "ios"
    WEB = "web"


class RegisterDeviceRequest(BaseModel):
    """Request model for registering a push token."""

    token: str = Field(..., min_length=1, max_length=512)
    device_type: DeviceType


class DeviceResponse(BaseModel):
    id: UUID
    user_id: UUID
    token: str
    device_type: DeviceType
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
