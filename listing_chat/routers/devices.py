from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from listing_chat.dependencies import get_chat_service, get_current_user_id
from listing_chat.models.api.devices import DeviceResponse, RegisterDeviceRequest
from listing_chat.services.chat_service import ChatService

router = APIRouter()


@router.get("", response_model=List[DeviceResponse])
async def list_devices(
    user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> List[DeviceResponse]:
    return await service.list_devices(user_id)


@router.post("", response_model=DeviceResponse)
async def register_device(
    request: RegisterDeviceRequest,
    user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> DeviceResponse:
    """Register a push token; registering it again refreshes the device type."""
    return await service.register_device(user_id, request.token, request.device_type)


@router.delete("/{token}", status_code=status.HTTP_204_NO_CONTENT)
async def unregister_device(
    token: str,
    user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> Response:
    """Remove a push token."""
    await service.unregister_device(user_id, token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
