import logging
import os
from functools import lru_cache
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from listing_chat.clients.base_notification_client import BaseNotificationClient
from listing_chat.clients.push_gateway_client import PushGatewayClient
from listing_chat.database import AsyncSessionLocal, get_db
from listing_chat.services.chat_service import ChatService

logger = logging.getLogger(__name__)


async def get_current_user_id(
    x_user_id: UUID = Header(..., description="Authenticated user id set by the gateway"),
) -> UUID:
    return x_user_id


@lru_cache(maxsize=1)
def get_notification_client() -> Optional[BaseNotificationClient]:
    """Build the push client from the environment; None disables push."""
    base_url = os.getenv("PUSH_PROVIDER_URL")
    if not base_url:
        logger.warning("PUSH_PROVIDER_URL is not set, push notifications disabled")
        return None

    return PushGatewayClient(
        base_url=base_url,
        api_key=os.getenv("PUSH_PROVIDER_API_KEY", ""),
        session_factory=AsyncSessionLocal,
        timeout=float(os.getenv("PUSH_PROVIDER_TIMEOUT", "10")),
    )


async def get_chat_service(
    db: AsyncSession = Depends(get_db),
    notification_client: Optional[BaseNotificationClient] = Depends(
        get_notification_client
    ),
) -> ChatService:
    return ChatService(db, notification_client)
