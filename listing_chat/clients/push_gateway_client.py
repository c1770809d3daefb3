import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from listing_chat.clients.base_notification_client import BaseNotificationClient
from listing_chat.repositories.device_repository import DeviceRepository

logger = logging.getLogger(__name__)


class PushGatewayClient(BaseNotificationClient):
    """Push gateway client (FCM-style multicast) using httpx.

    Device tokens are resolved with a session of its own because delivery
    runs after the request that produced the message has finished.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session_factory = session_factory
        self.timeout = timeout
        self.transport = transport

    async def send_to_users(
        self, user_ids: List[UUID], title: str, body: str, data: Dict[str, str]
    ) -> Dict[str, Any]:
        """Send one multicast request covering every registered device."""
        async with self.session_factory() as session:
            tokens_by_user = await DeviceRepository(session).get_tokens_for_users(
                user_ids
            )

        tokens = [token for tokens in tokens_by_user.values() for token in tokens]
        if not tokens:
            logger.debug("No registered devices for users %s", user_ids)
            return {"success_count": 0, "failure_count": 0}

        payload = {
            "registration_ids": tokens,
            "notification": {"title": title, "body": body},
            "data": data,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport
        ) as client:
            response = await client.post(
                f"{self.base_url}/notifications", json=payload, headers=headers
            )
            response.raise_for_status()
            result: Dict[str, Any] = response.json()

        logger.info(
            "Push sent to %d devices of %d users", len(tokens), len(tokens_by_user)
        )
        return result
