import asyncio
import logging
from typing import Dict, List, Optional, Set
from uuid import UUID

from listing_chat.clients.base_notification_client import BaseNotificationClient
from listing_chat.models.api.messages import MessageResponse

logger = logging.getLogger(__name__)

NEW_MESSAGE_TITLE = "New Message"
NEW_MESSAGE_EVENT = "chat_message"
MAX_BODY_LENGTH = 100
ELLIPSIS = "..."

# Strong references to in-flight dispatch tasks; the event loop keeps only weak ones
_pending_tasks: Set["asyncio.Task[None]"] = set()


def build_body(content: str) -> str:
    """Shorten message content to a push body of at most 100 characters.

    Slices by code point, so multi-byte characters are never split.
    """
    if len(content) <= MAX_BODY_LENGTH:
        return content
    return content[: MAX_BODY_LENGTH - len(ELLIPSIS)] + ELLIPSIS


def select_recipients(participant_ids: List[UUID], sender_id: UUID) -> List[UUID]:
    return [user_id for user_id in participant_ids if user_id != sender_id]


class NotificationDispatcher:
    """Fan-out of new-message notifications to everyone but the sender.

    Whether a recipient is online is the provider's business. Delivery is
    best-effort: failures are logged and never reach the message write path.
    """

    def __init__(self, client: Optional[BaseNotificationClient]):
        self.client = client

    def build_payload(self, message: MessageResponse) -> Dict[str, str]:
        return {
            "conversation_id": str(message.conversation_id),
            "sender_id": str(message.sender_id),
            "type": NEW_MESSAGE_EVENT,
        }

    async def dispatch(self, message: MessageResponse, participant_ids: List[UUID]) -> None:
        if self.client is None:
            logger.info("Notification client not configured, skipping push")
            return

        recipients = select_recipients(participant_ids, message.sender_id)
        if not recipients:
            return

        try:
            await self.client.send_to_users(
                recipients,
                NEW_MESSAGE_TITLE,
                build_body(message.content),
                self.build_payload(message),
            )
        except Exception:
            logger.exception(
                "Failed to send push notifications for message %s", message.id
            )

    def schedule(
        self, message: MessageResponse, participant_ids: List[UUID]
    ) -> "asyncio.Task[None]":
        """Run dispatch in the background and return the task."""
        task = asyncio.create_task(self.dispatch(message, list(participant_ids)))
        _pending_tasks.add(task)
        task.add_done_callback(_pending_tasks.discard)
        return task
