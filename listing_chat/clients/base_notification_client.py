from abc import ABC, abstractmethod
from typing import Any, Dict, List
from uuid import UUID


class BaseNotificationClient(ABC):
    """Abstract base class for push notification providers."""

    @abstractmethod
    async def send_to_users(
        self, user_ids: List[UUID], title: str, body: str, data: Dict[str, str]
    ) -> Dict[str, Any]:
        """Attempt delivery to every device of the given users.

        Returns:
            Dict containing the raw provider response data.

        Raises:
            Any exception on delivery failure; callers treat the attempt as
            best-effort and never retry.
        """
