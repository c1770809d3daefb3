import logging
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from listing_chat.exceptions import ConflictError
from listing_chat.models.api.devices import DeviceResponse, DeviceType
from listing_chat.models.db.conversation_model import utcnow
from listing_chat.models.db.device_model import DeviceModel
from listing_chat.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class DeviceRepository(BaseRepository[DeviceModel, DeviceResponse]):
    """Repository for push delivery tokens, one row per (user, token)."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, DeviceModel)

    async def upsert(
        self, user_id: UUID, token: str, device_type: DeviceType
    ) -> DeviceResponse:
        """Register a token, refreshing the existing row on re-registration."""
        device = await self._get(user_id, token)
        now = utcnow()
        if device:
            device.device_type = device_type.value
            device.updated_at = now
        else:
            device = DeviceModel(
                user_id=user_id,
                token=token,
                device_type=device_type.value,
                created_at=now,
                updated_at=now,
            )
            self.db.add(device)

        try:
            await self.db.commit()
        except IntegrityError:
            # same token registered concurrently; refresh the row that won
            await self.db.rollback()
            device = await self._get(user_id, token)
            if device is None:
                raise ConflictError("Device registration conflict", resource="device")
            device.device_type = device_type.value
            device.updated_at = utcnow()
            await self._commit("register_device")

        return self._to_pydantic(device)

    async def remove(self, user_id: UUID, token: str) -> bool:
        """Delete a token; returns False when it was not registered."""
        result = await self.db.execute(
            delete(DeviceModel).where(
                DeviceModel.user_id == user_id, DeviceModel.token == token
            )
        )
        await self._commit("unregister_device")
        return bool(result.rowcount)

    async def list_for_user(self, user_id: UUID) -> List[DeviceResponse]:
        query = select(DeviceModel).where(DeviceModel.user_id == user_id)
        result = await self.db.execute(query)
        return [self._to_pydantic(db_model) for db_model in result.scalars().all()]

    async def get_tokens_for_users(self, user_ids: List[UUID]) -> Dict[UUID, List[str]]:
        """Map each user with at least one device to their tokens."""
        if not user_ids:
            return {}
        query = select(DeviceModel.user_id, DeviceModel.token).where(
            DeviceModel.user_id.in_(user_ids)
        )
        result = await self.db.execute(query)
        tokens: Dict[UUID, List[str]] = {}
        for user_id, token in result.all():
            tokens.setdefault(user_id, []).append(token)
        return tokens

    async def _get(self, user_id: UUID, token: str) -> Any:
        query = select(DeviceModel).where(
            DeviceModel.user_id == user_id, DeviceModel.token == token
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    def _to_pydantic(self, db_model: Any) -> DeviceResponse:
        return DeviceResponse(
            id=db_model.id,
            user_id=db_model.user_id,
            token=db_model.token,
            device_type=db_model.device_type,
            created_at=db_model.created_at,
            updated_at=db_model.updated_at,
        )
