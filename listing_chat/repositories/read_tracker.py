import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from listing_chat.exceptions import NotFoundError, PersistenceError
from listing_chat.models.api.participants import ParticipantResponse
from listing_chat.models.db.message_model import MessageModel
from listing_chat.models.db.participant_model import ParticipantModel
from listing_chat.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ReadTracker(BaseRepository[ParticipantModel, ParticipantResponse]):
    """Applies read receipts and derives unread counts.

    A read receipt names a cutoff message: every message from the other
    participants up to and including the cutoff's ``created_at`` counts as
    read. Flag updates and the participant's cutoff pointer commit together.
    Messages are never flipped back to unread, and the pointer only moves
    forward, so a receipt for an older message changes nothing.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db, ParticipantModel)

    async def mark_read(
        self, user_id: UUID, conversation_id: UUID, cutoff_message_id: UUID
    ) -> ParticipantResponse:
        cutoff = (
            await self.db.execute(
                select(MessageModel.id, MessageModel.created_at).where(
                    MessageModel.id == cutoff_message_id,
                    MessageModel.conversation_id == conversation_id,
                )
            )
        ).one_or_none()
        if cutoff is None:
            raise NotFoundError("Message not found in conversation", resource="message")

        participant = await self._get_participant(conversation_id, user_id)
        if participant is None:
            raise NotFoundError("Participant not found", resource="participant")

        try:
            result = await self.db.execute(
                update(MessageModel)
                .where(
                    MessageModel.conversation_id == conversation_id,
                    MessageModel.sender_id != user_id,
                    MessageModel.created_at <= cutoff.created_at,
                    MessageModel.is_read.is_(False),
                )
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
            if await self._moves_forward(participant.last_read_message_id, cutoff):
                participant.last_read_message_id = cutoff.id
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise PersistenceError(operation="mark_read") from exc

        await self._commit("mark_read")
        logger.debug(
            "User %s read conversation %s up to %s (%s messages flipped)",
            user_id,
            conversation_id,
            cutoff.id,
            result.rowcount,
        )
        return self._to_pydantic(participant)

    async def get_unread_count(self, user_id: UUID, conversation_id: UUID) -> int:
        query = select(func.count(MessageModel.id)).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.sender_id != user_id,
            MessageModel.is_read.is_(False),
        )
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def _get_participant(
        self, conversation_id: UUID, user_id: UUID
    ) -> Optional[ParticipantModel]:
        query = select(ParticipantModel).where(
            ParticipantModel.conversation_id == conversation_id,
            ParticipantModel.user_id == user_id,
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _moves_forward(self, current_id: Optional[UUID], cutoff: Any) -> bool:
        if current_id is None or current_id == cutoff.id:
            return current_id is None
        current = (
            await self.db.execute(
                select(MessageModel.id, MessageModel.created_at).where(
                    MessageModel.id == current_id
                )
            )
        ).one_or_none()
        if current is None:
            return True
        return (cutoff.created_at, cutoff.id) > (current.created_at, current.id)

    def _to_pydantic(self, db_model: Any) -> ParticipantResponse:
        return ParticipantResponse(
            conversation_id=db_model.conversation_id,
            user_id=db_model.user_id,
            last_read_message_id=db_model.last_read_message_id,
            joined_at=db_model.joined_at,
        )
