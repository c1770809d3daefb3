from typing import Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from listing_chat.exceptions import PersistenceError
from listing_chat.models.api.messages import MessageResponse
from listing_chat.models.db.conversation_model import ConversationModel
from listing_chat.models.db.message_model import MessageModel
from listing_chat.repositories.base_repository import BaseRepository


class MessageRepository(BaseRepository[MessageModel, MessageResponse]):
    """Repository for message operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, MessageModel)

    async def append(self, message: MessageResponse) -> MessageResponse:
        """Persist a message and bump its conversation in one transaction.

        ``last_message_at`` and ``updated_at`` take the message's
        ``created_at``; a message older than the current ``last_message_at``
        is stored without moving the conversation backwards.
        """
        db_model = self._from_pydantic(message)
        self.db.add(db_model)

        try:
            await self.db.flush()
            await self.db.execute(
                update(ConversationModel)
                .where(
                    ConversationModel.id == message.conversation_id,
                    or_(
                        ConversationModel.last_message_at.is_(None),
                        ConversationModel.last_message_at <= message.created_at,
                    ),
                )
                .values(
                    last_message_at=message.created_at,
                    updated_at=message.created_at,
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise PersistenceError(operation="append_message") from exc

        await self._commit("append_message")
        return self._to_pydantic(db_model)

    async def list(
        self, conversation_id: UUID, page: int, page_size: int
    ) -> Tuple[List[MessageResponse], int]:
        """Return one page of messages, newest first, and the conversation total."""
        count_query = select(func.count(self.model_class.id)).where(
            self.model_class.conversation_id == conversation_id
        )
        total = (await self.db.execute(count_query)).scalar() or 0

        query = (
            select(self.model_class)
            .where(self.model_class.conversation_id == conversation_id)
            .order_by(self.model_class.created_at.desc(), self.model_class.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        db_models = result.scalars().all()
        return [self._to_pydantic(db_model) for db_model in db_models], total

    async def get_last_message(self, conversation_id: UUID) -> Optional[MessageResponse]:
        """Get the most recent message in a conversation."""
        query = (
            select(self.model_class)
            .where(self.model_class.conversation_id == conversation_id)
            .order_by(self.model_class.created_at.desc(), self.model_class.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        db_model = result.scalar_one_or_none()
        return self._to_pydantic(db_model) if db_model else None

    def _to_pydantic(self, db_model: Any) -> MessageResponse:
        """Convert SQLAlchemy MessageModel to Pydantic MessageResponse."""
        return MessageResponse(
            id=db_model.id,
            conversation_id=db_model.conversation_id,
            sender_id=db_model.sender_id,
            content=db_model.content,
            message_type=db_model.message_type,
            media_url=db_model.media_url,
            is_read=db_model.is_read,
            created_at=db_model.created_at,
        )

    def _from_pydantic(self, pydantic_model: MessageResponse) -> MessageModel:
        """Convert Pydantic MessageResponse to SQLAlchemy MessageModel."""
        return MessageModel(
            id=pydantic_model.id,
            conversation_id=pydantic_model.conversation_id,
            sender_id=pydantic_model.sender_id,
            content=pydantic_model.content,
            message_type=pydantic_model.message_type,
            media_url=pydantic_model.media_url,
            is_read=pydantic_model.is_read,
            created_at=pydantic_model.created_at,
        )
