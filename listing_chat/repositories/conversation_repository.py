import hashlib
import logging
from typing import Any, Iterable, List, Optional
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from listing_chat.exceptions import ConflictError, PersistenceError, ValidationError
from listing_chat.models.api.conversations import (
    ConversationMetadata,
    ConversationResponse,
)
from listing_chat.models.db.conversation_model import ConversationModel, utcnow
from listing_chat.models.db.participant_model import ParticipantModel
from listing_chat.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)


def build_dedup_key(participant_ids: Iterable[UUID], item_id: Optional[UUID]) -> str:
    """Canonical key for a (participant set, item) pair.

    Order and repetition of participants do not matter; a missing item is a
    value of its own, so it only matches other conversations without an item.
    """
    members = ",".join(sorted({str(user_id) for user_id in participant_ids}))
    canonical = f"{members}|{item_id or ''}"
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ConversationRepository(BaseRepository[ConversationModel, ConversationResponse]):
    """Repository for conversation operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, ConversationModel)

    async def get_by_id(self, id: UUID) -> Optional[ConversationResponse]:
        """Get a conversation by ID with participants loaded."""
        query = (
            select(self.model_class)
            .where(self.model_class.id == id)
            .options(selectinload(self.model_class.participants))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        db_model = result.scalar_one_or_none()
        return self._to_pydantic(db_model) if db_model else None

    async def get_by_dedup_key(self, dedup_key: str) -> Optional[ConversationResponse]:
        query = (
            select(self.model_class)
            .where(self.model_class.dedup_key == dedup_key)
            .options(selectinload(self.model_class.participants))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        db_model = result.scalar_one_or_none()
        return self._to_pydantic(db_model) if db_model else None

    async def create_or_get(
        self,
        participant_ids: List[UUID],
        item_id: Optional[UUID],
        item_title: str,
        item_owner_id: Optional[UUID],
        metadata: ConversationMetadata,
    ) -> ConversationResponse:
        """Return the conversation for these participants and item, creating it once.

        The conversation row and its participant rows commit together. When a
        concurrent caller commits the same key first, the unique constraint on
        ``dedup_key`` rejects this insert and the winner's row is returned.
        """
        members = list(dict.fromkeys(participant_ids))
        if len(members) < 2:
            raise ValidationError(
                "A conversation needs at least two distinct participants",
                field="participant_ids",
            )

        dedup_key = build_dedup_key(members, item_id)
        existing = await self.get_by_dedup_key(dedup_key)
        if existing:
            return existing

        now = utcnow()
        conversation = ConversationModel(
            id=uuid4(),
            item_id=item_id,
            item_title=item_title,
            item_owner_id=item_owner_id,
            conversation_metadata=metadata.model_dump(mode="json"),
            dedup_key=dedup_key,
            created_at=now,
            updated_at=now,
            participants=[
                ParticipantModel(user_id=user_id, joined_at=now) for user_id in members
            ],
        )
        self.db.add(conversation)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info("Lost conversation create race for key %s, re-reading", dedup_key)
            winner = await self.get_by_dedup_key(dedup_key)
            if winner is None:
                raise ConflictError(
                    "Conversation was created concurrently but cannot be read",
                    resource="conversation",
                )
            return winner
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Creating conversation %s failed: %s", dedup_key, exc)
            raise PersistenceError(operation="create_conversation") from exc

        logger.info(
            "Created conversation %s with %d participants", conversation.id, len(members)
        )
        created = await self.get_by_id(conversation.id)
        if created is None:
            raise PersistenceError(operation="create_conversation")
        return created

    async def get_participant_ids(self, conversation_id: UUID) -> List[UUID]:
        """Return the user ids attached to a conversation."""
        query = select(ParticipantModel.user_id).where(
            ParticipantModel.conversation_id == conversation_id
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    def _to_pydantic(self, db_model: Any) -> ConversationResponse:
        """Convert SQLAlchemy ConversationModel to Pydantic ConversationResponse."""
        return ConversationResponse(
            id=db_model.id,
            item_id=db_model.item_id,
            item_title=db_model.item_title,
            item_owner_id=db_model.item_owner_id,
            metadata=ConversationMetadata.model_validate(
                db_model.conversation_metadata or {}
            ),
            participant_ids=[p.user_id for p in db_model.participants],
            created_at=db_model.created_at,
            updated_at=db_model.updated_at,
            last_message_at=db_model.last_message_at,
        )
