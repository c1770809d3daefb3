"""Single-statement projection of a user's conversation list."""

from typing import Any, List
from uuid import UUID

from sqlalchemy import and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import aliased

from listing_chat.models.api.conversations import (
    ConversationSummary,
    CounterpartSummary,
    LastMessagePreview,
)
from listing_chat.models.db.conversation_model import ConversationModel
from listing_chat.models.db.message_model import MessageModel
from listing_chat.models.db.participant_model import ParticipantModel
from listing_chat.models.db.user_model import UserModel


class ConversationListProjector:
    """Builds conversation summaries (counterpart, last message, unread count).

    Everything comes back from one SELECT so a page of N conversations costs
    one round trip. Each conversation is assumed to have exactly one other
    participant; a conversation with more yields one row per counterpart.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_user(
        self, user_id: UUID, limit: int = 100, offset: int = 0
    ) -> List[ConversationSummary]:
        me = aliased(ParticipantModel, name="me")
        other = aliased(ParticipantModel, name="other")

        my_conversations = select(ParticipantModel.conversation_id).where(
            ParticipantModel.user_id == user_id
        )
        ranked = (
            select(
                MessageModel.conversation_id,
                MessageModel.sender_id,
                MessageModel.content,
                MessageModel.message_type,
                MessageModel.created_at,
                func.row_number()
                .over(
                    partition_by=MessageModel.conversation_id,
                    order_by=(MessageModel.created_at.desc(), MessageModel.id.desc()),
                )
                .label("position"),
            )
            .where(MessageModel.conversation_id.in_(my_conversations))
            .subquery("ranked_messages")
        )
        unread_count = (
            select(func.count(MessageModel.id))
            .where(
                MessageModel.conversation_id == ConversationModel.id,
                MessageModel.sender_id != user_id,
                MessageModel.is_read.is_(False),
            )
            .correlate(ConversationModel)
            .scalar_subquery()
        )
        activity = func.coalesce(
            ConversationModel.last_message_at, ConversationModel.updated_at
        )

        query = (
            select(
                ConversationModel.id,
                ConversationModel.item_id,
                ConversationModel.item_title,
                ConversationModel.last_message_at,
                ConversationModel.updated_at,
                other.user_id.label("other_user_id"),
                UserModel.full_name.label("other_user_name"),
                UserModel.profile_photo_url.label("other_user_avatar"),
                ranked.c.sender_id.label("last_message_sender_id"),
                ranked.c.content.label("last_message_content"),
                ranked.c.message_type.label("last_message_type"),
                ranked.c.created_at.label("last_message_time"),
                unread_count.label("unread_count"),
            )
            .select_from(ConversationModel)
            .join(
                me,
                and_(me.conversation_id == ConversationModel.id, me.user_id == user_id),
            )
            .join(
                other,
                and_(
                    other.conversation_id == ConversationModel.id,
                    other.user_id != user_id,
                ),
            )
            .outerjoin(UserModel, UserModel.id == other.user_id)
            .outerjoin(
                ranked,
                and_(
                    ranked.c.conversation_id == ConversationModel.id,
                    ranked.c.position == 1,
                ),
            )
            .order_by(activity.desc(), ConversationModel.id.desc())
            .limit(limit)
            .offset(offset)
        )

        result = await self.db.execute(query)
        return [self._to_summary(row) for row in result.mappings().all()]

    def _to_summary(self, row: Any) -> ConversationSummary:
        last_message = None
        if row["last_message_sender_id"] is not None:
            last_message = LastMessagePreview(
                sender_id=row["last_message_sender_id"],
                content=row["last_message_content"],
                message_type=row["last_message_type"],
                created_at=row["last_message_time"],
            )

        return ConversationSummary(
            id=row["id"],
            item_id=row["item_id"],
            item_title=row["item_title"],
            other_participant=CounterpartSummary(
                user_id=row["other_user_id"],
                full_name=row["other_user_name"] or "",
                avatar_url=row["other_user_avatar"],
            ),
            last_message=last_message,
            unread_count=row["unread_count"] or 0,
            last_message_at=row["last_message_at"],
            updated_at=row["updated_at"],
        )
