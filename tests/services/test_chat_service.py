from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from listing_chat.clients.base_notification_client import BaseNotificationClient
from listing_chat.exceptions import ForbiddenError, NotFoundError, ValidationError
from listing_chat.models.api.conversations import (
    ConversationMetadata,
    CreateConversationRequest,
)
from listing_chat.models.api.devices import DeviceType
from listing_chat.models.api.messages import InboundMessageEvent, MessageType
from listing_chat.services.chat_service import ChatService


class TestChatService:
    """Behavioural tests for ChatService over the SQLite schema."""

    @pytest.fixture
    def service(self, test_db: AsyncSession) -> ChatService:
        return ChatService(test_db)

    @pytest.fixture
    async def conversation(
        self, service: ChatService, seller_id: UUID, buyer_id: UUID
    ) -> Any:
        return await service.start_conversation(
            CreateConversationRequest(
                participant_ids=[seller_id, buyer_id],
                item_id=uuid4(),
                item_title="Car-123",
            )
        )

    @pytest.mark.asyncio
    async def test_listing_chat_round_trip(
        self,
        service: ChatService,
        users: None,
        conversation: Any,
        seller_id: UUID,
        buyer_id: UUID,
        make_event: Callable[..., InboundMessageEvent],
    ) -> None:
        """Buyer asks, seller sees it unread, reads it, and both lists settle."""
        message = await service.handle_inbound_message(
            make_event(conversation.id, buyer_id, "Hello")
        )

        assert await service.get_unread_count(seller_id, conversation.id) == 1

        seller_list = await service.list_conversations(seller_id)
        assert len(seller_list) == 1
        assert seller_list[0].item_title == "Car-123"
        assert seller_list[0].other_participant.full_name == "Bea Buyer"
        assert seller_list[0].last_message is not None
        assert seller_list[0].last_message.content == "Hello"
        assert seller_list[0].unread_count == 1

        participant = await service.mark_read(
            seller_id, conversation.id, str(message.id)
        )
        assert participant.last_read_message_id == message.id
        assert await service.get_unread_count(seller_id, conversation.id) == 0

        buyer_list = await service.list_conversations(buyer_id)
        assert buyer_list[0].other_participant.full_name == "Sam Seller"
        assert buyer_list[0].unread_count == 0

    @pytest.mark.asyncio
    async def test_start_conversation_defaults_owner(
        self, service: ChatService, conversation: Any, seller_id: UUID, buyer_id: UUID
    ) -> None:
        assert conversation.item_owner_id == seller_id
        assert conversation.metadata == ConversationMetadata()

        again = await service.start_conversation(
            CreateConversationRequest(
                participant_ids=[buyer_id, seller_id],
                item_id=conversation.item_id,
                item_title="Car-123",
            )
        )
        assert again.id == conversation.id

    @pytest.mark.asyncio
    async def test_message_fields_are_persisted(
        self,
        service: ChatService,
        conversation: Any,
        buyer_id: UUID,
    ) -> None:
        sent_at = datetime.now(timezone.utc) + timedelta(minutes=1)
        message = await service.handle_inbound_message(
            InboundMessageEvent(
                conversation_id=conversation.id,
                sender_id=buyer_id,
                content="",
                message_type=MessageType.IMAGE,
                media_url="https://cdn.example.com/car.jpg",
                timestamp=sent_at,
            )
        )

        history = await service.get_chat_history(conversation.id, user_id=buyer_id)

        assert history.total_count == 1
        stored = history.messages[0]
        assert stored.id == message.id
        assert stored.message_type == MessageType.IMAGE
        assert stored.media_url == "https://cdn.example.com/car.jpg"
        assert stored.is_read is False
        assert stored.created_at.replace(tzinfo=None) == sent_at.replace(tzinfo=None)

    @pytest.mark.asyncio
    async def test_naive_timestamp_treated_as_utc(
        self, service: ChatService, conversation: Any, buyer_id: UUID
    ) -> None:
        naive = datetime(2030, 1, 1, 9, 30)
        message = await service.handle_inbound_message(
            InboundMessageEvent(
                conversation_id=conversation.id,
                sender_id=buyer_id,
                content="hi",
                timestamp=naive,
            )
        )
        assert message.created_at.replace(tzinfo=None) == naive

    @pytest.mark.asyncio
    async def test_history_pages(
        self,
        service: ChatService,
        conversation: Any,
        seller_id: UUID,
        buyer_id: UUID,
        make_event: Callable[..., InboundMessageEvent],
    ) -> None:
        for n in range(3):
            await service.handle_inbound_message(
                make_event(conversation.id, buyer_id, f"m{n}")
            )

        history = await service.get_chat_history(
            conversation.id, page=1, page_size=2, user_id=seller_id
        )

        assert history.total_count == 3
        assert history.page == 1
        assert history.page_size == 2
        assert [m.content for m in history.messages] == ["m2", "m1"]

    @pytest.mark.asyncio
    async def test_outsider_cannot_send(
        self,
        service: ChatService,
        conversation: Any,
        make_event: Callable[..., InboundMessageEvent],
    ) -> None:
        with pytest.raises(ForbiddenError):
            await service.handle_inbound_message(make_event(conversation.id, uuid4()))

    @pytest.mark.asyncio
    async def test_outsider_cannot_read_history(
        self, service: ChatService, conversation: Any
    ) -> None:
        with pytest.raises(ForbiddenError):
            await service.get_chat_history(conversation.id, user_id=uuid4())

    @pytest.mark.asyncio
    async def test_unknown_conversation(
        self,
        service: ChatService,
        buyer_id: UUID,
        make_event: Callable[..., InboundMessageEvent],
    ) -> None:
        with pytest.raises(NotFoundError):
            await service.handle_inbound_message(make_event(uuid4(), buyer_id))

    @pytest.mark.asyncio
    async def test_mark_read_rejects_malformed_id(
        self, service: ChatService, conversation: Any, seller_id: UUID
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await service.mark_read(seller_id, conversation.id, "not-a-uuid")
        assert exc_info.value.details == {"field": "message_id"}

    @pytest.mark.asyncio
    async def test_mark_read_unknown_message(
        self, service: ChatService, conversation: Any, seller_id: UUID
    ) -> None:
        with pytest.raises(NotFoundError):
            await service.mark_read(seller_id, conversation.id, str(uuid4()))

    @pytest.mark.asyncio
    async def test_outsider_cannot_read_unread_count(
        self,
        service: ChatService,
        conversation: Any,
        buyer_id: UUID,
        make_event: Callable[..., InboundMessageEvent],
    ) -> None:
        await service.handle_inbound_message(make_event(conversation.id, buyer_id))

        with pytest.raises(ForbiddenError):
            await service.get_unread_count(uuid4(), conversation.id)

    @pytest.mark.asyncio
    async def test_unread_count_for_unknown_conversation(
        self, service: ChatService, seller_id: UUID
    ) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await service.get_unread_count(seller_id, uuid4())
        assert exc_info.value.details == {"resource": "conversation"}

    @pytest.mark.asyncio
    async def test_outsider_cannot_mark_read(
        self,
        service: ChatService,
        conversation: Any,
        seller_id: UUID,
        buyer_id: UUID,
        make_event: Callable[..., InboundMessageEvent],
    ) -> None:
        message = await service.handle_inbound_message(
            make_event(conversation.id, buyer_id)
        )

        with pytest.raises(ForbiddenError):
            await service.mark_read(uuid4(), conversation.id, str(message.id))
        assert await service.get_unread_count(seller_id, conversation.id) == 1

    @pytest.mark.asyncio
    async def test_last_message(
        self,
        service: ChatService,
        conversation: Any,
        seller_id: UUID,
        buyer_id: UUID,
        make_event: Callable[..., InboundMessageEvent],
    ) -> None:
        assert await service.get_last_message(seller_id, conversation.id) is None

        await service.handle_inbound_message(make_event(conversation.id, buyer_id, "Hi"))
        await service.handle_inbound_message(
            make_event(conversation.id, seller_id, "Still for sale")
        )

        latest = await service.get_last_message(buyer_id, conversation.id)
        assert latest is not None
        assert latest.content == "Still for sale"
        assert latest.sender_id == seller_id

        with pytest.raises(ForbiddenError):
            await service.get_last_message(uuid4(), conversation.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "page, page_size",
        [(0, 50), (1, 0), (1, 101)],
    )
    async def test_history_paging_bounds(
        self, service: ChatService, page: int, page_size: int
    ) -> None:
        with pytest.raises(ValidationError):
            await service.get_chat_history(uuid4(), page=page, page_size=page_size)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "limit, offset",
        [(0, 0), (1001, 0), (10, -1)],
    )
    async def test_list_bounds(
        self, service: ChatService, limit: int, offset: int
    ) -> None:
        with pytest.raises(ValidationError):
            await service.list_conversations(uuid4(), limit=limit, offset=offset)

    @pytest.mark.asyncio
    async def test_participant_ids_for_routing(
        self, service: ChatService, conversation: Any, seller_id: UUID, buyer_id: UUID
    ) -> None:
        participant_ids = await service.get_participant_ids(conversation.id)
        assert set(participant_ids) == {seller_id, buyer_id}

    @pytest.mark.asyncio
    async def test_device_registration(
        self, service: ChatService, buyer_id: UUID
    ) -> None:
        device = await service.register_device(buyer_id, "token-1", DeviceType.WEB)
        assert device.user_id == buyer_id
        assert [d.token for d in await service.list_devices(buyer_id)] == ["token-1"]

        await service.unregister_device(buyer_id, "token-1")
        with pytest.raises(NotFoundError):
            await service.unregister_device(buyer_id, "token-1")
        assert await service.list_devices(buyer_id) == []


class TestChatServiceNotifications:
    """Message writes hand off to the dispatcher."""

    @pytest.mark.asyncio
    async def test_dispatch_scheduled_after_write(
        self,
        test_db: AsyncSession,
        seller_id: UUID,
        buyer_id: UUID,
        make_event: Callable[..., InboundMessageEvent],
    ) -> None:
        client = AsyncMock(spec=BaseNotificationClient)
        service = ChatService(test_db, client)
        conversation = await service.start_conversation(
            CreateConversationRequest(participant_ids=[seller_id, buyer_id])
        )

        with patch.object(service.dispatcher, "schedule") as schedule:
            message = await service.handle_inbound_message(
                make_event(conversation.id, buyer_id, "Still available?")
            )

        schedule.assert_called_once()
        scheduled_message, participant_ids = schedule.call_args.args
        assert scheduled_message == message
        assert set(participant_ids) == {seller_id, buyer_id}

    @pytest.mark.asyncio
    async def test_push_reaches_other_participant(
        self,
        test_db: AsyncSession,
        seller_id: UUID,
        buyer_id: UUID,
        make_event: Callable[..., InboundMessageEvent],
    ) -> None:
        client = AsyncMock(spec=BaseNotificationClient)
        service = ChatService(test_db, client)
        conversation = await service.start_conversation(
            CreateConversationRequest(participant_ids=[seller_id, buyer_id])
        )

        tasks = []
        original_schedule = service.dispatcher.schedule

        def capture(*args: Any) -> Any:
            task = original_schedule(*args)
            tasks.append(task)
            return task

        with patch.object(service.dispatcher, "schedule", MagicMock(side_effect=capture)):
            await service.handle_inbound_message(
                make_event(conversation.id, buyer_id, "Hello")
            )
        await tasks[0]

        client.send_to_users.assert_awaited_once()
        recipients, title, body, data = client.send_to_users.await_args.args
        assert recipients == [seller_id]
        assert title == "New Message"
        assert body == "Hello"
        assert data == {
            "conversation_id": str(conversation.id),
            "sender_id": str(buyer_id),
            "type": "chat_message",
        }

    @pytest.mark.asyncio
    async def test_push_failure_does_not_fail_send(
        self,
        test_db: AsyncSession,
        seller_id: UUID,
        buyer_id: UUID,
        make_event: Callable[..., InboundMessageEvent],
    ) -> None:
        client = AsyncMock(spec=BaseNotificationClient)
        client.send_to_users.side_effect = RuntimeError("gateway down")
        service = ChatService(test_db, client)
        conversation = await service.start_conversation(
            CreateConversationRequest(participant_ids=[seller_id, buyer_id])
        )

        message = await service.handle_inbound_message(
            make_event(conversation.id, buyer_id, "Hello")
        )
        history = await service.get_chat_history(conversation.id)

        assert history.messages[0].id == message.id
