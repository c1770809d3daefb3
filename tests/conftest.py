import os
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Callable, Generator
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

# The app module builds its engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import listing_chat.models  # noqa: E402,F401
from listing_chat.database import Base  # noqa: E402
from listing_chat.main import app  # noqa: E402
from listing_chat.models.api.messages import InboundMessageEvent, MessageType  # noqa: E402
from listing_chat.models.db.user_model import UserModel  # noqa: E402


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the chat schema, one per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session on the in-memory database for behavioural tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def mock_db() -> AsyncGenerator[AsyncMock, None]:
    """Create a mock database session for unit tests."""
    mock_session = AsyncMock()
    mock_session.commit = AsyncMock()
    mock_session.rollback = AsyncMock()
    mock_session.close = AsyncMock()
    mock_session.flush = AsyncMock()
    mock_session.execute = AsyncMock()
    mock_session.add = MagicMock()  # add is sync, not async

    yield mock_session


@pytest.fixture
def client() -> Generator[TestClient, Any, None]:
    """Create a test client for the FastAPI app."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seller_id() -> UUID:
    return uuid4()


@pytest.fixture
def buyer_id() -> UUID:
    return uuid4()


@pytest.fixture
async def users(test_db: AsyncSession, seller_id: UUID, buyer_id: UUID) -> None:
    """Display rows for the seller and the buyer."""
    test_db.add_all(
        [
            UserModel(id=seller_id, full_name="Sam Seller", profile_photo_url=None),
            UserModel(
                id=buyer_id,
                full_name="Bea Buyer",
                profile_photo_url="https://cdn.example.com/bea.png",
            ),
        ]
    )
    await test_db.commit()


@pytest.fixture
def make_event() -> Callable[..., InboundMessageEvent]:
    """Build message events with strictly increasing timestamps."""
    base = datetime.now(timezone.utc)
    counter = {"n": 0}

    def _make(
        conversation_id: UUID,
        sender_id: UUID,
        content: str = "Hello",
        at: Any = None,
        message_type: MessageType = MessageType.TEXT,
    ) -> InboundMessageEvent:
        counter["n"] += 1
        return InboundMessageEvent(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            message_type=message_type,
            timestamp=at or base + timedelta(minutes=counter["n"]),
        )

    return _make
