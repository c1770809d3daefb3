"""create chat schema

Revision ID: 4c1e9a7b2d10
Revises:
Create Date: 2026-10-19 10:12:41.318204

"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '4c1e9a7b2d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # users is owned by the identity service; create it only for standalone setups
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            full_name VARCHAR(255) NOT NULL DEFAULT '',
            profile_photo_url VARCHAR(1024)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS conversations (
            id UUID PRIMARY KEY,
            item_id UUID,
            item_title VARCHAR(255) NOT NULL DEFAULT '',
            item_owner_id UUID,
            metadata JSON NOT NULL DEFAULT '{}',
            dedup_key VARCHAR(64) NOT NULL,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            last_message_at TIMESTAMP WITH TIME ZONE,
            CONSTRAINT uq_conversations_dedup_key UNIQUE (dedup_key)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id UUID PRIMARY KEY,
            conversation_id UUID NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
            sender_id UUID NOT NULL,
            content TEXT NOT NULL,
            message_type VARCHAR(5) NOT NULL DEFAULT 'text' CHECK (message_type IN ('text', 'image', 'file')),
            media_url VARCHAR(1024),
            is_read BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS conversation_participants (
            conversation_id UUID NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
            user_id UUID NOT NULL,
            last_read_message_id UUID REFERENCES messages(id) ON DELETE SET NULL,
            joined_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            PRIMARY KEY (conversation_id, user_id)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_devices (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL,
            token VARCHAR(512) NOT NULL,
            device_type VARCHAR(20) NOT NULL CHECK (device_type IN ('android', 'ios', 'web')),
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_devices_user_token UNIQUE (user_id, token)
        )
    """)

    op.execute('CREATE INDEX IF NOT EXISTS ix_conversations_activity ON conversations(last_message_at, updated_at)')
    op.execute('CREATE INDEX IF NOT EXISTS ix_conversations_item_id ON conversations(item_id)')
    op.execute('CREATE INDEX IF NOT EXISTS ix_messages_conversation_created ON messages(conversation_id, created_at)')
    # unread counts filter on exactly these columns
    op.execute('CREATE INDEX IF NOT EXISTS ix_messages_unread ON messages(conversation_id, sender_id) WHERE is_read = FALSE')
    op.execute('CREATE INDEX IF NOT EXISTS ix_conversation_participants_user_id ON conversation_participants(user_id)')
    op.execute('CREATE INDEX IF NOT EXISTS ix_user_devices_user_id ON user_devices(user_id)')


def downgrade() -> None:
    """Downgrade schema."""
    op.execute('DROP TABLE IF EXISTS user_devices')
    op.execute('DROP TABLE IF EXISTS conversation_participants')
    op.execute('DROP TABLE IF EXISTS messages')
    op.execute('DROP TABLE IF EXISTS conversations')
