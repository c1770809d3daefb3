from sqlalchemy import Column, String, Uuid

from listing_chat.database import Base


class UserModel(Base):
    """Read-only view of the identity service's users table.

    Only the display fields the conversation list needs are mapped; the chat
    core never writes here.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True)
    full_name = Column(String(255), nullable=False, default="")
    profile_photo_url = Column(String(1024), nullable=True)
