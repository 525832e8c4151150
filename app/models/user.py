"""ORM model for user accounts."""

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from app.models.base import Base


class User(Base):
    """
    One registered account.

    username and email are stored lowercase and are unique. password_hash is
    always a bcrypt hash. refresh_token holds the single active refresh token
    (None after logout).
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    fullname = Column(String(255), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    avatar_url = Column(String(2048), nullable=False)
    cover_image_url = Column(String(2048), nullable=False, default="")
    refresh_token = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
