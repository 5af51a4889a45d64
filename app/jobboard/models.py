from __future__ import annotations

from datetime import datetime, timezone

import humanize
from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.jobboard.constants import USER_TYPE_ADMIN


def utcnow() -> datetime:
    """Naive UTC now, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # OAuth tokens from the identity provider
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    expiration_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    user_type: Mapped[str] = mapped_column(String(32), nullable=False)  # developer, recruiter, admin

    @property
    def is_admin(self) -> bool:
        return self.user_type == USER_TYPE_ADMIN

    @property
    def created_at_humanised(self) -> str:
        if self.created_at is None:
            return ""
        return humanize.naturaltime(utcnow() - self.created_at)


class UserSignOnToken(Base):
    """
    One-time sign-on credential pairing a token with an email and user type.
    Rows older than SIGN_ON_TOKEN_MAX_AGE_DAYS are purged.
    """

    __tablename__ = "user_sign_on_token"
    __table_args__ = (
        Index("idx_user_sign_on_token_email", "email"),
        Index("idx_user_sign_on_token_created_at", "created_at"),
    )

    token: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    user_type: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)


class RecruiterProfile(Base):
    __tablename__ = "recruiter_profile"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)


class DeveloperProfile(Base):
    __tablename__ = "developer_profile"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
