"""
User account and sign-on token persistence.

Every method issues a single statement on the caller's session and flushes;
committing is left to the caller (request handler or session_scope()).
A missing row is reported as None, database errors propagate unchanged.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import delete, literal, select, update

from app.jobboard.constants import SIGN_ON_TOKEN_MAX_AGE_DAYS, USER_TYPE_DEVELOPER, USER_TYPE_RECRUITER, USER_TYPES
from app.jobboard.models import DeveloperProfile, RecruiterProfile, User, UserSignOnToken, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class SignOnTokenNotFoundError(LookupError):
    """The sign-on token does not exist or is older than the maximum age."""


def new_user_id() -> str:
    return uuid.uuid4().hex


def sign_on_token_cutoff(now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(days=SIGN_ON_TOKEN_MAX_AGE_DAYS)


class UserRepository:
    def __init__(self, s: "Session"):
        self.s = s

    def save_token_sign_on(self, email: str, token: str, user_type: str) -> UserSignOnToken:
        if user_type not in USER_TYPES:
            raise ValueError(f"Invalid user type {user_type!r}")
        row = UserSignOnToken(
            token=token,
            email=email.strip().lower(),
            user_type=user_type,
            created_at=utcnow(),
        )
        self.s.add(row)
        self.s.flush()
        return row

    def get_user(self, user_id: str) -> User | None:
        return self.s.get(User, user_id)

    def create_user(self, user: User) -> User:
        if not user.id:
            user.id = new_user_id()
        if user.created_at is None:
            user.created_at = utcnow()
        self.s.add(user)
        self.s.flush()
        return user

    def update_access_token(self, user_id: str, access_token: str) -> None:
        self.s.execute(update(User).where(User.id == user_id).values(access_token=access_token))

    def update_refresh_token(self, user_id: str, refresh_token: str) -> None:
        self.s.execute(update(User).where(User.id == user_id).values(refresh_token=refresh_token))

    def get_or_create_user_from_token(self, token: str) -> tuple[User, bool]:
        """
        Resolve a one-time sign-on token to a user, creating the user on first sign-on.
        Returns (user, existed). The token row is consumed.
        """
        sign_on = self.s.get(UserSignOnToken, token)
        if sign_on is None or sign_on.created_at < sign_on_token_cutoff():
            raise SignOnTokenNotFoundError("sign-on token not found")

        user = self.s.execute(select(User).where(User.email == sign_on.email)).scalar_one_or_none()
        existed = user is not None
        if user is None:
            user = User(
                id=new_user_id(),
                email=sign_on.email,
                email_verified=False,
                created_at=utcnow(),
                user_type=sign_on.user_type,
            )
            self.s.add(user)
            logger.info("Created user id=%s type=%s from sign-on token", user.id, user.user_type)

        self.s.delete(sign_on)
        self.s.flush()
        return user, existed

    def delete_user_by_email(self, email: str) -> int:
        result = self.s.execute(delete(User).where(User.email == email.strip().lower()))
        return result.rowcount or 0

    def delete_expired_user_sign_on_tokens(self) -> int:
        """Delete sign-on tokens older than a week. Returns the number removed."""
        result = self.s.execute(delete(UserSignOnToken).where(UserSignOnToken.created_at < sign_on_token_cutoff()))
        return result.rowcount or 0

    def get_user_type_by_email(self, email: str) -> str | None:
        email = email.strip().lower()
        user_type = self.s.execute(select(User.user_type).where(User.email == email)).scalar_one_or_none()
        if user_type is not None:
            return user_type

        # unverified recruiters and developers only have a profile row
        for profile, profile_type in ((RecruiterProfile, USER_TYPE_RECRUITER), (DeveloperProfile, USER_TYPE_DEVELOPER)):
            found = self.s.execute(
                select(literal(profile_type)).where(profile.email == email)
            ).scalar_one_or_none()
            if found is not None:
                return found
        return None
