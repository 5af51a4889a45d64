from __future__ import annotations

import hmac
import secrets
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import jwt
from flask import Request, session
from jwt.exceptions import InvalidTokenError

from app.jobboard.constants import USER_TYPE_ADMIN, USER_TYPE_DEVELOPER, USER_TYPE_RECRUITER

if TYPE_CHECKING:
    from app.jobboard.models import User

JWT_ALGORITHM = "HS256"
CSRF_SESSION_KEY = "csrf_token"


class InvalidUserJWT(Exception):
    pass


@dataclass(frozen=True)
class UserJWT:
    """Claims stored in the session cookie for a signed-on user."""

    is_admin: bool
    is_recruiter: bool
    is_developer: bool
    user_id: str
    email: str
    type: str
    created_at: str
    iat: int | None = None
    exp: int | None = None

    @classmethod
    def for_user(cls, user: "User") -> "UserJWT":
        return cls(
            is_admin=user.user_type == USER_TYPE_ADMIN,
            is_recruiter=user.user_type == USER_TYPE_RECRUITER,
            is_developer=user.user_type == USER_TYPE_DEVELOPER,
            user_id=user.id,
            email=user.email,
            type=user.user_type,
            created_at=user.created_at.isoformat() if user.created_at else "",
        )

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "UserJWT":
        try:
            return cls(
                is_admin=bool(claims.get("is_admin", False)),
                is_recruiter=bool(claims.get("is_recruiter", False)),
                is_developer=bool(claims.get("is_developer", False)),
                user_id=str(claims["user_id"]),
                email=str(claims["email"]),
                type=str(claims.get("type") or ""),
                created_at=str(claims.get("created_at") or ""),
                iat=claims.get("iat"),
                exp=claims.get("exp"),
            )
        except KeyError as e:
            raise InvalidUserJWT(f"missing claim {e.args[0]}") from e


def encode_user_jwt(claims: UserJWT, key: str, ttl: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = asdict(claims)
    payload["iat"] = now
    payload["exp"] = now + ttl
    return jwt.encode(payload, key, algorithm=JWT_ALGORITHM)


def decode_user_jwt(token: str, key: str) -> UserJWT:
    """Verify signature and expiry, then map the payload onto UserJWT."""
    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except InvalidTokenError as e:
        raise InvalidUserJWT(str(e)) from e
    return UserJWT.from_claims(payload)


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Check the CSRF token sent in the X-CSRF-Token header or the csrf_token form field."""
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token") or ""
    expected = session.get(CSRF_SESSION_KEY) or ""
    return bool(token and expected) and hmac.compare_digest(token.encode(), expected.encode())
