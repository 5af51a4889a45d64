"""
Request pipeline hooks and authentication decorators.

init_middleware() installs the cross-cutting hooks: request logging, HTTPS
redirect, bot filter, CSRF check, security headers and gzip. The decorators wrap
individual views with one of the authentication variants:

  admin_required       session JWT signed with JWT_KEY, must carry is_admin
  machine_required     shared token in the x-machine-token header
  user_required        identity provider ID token in the session, 401 on failure
  user_page_required   same, but redirects pages to /auth or /autologin
  inject_auth_token    same, but anonymous visitors pass through
"""
from __future__ import annotations

import gzip
import hmac
import logging
from collections.abc import Callable
from datetime import timedelta
from functools import wraps
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from flask import Flask, Response, abort, current_app, g, redirect, request, session

from app.jobboard.constants import (
    AUTH_PAGE,
    AUTOLOGIN_PAGE,
    DEFAULT_DIRECT_TO,
    DEV_ENV,
    MACHINE_TOKEN_HEADER,
    SESSION_ID_TOKEN_KEY,
    SESSION_JWT_KEY,
)
from app.jobboard.identity import TokenVerificationError
from app.jobboard.rendering import render_page
from app.jobboard.security import InvalidUserJWT, UserJWT, decode_user_jwt, encode_user_jwt, validate_csrf

if TYPE_CHECKING:
    from app.jobboard.models import User

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "Content-Security-Policy": "upgrade-insecure-requests",
    "X-Frame-Options": "deny",
    "X-XSS-Protection": "1; mode=block",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "origin",
}

BLOCKED_USER_AGENT = "HeadlessChrome"
UNSAFE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


class AuthenticationError(Exception):
    pass


class NoAuthSessionError(AuthenticationError):
    def __init__(self, message: str = "no authentication session"):
        super().__init__(message)


class NoAuthCookieError(AuthenticationError):
    def __init__(self, message: str = "no authentication cookie"):
        super().__init__(message)


class TokenVerificationFailedError(AuthenticationError):
    def __init__(self, message: str = "token verification failed"):
        super().__init__(message)


def _is_dev() -> bool:
    return current_app.config.get("ENV") == DEV_ENV


# ---------------------------------------------------------------------------
# Pipeline hooks
# ---------------------------------------------------------------------------


def log_request() -> None:
    logger.info(
        "req host=%s method=%s url=%s x-forwarded-for=%s",
        request.host,
        request.method,
        request.url,
        request.headers.get("X-Forwarded-For", ""),
    )


def redirect_to_https() -> Response | None:
    if _is_dev() or request.headers.get("X-Forwarded-Proto") == "https":
        return None
    target = "https://" + request.host + request.path
    query = request.query_string.decode("latin-1")
    if query:
        target += "?" + query
    return redirect(target, code=301)


def filter_headless_browsers() -> Response | None:
    if _is_dev():
        return None
    if BLOCKED_USER_AGENT in request.headers.get("User-Agent", ""):
        g.bot_filtered = True
        return Response(status=418)
    return None


def csrf_guard() -> Response | None:
    if request.method not in UNSAFE_METHODS:
        return None
    # machine endpoints carry no session; auth endpoints verify their own tokens
    if request.path.startswith("/x/") or (request.endpoint or "").startswith("auth."):
        return None
    if not validate_csrf(request):
        logger.warning("csrf check failed method=%s path=%s", request.method, request.path)
        return render_page("errors/400.html", status=400, message="CSRF token missing or invalid.")
    return None


def set_security_headers(response: Response) -> Response:
    if _is_dev() or getattr(g, "bot_filtered", False):
        return response
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


def gzip_response(response: Response) -> Response:
    if response.direct_passthrough or response.is_streamed:
        return response
    if not 200 <= response.status_code < 300 or "Content-Encoding" in response.headers:
        return response
    response.vary.add("Accept-Encoding")
    if request.accept_encodings["gzip"] <= 0:
        return response
    data = response.get_data()
    if len(data) < current_app.config.get("GZIP_MIN_SIZE", 500):
        return response
    response.set_data(gzip.compress(data))
    response.headers["Content-Encoding"] = "gzip"
    return response


def init_middleware(app: Flask) -> None:
    app.before_request(log_request)
    app.before_request(redirect_to_https)
    app.before_request(filter_headless_browsers)
    app.before_request(csrf_guard)
    # after_request hooks run in reverse order: headers first, compression last
    app.after_request(gzip_response)
    app.after_request(set_security_headers)


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------


def _session_token(key: str) -> str:
    if current_app.config["SESSION_COOKIE_NAME"] not in request.cookies:
        raise NoAuthSessionError()
    tk = session.get(key)
    if not isinstance(tk, str) or not tk:
        raise NoAuthCookieError()
    return tk


def authenticate_from_cookie() -> dict[str, Any]:
    """
    Verify the identity provider token held in the session.
    Raises NoAuthSessionError, NoAuthCookieError or TokenVerificationFailedError.
    """
    tk = _session_token(SESSION_ID_TOKEN_KEY)
    provider = current_app.extensions["identity_provider"]
    try:
        return provider.verify_id_token(tk)
    except TokenVerificationError as e:
        raise TokenVerificationFailedError() from e


def get_user_from_jwt() -> UserJWT:
    try:
        tk = _session_token(SESSION_JWT_KEY)
    except NoAuthSessionError as e:
        raise AuthenticationError("could not find cookie") from e
    except NoAuthCookieError as e:
        raise AuthenticationError("could not find jwt in session") from e
    try:
        return decode_user_jwt(tk, current_app.config["JWT_KEY"])
    except InvalidUserJWT as e:
        raise AuthenticationError(f"invalid jwt: {e}") from e


def is_signed_on() -> bool:
    try:
        get_user_from_jwt()
    except AuthenticationError:
        return False
    return True


def issue_user_jwt(user: "User", ttl: timedelta | None = None) -> str:
    if ttl is None:
        ttl = timedelta(hours=current_app.config.get("JWT_TTL_HOURS", 24 * 7))
    return encode_user_jwt(UserJWT.for_user(user), current_app.config["JWT_KEY"], ttl)


def store_id_token(id_token: str) -> None:
    session[SESSION_ID_TOKEN_KEY] = id_token
    session.permanent = True


def sign_on(user: "User") -> str:
    token = issue_user_jwt(user)
    session[SESSION_JWT_KEY] = token
    session.permanent = True
    return token


def sign_off() -> None:
    session.pop(SESSION_JWT_KEY, None)
    session.pop(SESSION_ID_TOKEN_KEY, None)


def _autologin_redirect(direct_to: str) -> Response:
    return redirect(f"{AUTOLOGIN_PAGE}?{urlencode({'directto': direct_to})}", code=303)


# ---------------------------------------------------------------------------
# Authentication decorators
# ---------------------------------------------------------------------------


def admin_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        try:
            claims = get_user_from_jwt()
        except AuthenticationError as e:
            logger.info("admin auth failed path=%s: %s", request.path, e)
            return redirect(AUTH_PAGE)
        if not claims.is_admin:
            logger.warning("non-admin user_id=%s denied path=%s", claims.user_id, request.path)
            return redirect(AUTH_PAGE)
        g.user_jwt = claims
        return fn(*args, **kwargs)

    return wrapped


def machine_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        expected = current_app.config.get("MACHINE_TOKEN") or ""
        token = request.headers.get(MACHINE_TOKEN_HEADER, "")
        if not expected or not hmac.compare_digest(token.encode(), expected.encode()):
            abort(401)
        return fn(*args, **kwargs)

    return wrapped


def user_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        try:
            g.auth_token = authenticate_from_cookie()
        except AuthenticationError:
            abort(401)
        return fn(*args, **kwargs)

    return wrapped


def user_page_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        try:
            g.auth_token = authenticate_from_cookie()
        except (NoAuthSessionError, NoAuthCookieError):
            return redirect(AUTH_PAGE)
        except TokenVerificationFailedError:
            # token present but expired: the auto-login page re-authenticates and comes back
            return _autologin_redirect(request.path or DEFAULT_DIRECT_TO)
        return fn(*args, **kwargs)

    return wrapped


def inject_auth_token(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        g.auth_token = None
        try:
            g.auth_token = authenticate_from_cookie()
        except TokenVerificationFailedError:
            return _autologin_redirect(request.path)
        except (NoAuthSessionError, NoAuthCookieError):
            pass
        return fn(*args, **kwargs)

    return wrapped
