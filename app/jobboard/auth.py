from __future__ import annotations

import logging

from flask import Blueprint, abort, current_app, redirect, request

from app.jobboard.db import db_session
from app.jobboard.identity import TokenVerificationError
from app.jobboard.middleware import is_signed_on, sign_off, sign_on, store_id_token
from app.jobboard.rendering import render_page
from app.jobboard.users import SignOnTokenNotFoundError, UserRepository

bp = Blueprint("auth", __name__)
logger = logging.getLogger(__name__)


@bp.get("")
def auth_page():
    if is_signed_on():
        return redirect("/")
    return render_page("auth.html")


@bp.get("/token/<token>")
def token_sign_on(token: str):
    """Exchange a one-time sign-on token for a session."""
    s = db_session()
    repo = UserRepository(s)
    try:
        user, existed = repo.get_or_create_user_from_token(token)
    except SignOnTokenNotFoundError:
        s.rollback()
        return render_page("auth.html", status=400, error="This sign-on link is invalid or has expired.")
    s.commit()
    sign_on(user)
    logger.info("sign-on user_id=%s type=%s existed=%s", user.id, user.user_type, existed)
    if user.is_admin:
        return redirect("/admin/")
    return redirect("/")


@bp.post("/session")
def create_session():
    """Store an identity provider ID token in the session after verifying it."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    id_token = payload.get("id_token") or request.form.get("id_token") or ""
    if not isinstance(id_token, str) or not id_token.strip():
        abort(400)
    id_token = id_token.strip()
    try:
        claims = current_app.extensions["identity_provider"].verify_id_token(id_token)
    except TokenVerificationError:
        abort(401)
    store_id_token(id_token)
    return {"ok": True, "uid": claims.get("sub")}


@bp.get("/logout")
def logout():
    sign_off()
    return redirect("/")
