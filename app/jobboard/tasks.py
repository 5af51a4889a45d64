"""
Machine-to-machine endpoints, authenticated by the shared x-machine-token header.
"""
from __future__ import annotations

import logging
import secrets

from flask import Blueprint, abort, request

from app.jobboard.constants import USER_TYPES
from app.jobboard.db import db_session
from app.jobboard.middleware import machine_required
from app.jobboard.users import UserRepository

bp = Blueprint("tasks", __name__)
logger = logging.getLogger(__name__)


@bp.post("/sign-on-tokens")
@machine_required
def create_sign_on_token():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400)
    email = payload.get("email")
    user_type = payload.get("user_type")
    if not isinstance(email, str) or not isinstance(user_type, str):
        abort(400)
    email = email.strip().lower()
    user_type = user_type.strip()
    if not email or user_type not in USER_TYPES:
        abort(400)
    token = secrets.token_urlsafe(32)
    s = db_session()
    UserRepository(s).save_token_sign_on(email, token, user_type)
    s.commit()
    return {"token": token, "sign_on_path": f"/auth/token/{token}"}, 201


@bp.post("/sign-on-tokens/purge")
@machine_required
def purge_sign_on_tokens():
    s = db_session()
    deleted = UserRepository(s).delete_expired_user_sign_on_tokens()
    s.commit()
    logger.info("purged %s expired sign-on tokens", deleted)
    return {"deleted": deleted}
