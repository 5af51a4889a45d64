from flask import Blueprint, g, request

from app.jobboard.constants import DEFAULT_DIRECT_TO
from app.jobboard.db import db_session
from app.jobboard.middleware import AuthenticationError, get_user_from_jwt, inject_auth_token, user_page_required, user_required
from app.jobboard.rendering import render_page
from app.jobboard.users import UserRepository

bp = Blueprint("routes", __name__)


@bp.get("/")
@inject_auth_token
def index():
    try:
        claims = get_user_from_jwt()
    except AuthenticationError:
        claims = None
    return render_page("index.html", user=claims, auth_token=g.auth_token)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for probes. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/autologin")
def autologin():
    """
    Served when the session token has expired. The page re-authenticates
    with the identity provider client-side and returns to `directto`.
    """
    direct_to = (request.args.get("directto") or "").strip()
    # only allow local paths to avoid open redirects
    if not direct_to.startswith("/") or direct_to.startswith("//"):
        direct_to = DEFAULT_DIRECT_TO
    return render_page("autologin.html", direct_to=direct_to)


@bp.get("/profile/home")
@user_page_required
def profile_home():
    email = (g.auth_token.get("email") or "").strip().lower()
    user_type = UserRepository(db_session()).get_user_type_by_email(email) if email else None
    return render_page("profile_home.html", auth_token=g.auth_token, email=email, user_type=user_type)


@bp.get("/api/v1/me")
@user_required
def api_me():
    tk = g.auth_token
    email = (tk.get("email") or "").strip().lower()
    user_type = UserRepository(db_session()).get_user_type_by_email(email) if email else None
    return {
        "uid": tk.get("sub"),
        "email": email or None,
        "email_verified": bool(tk.get("email_verified", False)),
        "user_type": user_type,
    }
