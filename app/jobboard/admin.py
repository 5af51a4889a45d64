from flask import Blueprint, current_app, g, redirect, request

from app.jobboard.db import db_session
from app.jobboard.middleware import admin_required
from app.jobboard.rendering import render_page
from app.jobboard.users import UserRepository

bp = Blueprint("admin", __name__)


@bp.get("/")
@admin_required
def index():
    deleted = request.args.get("deleted")
    return render_page("admin/index.html", admin=g.user_jwt, deleted=deleted)


@bp.post("/users/delete")
@admin_required
def delete_user():
    email = (request.form.get("email") or "").strip().lower()
    if not email:
        return render_page("admin/index.html", status=400, admin=g.user_jwt, error="Email is required.")
    s = db_session()
    count = UserRepository(s).delete_user_by_email(email)
    s.commit()
    current_app.logger.info("admin user_id=%s deleted user email=%s rows=%s", g.user_jwt.user_id, email, count)
    return redirect(f"/admin/?deleted={count}")
