import os
import sys
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.jobboard.constants import USER_TYPE_ADMIN
from app.jobboard.models import Base, User, utcnow
from app.jobboard.users import UserRepository


@contextmanager
def _session_scope(database_url: str):
    engine = create_engine(database_url, future=True)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Ensure the ADMIN_EMAIL user exists with the admin type.
    An existing user with that email is promoted, never duplicated.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "").strip().lower()
    if not admin_email:
        print("ADMIN_EMAIL not set; skipping admin seed.", flush=True)
        return

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///jobboard.db").strip()

    with _session_scope(db_url) as s:
        user = s.execute(select(User).where(User.email == admin_email)).scalar_one_or_none()
        if user is None:
            UserRepository(s).create_user(
                User(email=admin_email, email_verified=True, created_at=utcnow(), user_type=USER_TYPE_ADMIN)
            )
            print(f"Created admin user {admin_email}", flush=True)
        elif user.user_type != USER_TYPE_ADMIN:
            user.user_type = USER_TYPE_ADMIN
            print(f"Promoted {admin_email} to admin", flush=True)


def create_tables(*, database_url: str | None = None) -> None:
    """Create tables directly from the models (local development without alembic)."""
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///jobboard.db").strip()
    engine = create_engine(db_url, future=True)
    Base.metadata.create_all(bind=engine)


def main() -> None:
    if "--create-tables" in sys.argv:
        create_tables()
    seed_only()


if __name__ == "__main__":
    main()
