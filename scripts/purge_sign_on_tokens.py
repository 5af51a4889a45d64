"""
Delete sign-on tokens older than a week.

Usage:
  python scripts/purge_sign_on_tokens.py
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main() -> None:
    from app.jobboard import create_app
    from app.jobboard.db import session_scope
    from app.jobboard.users import UserRepository

    app = create_app()
    with session_scope(app) as s:
        deleted = UserRepository(s).delete_expired_user_sign_on_tokens()
    print(f"Deleted {deleted} expired sign-on token(s).", flush=True)


if __name__ == "__main__":
    main()
