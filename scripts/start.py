#!/usr/bin/env python3
"""
Container entry point: upgrade the schema, make sure the admin account exists,
then hand the process over to gunicorn serving app.wsgi:app.
"""
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from alembic import command
from alembic.config import Config

from scripts import init_db

logger = logging.getLogger("jobboard.start")


def migrate(database_url: str) -> None:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(cfg, "head")


def gunicorn_argv(port: str) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", os.environ.get("WEB_CONCURRENCY", "2"),
        "--access-logfile", "-",
    ]


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    database_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not database_url:
        sys.exit("DATABASE_URL is not set")
    port = (os.environ.get("PORT") or "8080").strip()
    if not port.isdigit():
        sys.exit(f"PORT must be a number, got {port!r}")

    logger.info("upgrading schema")
    migrate(database_url)
    init_db.seed_only(database_url=database_url)

    logger.info("starting gunicorn on port %s", port)
    argv = gunicorn_argv(port)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
