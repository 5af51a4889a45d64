"""Tests for the container start script."""
import pytest

from scripts import start


@pytest.fixture()
def calls(monkeypatch):
    seen = []
    monkeypatch.setattr(start, "migrate", lambda url: seen.append(("migrate", url)))
    monkeypatch.setattr(start.init_db, "seed_only", lambda database_url: seen.append(("seed", database_url)))
    monkeypatch.setattr(start.os, "execvp", lambda file, argv: seen.append(("exec", file, argv)))
    return seen


def test_migrates_seeds_then_execs_gunicorn(calls, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://db/jobboard")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.delenv("WEB_CONCURRENCY", raising=False)
    start.main()
    assert calls[0] == ("migrate", "postgresql://db/jobboard")
    assert calls[1] == ("seed", "postgresql://db/jobboard")
    kind, file, argv = calls[2]
    assert file == "gunicorn"
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert "0.0.0.0:9000" in argv
    assert argv[argv.index("--workers") + 1] == "2"


def test_refuses_to_start_without_database(calls, monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(SystemExit):
        start.main()
    assert calls == []


def test_rejects_non_numeric_port(calls, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://db/jobboard")
    monkeypatch.setenv("PORT", "http")
    with pytest.raises(SystemExit):
        start.main()
    assert calls == []
