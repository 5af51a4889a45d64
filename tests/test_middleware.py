"""Tests for the request pipeline hooks and the machine token guard."""
import gzip
import logging

import pytest

from app.jobboard import create_app
from app.jobboard.middleware import SECURITY_HEADERS
from app.jobboard.models import Base


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("JWT_KEY", "test-jwt-key-with-at-least-32-bytes!!")
    monkeypatch.setenv("MACHINE_TOKEN", "machine-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("TEMPLATES_DIR", "IDENTITY_PROJECT_ID", "GZIP_MIN_SIZE"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def client(app):
    c = app.test_client()
    c.environ_base["HTTP_X_FORWARDED_PROTO"] = "https"
    return c


def test_plain_http_is_redirected_to_https(app):
    r = app.test_client().get("/jobs/python?page=2")
    assert r.status_code == 301
    assert r.headers["Location"] == "https://localhost/jobs/python?page=2"


def test_forwarded_https_is_served(client):
    r = client.get("/health")
    assert r.status_code == 200


def test_security_headers_are_set(client):
    r = client.get("/health")
    for name, value in SECURITY_HEADERS.items():
        assert r.headers[name] == value
    assert r.headers["X-Frame-Options"] == "deny"


def test_headless_chrome_is_turned_away(client):
    r = client.get("/", headers={"User-Agent": "Mozilla/5.0 HeadlessChrome/120.0"})
    assert r.status_code == 418
    assert r.data == b""
    assert "X-Frame-Options" not in r.headers


def test_gzip_when_client_accepts(app, client):
    app.config["GZIP_MIN_SIZE"] = 10
    r = client.get("/", headers={"Accept-Encoding": "gzip, deflate"})
    assert r.status_code == 200
    assert r.headers["Content-Encoding"] == "gzip"
    assert "Accept-Encoding" in r.headers["Vary"]
    assert b"Find your next role" in gzip.decompress(r.data)


def test_no_gzip_without_accept_encoding(app, client):
    app.config["GZIP_MIN_SIZE"] = 10
    r = client.get("/")
    assert "Content-Encoding" not in r.headers
    assert b"Find your next role" in r.data


def test_small_bodies_are_not_compressed(client):
    r = client.get("/health", headers={"Accept-Encoding": "gzip"})
    assert "Content-Encoding" not in r.headers
    assert r.json == {"ok": True}


def test_requests_are_logged(client, caplog):
    caplog.set_level(logging.INFO, logger="app.jobboard.middleware")
    client.get("/health?check=1", headers={"X-Forwarded-For": "203.0.113.7"})
    line = next(r.getMessage() for r in caplog.records if r.getMessage().startswith("req "))
    assert "host=localhost" in line
    assert "method=GET" in line
    assert "/health?check=1" in line
    assert "x-forwarded-for=203.0.113.7" in line


def test_error_responses_are_not_compressed(app, client):
    app.config["GZIP_MIN_SIZE"] = 10
    r = client.get("/no-such-page", headers={"Accept-Encoding": "gzip"})
    assert r.status_code == 404
    assert "Content-Encoding" not in r.headers
    assert b"Page not found." in r.data


def test_https_redirect_runs_before_headless_filter(app):
    r = app.test_client().get("/", headers={"User-Agent": "Mozilla/5.0 HeadlessChrome/120.0"})
    assert r.status_code == 301
    assert r.headers["Location"] == "https://localhost/"


def test_machine_endpoint_requires_token(client):
    assert client.post("/x/sign-on-tokens/purge").status_code == 401
    r = client.post("/x/sign-on-tokens/purge", headers={"x-machine-token": "wrong"})
    assert r.status_code == 401
    assert r.json == {"error": "unauthorized"}


def test_machine_endpoint_accepts_token(client):
    r = client.post("/x/sign-on-tokens/purge", headers={"x-machine-token": "machine-secret"})
    assert r.status_code == 200
    assert r.json == {"deleted": 0}


def test_unset_machine_token_rejects_everything(app, client):
    app.config["MACHINE_TOKEN"] = ""
    r = client.post("/x/sign-on-tokens/purge", headers={"x-machine-token": ""})
    assert r.status_code == 401


def test_create_sign_on_token_validates_payload(client):
    headers = {"x-machine-token": "machine-secret"}
    r = client.post("/x/sign-on-tokens", json={"email": "a@example.com", "user_type": "pirate"}, headers=headers)
    assert r.status_code == 400
    r = client.post("/x/sign-on-tokens", json={"email": 5, "user_type": "developer"}, headers=headers)
    assert r.status_code == 400
    assert r.json == {"error": "bad request"}
    r = client.post("/x/sign-on-tokens", json=["a@example.com", "developer"], headers=headers)
    assert r.status_code == 400
    r = client.post("/x/sign-on-tokens", json={"email": "a@example.com", "user_type": "developer"}, headers=headers)
    assert r.status_code == 201
    assert r.json["sign_on_path"] == f"/auth/token/{r.json['token']}"
