import pytest

from app.jobboard import create_app
from app.jobboard.models import Base


def _set_env(monkeypatch, tmp_path, env="test"):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("JWT_KEY", "test-jwt-key-with-at-least-32-bytes!!")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", env)
    for k in ("TEMPLATES_DIR", "MACHINE_TOKEN", "IDENTITY_PROJECT_ID", "GZIP_MIN_SIZE", "JWT_TTL_HOURS"):
        monkeypatch.delenv(k, raising=False)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    _set_env(monkeypatch, tmp_path)
    app = create_app()
    app.config["SESSION_COOKIE_SECURE"] = False
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def client(app):
    c = app.test_client()
    c.environ_base["HTTP_X_FORWARDED_PROTO"] = "https"
    return c


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_index_renders_for_anonymous(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b"Sign in to post jobs" in r.data


def test_auth_page_renders(client):
    r = client.get("/auth")
    assert r.status_code == 200
    assert b"Sign in" in r.data


def test_unknown_page_renders_404_template(client):
    r = client.get("/no-such-page")
    assert r.status_code == 404
    assert b"Page not found." in r.data


def test_unknown_api_path_returns_json_404(client):
    r = client.get("/api/v1/nope")
    assert r.status_code == 404
    assert r.json == {"error": "not found"}


def test_autologin_rejects_offsite_redirect_target(client):
    r = client.get("/autologin?directto=//evil.example.com")
    assert r.status_code == 200
    assert b"/profile/home" in r.data
    assert b"evil.example.com" not in r.data


def test_production_requires_postgres(tmp_path, monkeypatch):
    _set_env(monkeypatch, tmp_path, env="production")
    with pytest.raises(RuntimeError):
        create_app()


def test_dev_mode_skips_https_and_watches_templates(tmp_path, monkeypatch):
    _set_env(monkeypatch, tmp_path, env="dev")
    app = create_app()
    renderer = app.extensions["template_renderer"]
    try:
        assert renderer._observer is not None
        r = app.test_client().get("/health")
        assert r.status_code == 200
        assert "X-Frame-Options" not in r.headers
    finally:
        renderer.close()
