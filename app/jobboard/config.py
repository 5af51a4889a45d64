import os
from dataclasses import dataclass
from pathlib import Path

from app.jobboard.constants import DEV_ENV, SESSION_COOKIE_NAME

DEFAULT_TEMPLATES_DIR = str(Path(__file__).resolve().parent / "templates")


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    jwt_key: str
    jwt_ttl_hours: int
    machine_token: str
    templates_dir: str
    gzip_min_size: int
    log_level: str

    identity_project_id: str
    identity_issuer: str
    identity_jwks_url: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    return int(raw)


def load_settings() -> Settings:
    project_id = _getenv("IDENTITY_PROJECT_ID", "")
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", DEV_ENV),
        database_url=_getenv("DATABASE_URL", "sqlite:///jobboard.db"),
        jwt_key=_getenv("JWT_KEY", "change-me"),
        jwt_ttl_hours=_getenv_int("JWT_TTL_HOURS", 24 * 7),
        machine_token=_getenv("MACHINE_TOKEN", ""),
        templates_dir=_getenv("TEMPLATES_DIR", DEFAULT_TEMPLATES_DIR),
        gzip_min_size=_getenv_int("GZIP_MIN_SIZE", 500),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        identity_project_id=project_id,
        identity_issuer=_getenv("IDENTITY_ISSUER", f"https://securetoken.google.com/{project_id}"),
        identity_jwks_url=_getenv(
            "IDENTITY_JWKS_URL",
            "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com",
        ),
    )


def load_config() -> dict:
    s = load_settings()
    is_dev = s.env == DEV_ENV
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "JWT_KEY": s.jwt_key,
        "JWT_TTL_HOURS": s.jwt_ttl_hours,
        "MACHINE_TOKEN": s.machine_token,
        "TEMPLATES_DIR": s.templates_dir,
        "GZIP_MIN_SIZE": s.gzip_min_size,
        "LOG_LEVEL": s.log_level,
        "IDENTITY_PROJECT_ID": s.identity_project_id,
        "IDENTITY_ISSUER": s.identity_issuer,
        "IDENTITY_JWKS_URL": s.identity_jwks_url,
        # session cookie holds the signed jwt under the "jwt" key
        "SESSION_COOKIE_NAME": SESSION_COOKIE_NAME,
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": not is_dev,
    }
