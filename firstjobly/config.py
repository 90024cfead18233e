"""
Runtime configuration.

Settings are read from the process environment (after .env has been loaded
by load_env). Missing primary-store configuration is a normal input: it
selects the embedded SQLite fallback.
"""

import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field
from sqlalchemy.engine import make_url
from sqlalchemy.engine.url import URL

BACKEND_CHOICES = ("auto", "primary", "embedded")

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173,"
    "http://localhost:3000,"
    "https://www.firstjobly.in,"
    "https://firstjobly.in"
)


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}")


class Settings(BaseModel):
    # Primary store
    database_url: Optional[str] = None
    db_host: Optional[str] = None
    db_port: int = 4000
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_name: str = "test"
    db_driver: str = "mysql+pymysql"
    db_ssl: bool = True

    # Pool bounds
    pool_size: int = 15
    pool_timeout: int = 30
    connect_timeout: int = 20
    probe_retries: int = 0

    # Backend selection
    store_backend: str = "auto"
    sqlite_path: str = "./jobs_local.db"
    strict_schema: bool = False

    # Service
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    cors_origins: List[str] = Field(default_factory=list)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables."""
        env = os.environ if env is None else env

        backend = (env.get("STORE_BACKEND") or "auto").strip().lower()
        if backend not in BACKEND_CHOICES:
            raise ValueError(
                f"STORE_BACKEND must be one of {', '.join(BACKEND_CHOICES)}, got {backend!r}"
            )

        origins = env.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)

        return cls(
            database_url=(env.get("DATABASE_URL") or "").strip() or None,
            db_host=(env.get("DB_HOST") or "").strip() or None,
            db_port=_env_int(env, "DB_PORT", 4000),
            db_user=env.get("DB_USER") or None,
            db_password=env.get("DB_PASSWORD") or None,
            db_name=env.get("DB_NAME") or "test",
            db_driver=env.get("DB_DRIVER") or "mysql+pymysql",
            db_ssl=_env_bool(env, "DB_SSL", True),
            pool_size=_env_int(env, "DB_POOL_SIZE", 15),
            pool_timeout=_env_int(env, "DB_POOL_TIMEOUT", 30),
            connect_timeout=_env_int(env, "DB_CONNECT_TIMEOUT", 20),
            probe_retries=_env_int(env, "DB_PROBE_RETRIES", 0),
            store_backend=backend,
            sqlite_path=env.get("SQLITE_PATH") or "./jobs_local.db",
            strict_schema=_env_bool(env, "STRICT_SCHEMA", False),
            host=env.get("HOST") or "0.0.0.0",
            port=_env_int(env, "PORT", 3000),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
            log_dir=env.get("LOG_DIR") or None,
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )

    @property
    def primary_configured(self) -> bool:
        return bool(self.database_url or self.db_host)

    def primary_url(self) -> Optional[URL]:
        """SQLAlchemy URL of the primary store, or None when unconfigured."""
        if self.database_url:
            url = self.database_url
            # Hosted Postgres providers hand out postgres:// URLs
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql+psycopg://", 1)
            elif url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+psycopg://", 1)
            elif url.startswith("mysql://"):
                url = url.replace("mysql://", "mysql+pymysql://", 1)
            return make_url(url)
        if self.db_host:
            return URL.create(
                self.db_driver,
                username=self.db_user,
                password=self.db_password,
                host=self.db_host,
                port=self.db_port,
                database=self.db_name,
            )
        return None

    def redacted_url(self) -> str:
        """Primary URL with the password masked, safe for logs."""
        url = self.primary_url()
        if url is None:
            return ""
        return url.render_as_string(hide_password=True)
