"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _load_env_file(path: str = ".env") -> None:
    """Populate os.environ from the provided .env file if it exists."""

    env_path = Path(path)
    if not env_path.exists():
        return

    for line in env_path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


@dataclass(frozen=True, slots=True)
class Settings:
    """Centralised project settings based on OS environment variables."""

    environment: str = "dev"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./data/app.db"
    draft_root: str = "data/drafts"

    # "local" keeps users in the SQL database, "remote" proxies to the Go backend.
    user_backend: str = "local"
    backend_base_url: str = "http://localhost:8080"
    backend_health_path: str = "/health"
    request_timeout: float = 15.0

    session_cookie_name: str = "session"


def _build_settings() -> Settings:
    _load_env_file()

    return Settings(
        environment=os.getenv("ENVIRONMENT", "dev"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/app.db"),
        draft_root=os.getenv("DRAFT_ROOT", "data/drafts"),
        user_backend=os.getenv("USER_BACKEND", "local").lower(),
        backend_base_url=os.getenv("BACKEND_BASE_URL", "http://localhost:8080"),
        backend_health_path=os.getenv("BACKEND_HEALTH_PATH", "/health"),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "15")),
        session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "session"),
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance to avoid re-reading configuration."""

    return _build_settings()
