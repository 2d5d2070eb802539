from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from .logger import get_logger
from .paths import default_database_url

log = get_logger("core.config")

BACKEND_KINDS = ("rest", "sql")


@dataclass
class Settings:
    env: str = "development"
    backend: str = "sql"
    supabase_url: str = ""
    supabase_key: str = ""
    database_url: str = ""
    chat_table: str = "message"
    poll_interval_ms: int = 250
    http_timeout: float = 10.0
    image_domains: List[str] = field(default_factory=lambda: ["127.0.0.1"])
    transpile_packages: List[str] = field(default_factory=list)
    frontend_dir: Optional[str] = None

    @property
    def is_prod(self) -> bool:
        return self.env == "production"

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000.0

    def validate(self) -> "Settings":
        if self.backend not in BACKEND_KINDS:
            raise ValueError(f"unknown backend {self.backend!r}, expected one of {BACKEND_KINDS}")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll interval must be positive")
        if self.http_timeout <= 0:
            raise ValueError("http timeout must be positive")
        if not self.chat_table:
            raise ValueError("chat table name is required")
        if self.backend == "rest" and not self.supabase_url:
            raise ValueError("SUPABASE_URL is required for the rest backend")
        return self


def _split_list(raw: Optional[str], default: List[str]) -> List[str]:
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings(dotenv: bool = True) -> Settings:
    if dotenv:
        load_dotenv()

    env = (os.environ.get("ROOMCHAT_ENV") or os.environ.get("NODE_ENV") or "development").strip().lower()
    defaults = Settings()

    settings = Settings(
        env=env,
        backend=os.environ.get("ROOMCHAT_BACKEND", defaults.backend).strip().lower(),
        supabase_url=os.environ.get("SUPABASE_URL", "").strip().rstrip("/"),
        supabase_key=os.environ.get("SUPABASE_ANON_KEY", "").strip(),
        database_url=os.environ.get("ROOMCHAT_DATABASE_URL", "").strip(),
        chat_table=os.environ.get("ROOMCHAT_CHAT_TABLE", defaults.chat_table).strip(),
        poll_interval_ms=_int_env("ROOMCHAT_POLL_INTERVAL_MS", defaults.poll_interval_ms),
        http_timeout=_float_env("ROOMCHAT_HTTP_TIMEOUT", defaults.http_timeout),
        image_domains=_split_list(os.environ.get("ROOMCHAT_IMAGE_DOMAINS"), defaults.image_domains),
        transpile_packages=_split_list(os.environ.get("ROOMCHAT_TRANSPILE_PACKAGES"), defaults.transpile_packages),
        frontend_dir=os.environ.get("ROOMCHAT_FRONTEND_DIR", "").strip() or None,
    )
    if settings.backend == "sql" and not settings.database_url:
        settings.database_url = default_database_url()

    settings.validate()
    log.debug(
        f"Settings loaded: env={settings.env}, backend={settings.backend}, "
        f"table={settings.chat_table}, poll={settings.poll_interval_ms}ms, "
        f"supabase_key={'SET' if settings.supabase_key else 'MISSING'}"
    )
    return settings
