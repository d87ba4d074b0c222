"""
Environment-based settings.

Values are read on every call instead of being cached at import time, so tests
(and long-running dev servers) can change env vars without reloading modules.
Invalid numbers fall back to the default.
"""

from __future__ import annotations

import os


def env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip() or default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def env_list(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def app_env() -> str:
    return env_str("APP_ENV", "development").lower()


def is_production() -> bool:
    return app_env() == "production"


def public_base_url() -> str:
    return env_str("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/")


def cors_origins() -> list[str]:
    return env_list("CORS_ORIGINS") or [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


def auto_init_schema() -> bool:
    return env_bool("AUTO_INIT_SCHEMA", False)


def stripe_secret_key() -> str:
    return env_str("STRIPE_SECRET_KEY")


def stripe_webhook_secret() -> str:
    return env_str("STRIPE_WEBHOOK_SECRET")


def stripe_api_base() -> str:
    return env_str("STRIPE_API_BASE", "https://api.stripe.com")


def download_window_days() -> int:
    return env_int("DOWNLOAD_WINDOW_DAYS", 30)


def max_downloads() -> int:
    return env_int("MAX_DOWNLOADS", 3)


def downloads_dir() -> str:
    return env_str("DOWNLOADS_DIR", "./downloads")
