"""
Environment-driven settings.

Every setting is a small function so tests can monkeypatch the environment
without reloading modules. Defaults keep local development simple; production
deployments set the real values.
"""

from __future__ import annotations

import os
import re

DEFAULT_ACCESS_TOKEN_SECONDS = 15 * 60
DEFAULT_REFRESH_TOKEN_SECONDS = 7 * 24 * 60 * 60

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def _env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def parse_duration(raw: str, default: int = DEFAULT_ACCESS_TOKEN_SECONDS) -> int:
    """
    Convert "15m" / "2h" / "30s" / "7d" into seconds.

    Anything that does not match `<digits><unit>` falls back to `default`.
    """
    match = _DURATION_RE.match((raw or "").strip())
    if match is None:
        return default
    return int(match.group(1)) * _DURATION_UNITS[match.group(2)]


def environment() -> str:
    return (os.environ.get("NODE_ENV") or os.environ.get("APP_ENV") or "development").strip().lower()


def is_production() -> bool:
    return environment() == "production"


def port() -> int:
    return _env_int("PORT", 4000)


def log_level() -> str:
    return _env_str("LOG_LEVEL", "INFO").upper()


# Supabase

def supabase_url() -> str:
    return _env_str("SUPABASE_URL").rstrip("/")


def supabase_anon_key() -> str:
    return _env_str("SUPABASE_ANON_KEY")


def supabase_service_role_key() -> str:
    return _env_str("SUPABASE_SERVICE_ROLE_KEY")


# Student tokens

def jwt_secret() -> str:
    return _env_str("JWT_SECRET", "dev-change-this-secret")


def jwt_refresh_secret() -> str:
    return _env_str("JWT_REFRESH_SECRET", "dev-change-this-refresh-secret")


def jwt_algorithm() -> str:
    return _env_str("JWT_ALG", "HS256")


def student_access_token_seconds() -> int:
    return parse_duration(os.environ.get("JWT_EXPIRES_IN", ""), DEFAULT_ACCESS_TOKEN_SECONDS)


def student_refresh_token_seconds() -> int:
    return _env_int("JWT_REFRESH_TOKEN_EXPIRY_SECONDS", DEFAULT_REFRESH_TOKEN_SECONDS)


# Rate limiting

def rate_limit_enabled() -> bool:
    return _env_bool("RATE_LIMIT_ENABLED", True)


def rate_limit_window_seconds() -> int:
    window_ms = _env_int("RATE_LIMIT_WINDOW_MS", 900_000)
    return max(1, window_ms // 1000)


def rate_limit_max_requests() -> int:
    return _env_int("RATE_LIMIT_MAX_REQUESTS", 200)


# Stripe

def stripe_secret_key() -> str:
    return _env_str("STRIPE_SECRET_KEY")


def stripe_webhook_secret() -> str:
    return _env_str("STRIPE_WEBHOOK_SECRET")


# Frontend

def client_url() -> str:
    return _env_str("CLIENT_URL", "http://localhost:3000").rstrip("/")


def frontend_url() -> str:
    return _env_str("FRONTEND_URL", client_url()).rstrip("/")


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "").strip()
    if not raw:
        return [client_url()]
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]
