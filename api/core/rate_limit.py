"""
Per-client request limiting (slowapi, in-memory storage).
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from . import config


def default_limit() -> str:
    return f"{config.rate_limit_max_requests()}/{config.rate_limit_window_seconds()} seconds"


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[default_limit()],
    enabled=config.rate_limit_enabled(),
)
