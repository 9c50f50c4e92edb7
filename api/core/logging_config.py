"""
Process-wide logging setup.
"""

from __future__ import annotations

import logging

from . import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging() -> None:
    level = getattr(logging, config.log_level(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # httpx logs every request line at INFO, including Supabase URLs.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
