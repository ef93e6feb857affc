"""Configuration helpers for backend runtime."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class BackendSettings:
    server_salt: str
    database_url: str | None
    host: str
    port: int
    log_level: str = "INFO"


def load_settings() -> BackendSettings:
    port_raw = os.getenv("GMTRACKER_PORT", "8000")
    return BackendSettings(
        server_salt=os.getenv("GMTRACKER_SERVER_SALT", "dev-salt"),
        database_url=os.getenv("GMTRACKER_DATABASE_URL") or None,
        host=os.getenv("GMTRACKER_HOST", "127.0.0.1"),
        port=int(port_raw),
        log_level=os.getenv("GMTRACKER_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(settings: BackendSettings) -> None:
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
