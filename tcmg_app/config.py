from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from tcmg_app.common.logging_config import TRACE
from tcmg_app.constants import DEFAULT_CONFIG_DIR, DEFAULT_SERVER_BIN

_TRUTHY = ("1", "true", "True", "yes", "YES", "on")


def _resolve_log_level(value: str | None) -> int:
    if value:
        name = value.strip().upper()
        mapping = {
            "TRACE": TRACE,
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL,
        }
        return mapping.get(name, logging.WARNING)
    return logging.WARNING


def _resolve_debug_level(value: str | None) -> int:
    try:
        return max(0, min(9, int(value or "0")))
    except ValueError:
        return 0


@dataclass
class Config:
    """Runtime configuration for the supervisor and the NiceGUI host."""

    SERVER_BIN: str = DEFAULT_SERVER_BIN
    CONFIG_DIR: Optional[str] = DEFAULT_CONFIG_DIR
    DEBUG_LEVEL: int = 0
    AUTO_START: bool = False
    UI_HOST: str = "0.0.0.0"
    UI_PORT: int = 8090
    LOG_LEVEL: int = logging.WARNING

    @classmethod
    def from_env(cls) -> "Config":
        server_bin = os.getenv("TCMG_SERVER_BIN", DEFAULT_SERVER_BIN)
        config_dir = os.getenv("TCMG_CONFIG_DIR", DEFAULT_CONFIG_DIR) or None
        debug_level = _resolve_debug_level(os.getenv("TCMG_DEBUG_LEVEL"))
        auto_start = os.getenv("TCMG_AUTO_START", "0") in _TRUTHY
        ui_host = os.getenv("TCMG_UI_HOST", "0.0.0.0")
        ui_port = int(os.getenv("TCMG_UI_PORT", "8090"))
        log_level = _resolve_log_level(os.getenv("TCMG_LOG_LEVEL"))
        return cls(
            SERVER_BIN=server_bin,
            CONFIG_DIR=config_dir,
            DEBUG_LEVEL=debug_level,
            AUTO_START=auto_start,
            UI_HOST=ui_host,
            UI_PORT=ui_port,
            LOG_LEVEL=log_level,
        )
