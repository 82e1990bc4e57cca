from __future__ import annotations

import enum
import logging
from collections.abc import Callable

from tcmg_app.common.errors import StartFailure
from tcmg_app.config import Config
from tcmg_app.services.server_manager import ProcessSupervisor


class HostCommand(enum.Enum):
    START = "START"
    STOP = "STOP"


def handle_command(
    supervisor: ProcessSupervisor,
    command: HostCommand | str,
    config_dir: str | None = None,
    debug_level: int = 0,
    on_error: Callable[[str | None], None] | None = None,
) -> bool:
    """
    Dispatch a START/STOP command to the supervisor.

    A failed start is logged once, passed to ``on_error`` and reported as
    False; it is never retried here. A successful start passes None so a
    stale message can be cleared.
    """
    cmd = HostCommand(command) if isinstance(command, str) else command
    if cmd is HostCommand.STOP:
        supervisor.stop()
        return True
    try:
        supervisor.start(config_dir, debug_level)
    except StartFailure as e:
        logging.error("Host: %s", e)
        if on_error is not None:
            on_error(str(e))
        return False
    if on_error is not None:
        on_error(None)
    return True


def boot(
    supervisor: ProcessSupervisor,
    config: Config,
    on_error: Callable[[str | None], None] | None = None,
) -> bool:
    """Issue START once at host start-up when auto-start is enabled."""
    if not config.AUTO_START:
        logging.debug("Host: auto-start disabled, skipping")
        return False
    logging.info("Host: auto-starting server (config_dir=%s)", config.CONFIG_DIR)
    return handle_command(
        supervisor,
        HostCommand.START,
        config_dir=config.CONFIG_DIR,
        debug_level=config.DEBUG_LEVEL,
        on_error=on_error,
    )
