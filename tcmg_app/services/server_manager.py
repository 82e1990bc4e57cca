from __future__ import annotations

import contextlib
import logging
import time
from typing import Callable

from tcmg_app.common.errors import StartFailure
from tcmg_app.constants import DEBUG_LEVEL_MAX, DEBUG_LEVEL_MIN
from tcmg_app.services.backend import ServerBackend
from tcmg_app.services.keepalive import KEEPALIVE, KeepAlive
from tcmg_app.state import ServerHandle, SupervisorState


class ProcessSupervisor:
    """
    Manages the lifecycle of the card server behind a ``ServerBackend``.

    - start/stop are fire-and-forget commands; callers poll ``is_running()``.
    - Liveness is always re-queried from the backend, never cached.
    - The keep-alive token is held from a successful start until stop or
      teardown (``close()`` / context exit).
    """

    def __init__(
        self,
        backend: ServerBackend,
        keepalive: KeepAlive | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.keepalive = keepalive or KEEPALIVE
        self._clock = clock
        self._started_at: float | None = None
        self._guard = contextlib.ExitStack()

    def __enter__(self) -> "ProcessSupervisor":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def keepalive_held(self) -> bool:
        return self.keepalive.held

    @property
    def started_at(self) -> float | None:
        return self._started_at

    @property
    def state(self) -> SupervisorState:
        return SupervisorState.RUNNING if self.is_running() else SupervisorState.STOPPED

    def is_running(self) -> bool:
        try:
            return bool(self.backend.is_running())
        except Exception as e:
            logging.error("ProcessSupervisor: is_running query failed: %s", e)
            return False

    def webif_port(self) -> int | None:
        if not self.is_running():
            return None
        try:
            port = int(self.backend.get_webif_port())
        except Exception as e:
            logging.error("ProcessSupervisor: webif port query failed: %s", e)
            return None
        return port if port > 0 else None

    def uptime(self) -> float | None:
        if self._started_at is None or not self.is_running():
            return None
        return max(0.0, self._clock() - self._started_at)

    def snapshot(self) -> ServerHandle:
        running = self.is_running()
        return ServerHandle(
            running=running,
            webif_port=self.webif_port() if running else None,
            started_at=self._started_at if running else None,
        )

    def start(self, config_dir: str | None = None, debug_level: int = 0) -> None:
        """
        Ask the backend to start serving.

        Raises StartFailure when the backend reports a non-zero code. A start
        while already running is a logged no-op.
        """
        if not DEBUG_LEVEL_MIN <= debug_level <= DEBUG_LEVEL_MAX:
            raise ValueError(
                f"debug_level must be in {DEBUG_LEVEL_MIN}..{DEBUG_LEVEL_MAX}, got {debug_level}"
            )
        if self.is_running():
            logging.info("ProcessSupervisor: server already running, start skipped")
            return

        self._guard.enter_context(self.keepalive.hold())
        logging.info(
            "ProcessSupervisor: starting server (config_dir=%s debug=%s)", config_dir, debug_level
        )
        try:
            rc = self.backend.start(config_dir, debug_level)
        except Exception:
            self._guard.close()
            raise
        if rc != 0:
            self._guard.close()
            logging.error("ProcessSupervisor: server start returned %s", rc)
            raise StartFailure(rc)
        self._started_at = self._clock()

    def stop(self) -> None:
        """Request a graceful shutdown. Safe to call when not running."""
        try:
            if self.is_running():
                logging.info("ProcessSupervisor: stopping server")
                self.backend.stop()
            else:
                logging.debug("ProcessSupervisor: stop requested while not running")
        finally:
            self._started_at = None
            self._guard.close()

    def close(self) -> None:
        self.stop()
