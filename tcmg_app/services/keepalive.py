from __future__ import annotations

import contextlib
import logging
import shutil
import subprocess
import threading
from typing import Iterator, Protocol

from tcmg_app.common.errors import ResourceUnavailable
from tcmg_app.constants import KEEPALIVE_NAME


class Inhibitor(Protocol):
    def acquire(self, name: str) -> None:
        """Block CPU suspend; raise ResourceUnavailable if that is not possible."""
        ...

    def release(self) -> None: ...


class SystemdInhibitor:
    """
    Holds a ``systemd-inhibit`` child for as long as suspend must be blocked.

    The inhibitor lock lives exactly as long as the child process, so
    releasing is a matter of terminating it.
    """

    def __init__(self, exe: str = "systemd-inhibit") -> None:
        self.exe = exe
        self._proc: subprocess.Popen | None = None

    def acquire(self, name: str) -> None:
        path = shutil.which(self.exe)
        if path is None:
            raise ResourceUnavailable(f"{self.exe} not found")
        args = [
            path,
            "--what=idle:sleep",
            f"--who={name}",
            "--why=card server running",
            "--mode=block",
            "sleep",
            "infinity",
        ]
        try:
            self._proc = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise ResourceUnavailable(f"failed to run {self.exe}: {e}") from e

    def release(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None or proc.poll() is not None:
            return
        proc.terminate()
        # release never blocks; a daemon thread waits for the child
        threading.Thread(target=self._reap, args=(proc,), name="tcmg-inhibit-reap", daemon=True).start()

    @staticmethod
    def _reap(proc: subprocess.Popen, timeout: float = 2.0) -> None:
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logging.warning("SystemdInhibitor: pid %s ignored SIGTERM, killing", proc.pid)
            proc.kill()
            proc.wait()


class KeepAlive:
    """
    Process-wide keep-CPU-alive token.

    Not reference counted: acquiring while held is a no-op and releasing
    while not held is a no-op. Use ``hold()`` to scope it.
    """

    def __init__(self, inhibitor: Inhibitor | None = None, name: str = KEEPALIVE_NAME) -> None:
        self.name = name
        self._inhibitor = inhibitor or SystemdInhibitor()
        self._held = False
        self._lock = threading.Lock()

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        with self._lock:
            if self._held:
                return
            self._inhibitor.acquire(self.name)
            self._held = True
            logging.debug("KeepAlive: %s acquired", self.name)

    def release(self) -> None:
        with self._lock:
            if not self._held:
                return
            self._held = False
            try:
                self._inhibitor.release()
            except OSError as e:
                logging.warning("KeepAlive: release of %s failed: %s", self.name, e)
            logging.debug("KeepAlive: %s released", self.name)

    @contextlib.contextmanager
    def hold(self) -> Iterator[bool]:
        """
        Hold the token for the duration of the block.

        Yields whether the token is actually held; an unavailable resource is
        logged and the block still runs. Release happens on every exit path.
        """
        try:
            self.acquire()
        except ResourceUnavailable as e:
            logging.warning("KeepAlive: %s unavailable, continuing without it: %s", self.name, e)
        try:
            yield self._held
        finally:
            self.release()


# Module-level singleton instance
KEEPALIVE = KeepAlive()
