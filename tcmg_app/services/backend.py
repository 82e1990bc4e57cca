from __future__ import annotations

import contextlib
import logging
import os
import shutil
import signal
import subprocess
import threading
from pathlib import Path
from typing import IO, Protocol

from tcmg_app.constants import (
    DEFAULT_WEBIF_ENABLED,
    DEFAULT_WEBIF_PORT,
    LOG_RING_MAX,
    SERVER_CONFIG_FILE,
    STOP_GRACE_S,
)


class ServerBackend(Protocol):
    """
    Command/query surface of the card server.

    Implementations must be safe to call from several threads without
    additional locking.
    """

    def start(self, config_dir: str | None, debug_level: int) -> int:
        """Begin serving. Returns 0 on success, a negative code on error."""
        ...

    def stop(self) -> None: ...

    def is_running(self) -> bool: ...

    def get_log_lines(self, from_id: int, max_lines: int) -> tuple[str, int]:
        """Return (newline-joined text, next id) for lines with serial id >= from_id."""
        ...

    def get_webif_port(self) -> int:
        """Positive port, or <= 0 when the WebIF is not available."""
        ...


class LogRing:
    """
    Bounded ring of log lines tagged with an ever-increasing serial id.

    Once more than ``capacity`` lines were written, the oldest ones are
    overwritten; a ``from_id`` older than the oldest retained line is
    clamped to it. ``since(0, ...)`` therefore yields the latest batch.
    """

    def __init__(self, capacity: int = LOG_RING_MAX) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = capacity
        self._slots: list[str | None] = [None] * capacity
        self._total = 0
        self._lock = threading.Lock()

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    def append(self, line: str) -> None:
        with self._lock:
            self._slots[self._total % self.capacity] = line
            self._total += 1

    def since(self, from_id: int, max_lines: int) -> tuple[list[str], int]:
        with self._lock:
            oldest = max(0, self._total - self.capacity)
            start = max(from_id, oldest)
            end = min(self._total, start + max(0, max_lines))
            lines = [self._slots[i % self.capacity] or "" for i in range(start, end)]
            # Next id reflects what was actually handed out so a capped
            # batch resumes where it stopped.
            next_id = end if lines else max(from_id, self._total)
            return lines, next_id


def read_webif_port(config_dir: str | None) -> int:
    """
    Read the WebIF port from ``<config_dir>/config.cfg``.

    Only the ``[webif]`` section is considered (keys ENABLED and PORT).
    Missing file or keys fall back to the server defaults. Returns -1
    when the WebIF is disabled.
    """
    enabled = DEFAULT_WEBIF_ENABLED
    port = DEFAULT_WEBIF_PORT
    if not config_dir:
        return port
    path = Path(config_dir) / SERVER_CONFIG_FILE
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return port

    section = ""
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip().lower()
            continue
        if section != "webif" or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.split("#", 1)[0].strip()
        key = key.strip().upper()
        try:
            if key == "ENABLED":
                enabled = int(value, 0) != 0
            elif key == "PORT":
                candidate = int(value, 0)
                if 1 <= candidate <= 65535:
                    port = candidate
        except ValueError:
            logging.debug("read_webif_port: ignoring %s=%r in %s", key, value, path)
    return port if enabled else -1


class SubprocessBackend:
    """
    Runs the ``tcmg`` executable as a child process.

    - Launch arguments mirror the server CLI: ``-d <level>`` (only when > 0)
      and ``-c <dir>`` (only when given).
    - stdout/stderr are merged and fed line by line into a ``LogRing`` by a
      daemon reader thread.
    - ``stop`` sends SIGTERM and arms a timer that kills the process if it is
      still alive after the grace period; it never blocks.
    - The WebIF port is read from ``config.cfg`` at launch and reported for
      the lifetime of that process.
    """

    def __init__(
        self,
        server_bin: str,
        ring: LogRing | None = None,
        grace_s: float = STOP_GRACE_S,
    ) -> None:
        self.server_bin = server_bin
        self.ring = ring or LogRing()
        self.grace_s = grace_s
        self._proc: subprocess.Popen | None = None
        self._webif_port = -1
        self._kill_timer: threading.Timer | None = None
        self._lock = threading.Lock()

    @property
    def pid(self) -> int | None:
        proc = self._proc
        return proc.pid if proc is not None and proc.poll() is None else None

    def _resolve_bin(self) -> str | None:
        if os.sep in self.server_bin:
            p = Path(self.server_bin)
            return str(p) if p.is_file() and os.access(p, os.X_OK) else None
        return shutil.which(self.server_bin)

    def build_args(self, exe: str, config_dir: str | None, debug_level: int) -> list[str]:
        args = [exe]
        if debug_level > 0:
            args += ["-d", str(debug_level)]
        if config_dir:
            args += ["-c", config_dir]
        return args

    def _reader(self, stream: IO[str]) -> None:
        try:
            for line in iter(stream.readline, ""):
                self.ring.append(line.rstrip("\n"))
        except (OSError, ValueError) as e:
            self.ring.append(f"[supervisor] log reader error: {e}")
        finally:
            with contextlib.suppress(Exception):
                stream.close()

    def start(self, config_dir: str | None, debug_level: int) -> int:
        with self._lock:
            if self._proc is not None and self._proc.poll() is None:
                logging.warning("SubprocessBackend: start requested while running")
                return -1

            exe = self._resolve_bin()
            if exe is None:
                logging.error("SubprocessBackend: server binary not found: %s", self.server_bin)
                return -3

            args = self.build_args(exe, config_dir, debug_level)
            # Working directory is the config dir so relative paths in config.cfg resolve
            cwd = config_dir if config_dir and Path(config_dir).is_dir() else None
            try:
                proc = subprocess.Popen(
                    args,
                    cwd=cwd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL,
                    text=True,
                    bufsize=1,
                    errors="replace",
                    start_new_session=True,
                )
            except OSError as e:
                logging.error("SubprocessBackend: failed to launch %s: %s", exe, e)
                return -(e.errno or 1)

            self._proc = proc
            # The server binds WebIF once at launch; later config edits do not move it
            self._webif_port = read_webif_port(config_dir)
            if proc.stdout is not None:
                threading.Thread(
                    target=self._reader,
                    args=(proc.stdout,),
                    name="tcmg-log-reader",
                    daemon=True,
                ).start()
            logging.info("SubprocessBackend: started %s (pid %s)", " ".join(args), proc.pid)
            return 0

    def stop(self) -> None:
        with self._lock:
            proc = self._proc
            if proc is None or proc.poll() is not None:
                return
            try:
                os.killpg(os.getpgid(proc.pid), signal.SIGTERM)
            except (ProcessLookupError, PermissionError):
                with contextlib.suppress(ProcessLookupError):
                    proc.terminate()
            if self._kill_timer is not None:
                self._kill_timer.cancel()
            self._kill_timer = threading.Timer(self.grace_s, self._kill_if_alive, args=(proc,))
            self._kill_timer.daemon = True
            self._kill_timer.start()
            self._webif_port = -1
            logging.info("SubprocessBackend: SIGTERM sent to pid %s", proc.pid)

    def _kill_if_alive(self, proc: subprocess.Popen) -> None:
        if proc.poll() is not None:
            return
        logging.warning("SubprocessBackend: pid %s ignored SIGTERM, killing", proc.pid)
        with contextlib.suppress(ProcessLookupError):
            proc.kill()

    def is_running(self) -> bool:
        proc = self._proc
        return proc is not None and proc.poll() is None

    def get_log_lines(self, from_id: int, max_lines: int) -> tuple[str, int]:
        lines, next_id = self.ring.since(from_id, max_lines)
        if not lines:
            return "", next_id
        return "\n".join(lines) + "\n", next_id

    def get_webif_port(self) -> int:
        if not self.is_running():
            return -1
        return self._webif_port
