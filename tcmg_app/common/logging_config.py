from __future__ import annotations

import logging
import sys
import threading
import weakref
from typing import Protocol

# Below DEBUG; used for per-tick poller chatter
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_RESET = "\033[0m"
_DIM = "\033[2m"
_COLOR_BY_LEVEL = {
    TRACE: "\033[32m",
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[37m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[41m",
}

CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(message)s"
UI_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
TIME_FORMAT = "%H:%M:%S"


class AnsiColorFormatter(logging.Formatter):
    """Console formatter: dim timestamp, level name colored by severity."""

    def __init__(self, colored: bool = True) -> None:
        super().__init__(fmt=CONSOLE_FORMAT, datefmt=TIME_FORMAT)
        self.colored = colored and sys.stderr.isatty()

    def _color_for(self, levelno: int) -> str:
        # Custom levels between the standard ones take the nearest lower color
        for threshold in sorted(_COLOR_BY_LEVEL, reverse=True):
            if levelno >= threshold:
                return _COLOR_BY_LEVEL[threshold]
        return ""

    def formatMessage(self, record: logging.LogRecord) -> str:
        if not self.colored:
            return super().formatMessage(record)
        color = self._color_for(record.levelno)
        return (
            f"{_DIM}{record.asctime}{_RESET} "
            f"{color}{record.levelname}{_RESET} {record.getMessage()}"
        )


class LogSink(Protocol):
    def push(self, line: str) -> None: ...


class NiceGuiLogHandler(logging.Handler):
    """
    Mirror commander log records into browser log panels.

    Sinks are held weakly; a sink whose client disconnected either gets
    collected or raises on ``push`` and is dropped.
    """

    _sinks: set[weakref.ref] = set()
    _lock = threading.Lock()

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self.setFormatter(logging.Formatter(UI_FORMAT, TIME_FORMAT))

    @classmethod
    def add_sink(cls, sink: LogSink) -> None:
        with cls._lock:
            cls._sinks.add(weakref.ref(sink))

    @classmethod
    def remove_sink(cls, sink: LogSink) -> None:
        with cls._lock:
            cls._sinks.discard(weakref.ref(sink))

    @classmethod
    def sink_count(cls) -> int:
        with cls._lock:
            return sum(1 for ref in cls._sinks if ref() is not None)

    def emit(self, record: logging.LogRecord) -> None:
        if not self._sinks:
            return
        line = self.format(record)
        with self._lock:
            for ref in list(self._sinks):
                sink = ref()
                try:
                    if sink is None:
                        raise ReferenceError
                    sink.push(line)
                except Exception:
                    self._sinks.discard(ref)


def attach_ui_log(sink: LogSink) -> None:
    """Register a ``ui.log`` (or anything with ``push(str)``) for commander records."""
    try:
        NiceGuiLogHandler.add_sink(sink)
    except TypeError:
        # not weak-referenceable
        return


def detach_ui_log(sink: LogSink) -> None:
    try:
        NiceGuiLogHandler.remove_sink(sink)
    except TypeError:
        return


def configure_logging(
    level: int = logging.INFO, use_color: bool = True, add_ui_handler: bool = True
) -> logging.Logger:
    """
    Set up the root logger for the commander process.

    Installs one colored stderr handler and, with ``add_ui_handler``, one
    NiceGUI mirror handler. Calling again only adjusts levels.
    """
    root = logging.getLogger()
    root.setLevel(level)

    console = next((h for h in root.handlers if isinstance(h.formatter, AnsiColorFormatter)), None)
    if console is None:
        console = logging.StreamHandler(stream=sys.stderr)
        console.setFormatter(AnsiColorFormatter(colored=use_color))
        root.addHandler(console)
    console.setLevel(level)

    mirror = next((h for h in root.handlers if isinstance(h, NiceGuiLogHandler)), None)
    if add_ui_handler:
        if mirror is None:
            mirror = NiceGuiLogHandler()
            root.addHandler(mirror)
        mirror.setLevel(max(level, logging.INFO))

    return root
