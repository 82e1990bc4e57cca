from __future__ import annotations

import logging

from tcmg_app.constants import LOG_BUFFER_MAX_CHARS, LOG_PULL_HARD_LIMIT, LOG_PULL_MAX_LINES
from tcmg_app.services.backend import ServerBackend
from tcmg_app.state import LogCursor


class LogStreamBridge:
    """
    Incremental reader over the server's log ring.

    Stateless between calls: the caller owns the cursor and passes the
    returned one to the next ``pull``. Nothing new is an empty string, never
    an error.
    """

    def __init__(self, backend: ServerBackend) -> None:
        self.backend = backend

    def pull(
        self, cursor: LogCursor, max_lines: int = LOG_PULL_MAX_LINES
    ) -> tuple[str, LogCursor]:
        if max_lines <= 0 or max_lines > LOG_PULL_HARD_LIMIT:
            max_lines = LOG_PULL_MAX_LINES
        try:
            text, next_id = self.backend.get_log_lines(cursor.next_id, max_lines)
        except Exception as e:
            logging.debug("LogStreamBridge: pull from %s failed: %s", cursor.next_id, e)
            return "", cursor
        # A cursor never moves backwards, whatever the source reports
        new_cursor = LogCursor(max(cursor.next_id, int(next_id)))
        return text or "", new_cursor


class LogBuffer:
    """
    Bounded display buffer for delivered log text.

    When the text grows past ``max_chars`` the oldest part is dropped at a
    line boundary, keeping roughly the newest ``max_chars / 2`` characters.
    """

    def __init__(self, max_chars: int = LOG_BUFFER_MAX_CHARS) -> None:
        if max_chars <= 0:
            raise ValueError("max_chars must be > 0")
        self.max_chars = max_chars
        self.trimmed = 0
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    @property
    def line_count(self) -> int:
        return self._text.count("\n")

    def append(self, text: str) -> None:
        if not text:
            return
        cur = self._text + text
        if len(cur) > self.max_chars:
            cut = cur.find("\n", len(cur) - self.max_chars // 2)
            cur = cur[cut + 1 :] if cut >= 0 else ""
            self.trimmed += 1
        self._text = cur


class LogFollower:
    """One observer's view of the log: a bridge, its own cursor and buffer."""

    def __init__(
        self,
        bridge: LogStreamBridge,
        max_lines: int = LOG_PULL_MAX_LINES,
        buffer: LogBuffer | None = None,
    ) -> None:
        self.bridge = bridge
        self.max_lines = max_lines
        self.buffer = buffer or LogBuffer()
        self.cursor = LogCursor()

    def poll(self) -> str:
        """Pull new text, append it to the buffer and return it ("" when idle)."""
        text, self.cursor = self.bridge.pull(self.cursor, self.max_lines)
        if text:
            self.buffer.append(text)
        return text
