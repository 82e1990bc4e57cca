from __future__ import annotations

from nicegui import ui

from tcmg_app.common.logging_config import attach_ui_log, detach_ui_log
from tcmg_app.constants import LOG_PULL_MAX_LINES
from tcmg_app.services.log_stream import LogFollower
from tcmg_app.services.status_poller import StatusPoller


class LogPage:
    """Live server log, plus the commander's own log records."""

    def __init__(self, poller: StatusPoller) -> None:
        self.poller = poller
        self.view = poller.view
        self.server_log: ui.label | None = None
        self.line_count_label: ui.label | None = None
        self.scroll: ui.scroll_area | None = None
        self.commander_log: ui.log | None = None
        self.follower: LogFollower | None = None

    def render(self, _text: str = "") -> None:
        """Show the follower's retained text; the count comes from the same buffer."""
        if self.follower is None or self.server_log is None:
            return
        buffer = self.follower.buffer
        self.server_log.set_text(buffer.text)
        if self.line_count_label is not None:
            self.line_count_label.set_text(f"{buffer.line_count} lines")
        if self.scroll is not None:
            self.scroll.scroll_to(percent=1.0)

    def build(self) -> None:
        with ui.card().classes("w-full"):
            with ui.row().classes("items-center gap-4"):
                ui.label("Server log").classes("text-md font-medium")
                ui.label().bind_text_from(self.view, "log_status").classes("text-sm")
                self.line_count_label = ui.label("0 lines").classes("text-sm").mark("line-count")
            with ui.scroll_area().classes("w-full h-96 border") as self.scroll:
                self.server_log = (
                    ui.label("")
                    .classes("whitespace-pre font-mono text-xs")
                    .mark("server-log")
                )
        with ui.card().classes("w-full"):
            ui.label("Commander").classes("text-md font-medium")
            self.commander_log = ui.log(max_lines=500).classes("w-full h-40")
        attach_ui_log(self.commander_log)

        self.follower = self.poller.attach_log_observer(self.render, max_lines=LOG_PULL_MAX_LINES)
        ui.context.client.on_delete(self.detach)

    def detach(self) -> None:
        if self.follower is not None:
            self.poller.detach_log_observer(self.follower)
            self.follower = None
        if self.commander_log is not None:
            detach_ui_log(self.commander_log)
