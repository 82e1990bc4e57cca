from __future__ import annotations

import logging

from nicegui import app as ng_app
from nicegui import ui

from tcmg_app.config import Config
from tcmg_app.services.host import HostCommand, handle_command
from tcmg_app.services.server_manager import ProcessSupervisor
from tcmg_app.services.status_poller import StatusPoller
from tcmg_app.state import NetworkEndpoint, SupervisorState

AUTOSTART_KEY = "autostart_enabled"


class ControlPage:
    """Server control: start/stop, status, WebIF endpoints, auto-start switch."""

    def __init__(self, supervisor: ProcessSupervisor, poller: StatusPoller, config: Config) -> None:
        self.supervisor = supervisor
        self.poller = poller
        self.config = config
        self.view = poller.view
        self.webif_primary_btn: ui.button | None = None
        self.webif_ap_btn: ui.button | None = None

    # ---- Actions ----

    def _report(self, message: str | None) -> None:
        self.poller.report_error(message)
        if message:
            ui.notify(message, color="negative")

    def do_start(self) -> None:
        handle_command(
            self.supervisor,
            HostCommand.START,
            config_dir=self.config.CONFIG_DIR,
            debug_level=self.config.DEBUG_LEVEL,
            on_error=self._report,
        )

    def do_stop(self) -> None:
        handle_command(self.supervisor, HostCommand.STOP)

    def open_webif(self, url: str | None) -> None:
        if not url:
            ui.notify("WebIF not available", color="warning")
            return
        ui.run_javascript(f"window.open('{url}', '_blank')")

    def _set_autostart(self, enabled: bool) -> None:
        ng_app.storage.general[AUTOSTART_KEY] = bool(enabled)
        logging.info("Auto-start %s", "enabled" if enabled else "disabled")

    # ---- Observers ----

    def on_endpoints(self, endpoints: list[NetworkEndpoint]) -> None:
        if self.webif_primary_btn:
            self.webif_primary_btn.set_enabled(self.view.primary_url is not None)
        if self.webif_ap_btn:
            self.webif_ap_btn.set_enabled(self.view.access_point_url is not None)

    # ---- Layout ----

    def build(self) -> None:
        with ui.card().classes("w-full"):
            ui.label("Server").classes("text-md font-medium")
            with ui.row().classes("items-center gap-4"):
                ui.label().bind_text_from(
                    self.view,
                    "state",
                    backward=lambda s: "RUNNING" if s is SupervisorState.RUNNING else "STOPPED",
                ).classes("text-sm")
                ui.label().bind_text_from(
                    self.view, "uptime_text", backward=lambda t: f"Uptime {t}" if t else ""
                ).classes("text-sm")
                ui.label().bind_text_from(
                    self.view, "webif_port", backward=lambda p: f"WebIF :{p}" if p else "WebIF -"
                ).classes("text-sm")
            with ui.row().classes("items-center gap-2"):
                ui.button("Start", on_click=self.do_start).mark("start-button").bind_enabled_from(
                    self.view, "state", backward=lambda s: s is SupervisorState.STOPPED
                )
                ui.button("Stop", on_click=self.do_stop).props("color=negative").mark(
                    "stop-button"
                ).bind_enabled_from(self.view, "state", backward=lambda s: s is SupervisorState.RUNNING)
                ui.switch(
                    "Start on boot",
                    value=bool(ng_app.storage.general.get(AUTOSTART_KEY, self.config.AUTO_START)),
                    on_change=lambda e: self._set_autostart(e.value),
                ).mark("autostart-switch")
            ui.label().bind_text_from(self.view, "last_error", backward=lambda m: m or "").classes(
                "text-sm text-negative"
            ).mark("last-error")

        with ui.card().classes("w-full"):
            ui.label("Network").classes("text-md font-medium")
            with ui.row().classes("items-center gap-4"):
                ui.label().bind_text_from(
                    self.view, "primary_address", backward=lambda a: f"Wi-Fi/LAN: {a or 'n/a'}"
                ).classes("text-sm")
                ui.label().bind_text_from(
                    self.view, "access_point_address", backward=lambda a: f"Hotspot: {a or 'n/a'}"
                ).classes("text-sm")
            with ui.row().classes("items-center gap-2"):
                self.webif_primary_btn = ui.button(
                    "WebIF (Wi-Fi)", on_click=lambda: self.open_webif(self.view.primary_url)
                )
                self.webif_ap_btn = ui.button(
                    "WebIF (Hotspot)", on_click=lambda: self.open_webif(self.view.access_point_url)
                )
        self.on_endpoints(self.view.endpoints)

        self.poller.attach_network_observer(self.on_endpoints)
        ui.context.client.on_delete(self.detach)

    def detach(self) -> None:
        self.poller.detach_network_observer(self.on_endpoints)
