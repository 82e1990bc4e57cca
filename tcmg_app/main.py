import argparse
import logging

from nicegui import app as ng_app
from nicegui import ui

from tcmg_app.common.logging_config import TRACE, configure_logging
from tcmg_app.config import Config
from tcmg_app.pages.control import AUTOSTART_KEY, ControlPage
from tcmg_app.pages.log import LogPage
from tcmg_app.services.backend import SubprocessBackend
from tcmg_app.services.host import boot
from tcmg_app.services.log_stream import LogStreamBridge
from tcmg_app.services.network import NetworkEndpointResolver
from tcmg_app.services.server_manager import ProcessSupervisor
from tcmg_app.services.status_poller import StatusPoller
from tcmg_app.state import status_view

# Runtime configuration (env first, CLI overrides below)
config = Config.from_env()

# ------------------------ Services (one per host process) ------------------------

backend = SubprocessBackend(server_bin=config.SERVER_BIN)
supervisor = ProcessSupervisor(backend)
poller = StatusPoller(
    supervisor,
    LogStreamBridge(backend),
    NetworkEndpointResolver(),
    view=status_view,
)


def root() -> None:
    """Single-page UI: Control and Log tabs."""
    with ui.header().classes("items-center"):
        ui.label("TCMG Commander").classes("text-lg font-medium")
    with ui.tabs() as tabs:
        control_tab = ui.tab("Control")
        log_tab = ui.tab("Log")
    with ui.tab_panels(tabs, value=control_tab).classes("w-full"):
        with ui.tab_panel(control_tab):
            ControlPage(supervisor, poller, config).build()
        with ui.tab_panel(log_tab):
            LogPage(poller).build()


async def _app_startup() -> None:
    # autostart_enabled is read once here; the Control page switch persists it
    if not config.AUTO_START:
        config.AUTO_START = bool(ng_app.storage.general.get(AUTOSTART_KEY, False))
    boot(supervisor, config, on_error=poller.report_error)


async def _app_shutdown() -> None:
    await poller.aclose()
    supervisor.close()


ng_app.on_startup(_app_startup)
ng_app.on_shutdown(_app_shutdown)


def run() -> None:
    parser = argparse.ArgumentParser(description="TCMG card-server commander")
    parser.add_argument("--host", default=config.UI_HOST, help="Webserver bind host")
    parser.add_argument("--port", type=int, default=config.UI_PORT, help="Webserver bind port")
    parser.add_argument("--server-bin", default=config.SERVER_BIN, help="Path or name of the tcmg executable")
    parser.add_argument("--config-dir", default=config.CONFIG_DIR, help="Server config directory")
    parser.add_argument(
        "--debug-level",
        type=int,
        choices=range(0, 10),
        default=config.DEBUG_LEVEL,
        help="Server debug verbosity (0-9)",
    )
    parser.add_argument(
        "--log-level",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set log level",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity; -v=INFO, -vv=DEBUG, -vvv=TRACE",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Only WARNING and above")
    parser.add_argument(
        "--auto-start",
        action="store_true",
        help="Start the server at boot (overrides TCMG_AUTO_START)",
    )
    args, _ = parser.parse_known_args()

    config.UI_HOST = args.host
    config.UI_PORT = int(args.port)
    config.SERVER_BIN = args.server_bin
    config.CONFIG_DIR = args.config_dir or None
    config.DEBUG_LEVEL = args.debug_level
    if args.auto_start:
        config.AUTO_START = True
    backend.server_bin = config.SERVER_BIN

    # explicit --log-level > -v/-q > TCMG_LOG_LEVEL
    if args.log_level:
        level = TRACE if args.log_level == "TRACE" else getattr(logging, args.log_level)
    elif args.verbose >= 3:
        level = TRACE
    elif args.verbose == 2:
        level = logging.DEBUG
    elif args.verbose == 1:
        level = logging.INFO
    elif args.quiet:
        level = logging.WARNING
    else:
        level = config.LOG_LEVEL
    config.LOG_LEVEL = level

    configure_logging(level)
    logging.info("Webserver bind: host=%s port=%s", config.UI_HOST, config.UI_PORT)
    logging.info("Server binary: %s config_dir=%s", config.SERVER_BIN, config.CONFIG_DIR)

    ui.run(
        root,
        title="TCMG Commander",
        host=config.UI_HOST,
        port=config.UI_PORT,
        reload=False,
        show=False,
    )


if __name__ in {"__main__", "__mp_main__"}:
    run()
