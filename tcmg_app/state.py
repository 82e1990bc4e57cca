from __future__ import annotations

import enum
from dataclasses import dataclass, field

from nicegui import binding


class SupervisorState(enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class EndpointRole(enum.Enum):
    PRIMARY = "primary"
    ACCESS_POINT = "accessPoint"


@dataclass(frozen=True)
class LogCursor:
    next_id: int = 0  # 0 = latest available batch, from the oldest retained line

    def __post_init__(self) -> None:
        if self.next_id < 0:
            raise ValueError("LogCursor.next_id must be >= 0")


@dataclass(frozen=True)
class NetworkEndpoint:
    address: str  # IPv4 dotted quad
    role: EndpointRole

    def url(self, port: int) -> str:
        return f"http://{self.address}:{port}"


@dataclass
class ServerHandle:
    running: bool = False
    webif_port: int | None = None
    started_at: float | None = None  # wall clock, set by start() and cleared by stop()

    @property
    def state(self) -> SupervisorState:
        return SupervisorState.RUNNING if self.running else SupervisorState.STOPPED


def format_uptime(seconds: float | None) -> str:
    if seconds is None:
        return ""
    s = max(0, int(seconds))
    return f"{s // 3600:02d}:{(s % 3600) // 60:02d}:{s % 60:02d}"


# Presentation state filled by the status poller; UI labels bind to it
@binding.bindable_dataclass
class StatusView:
    state: SupervisorState = SupervisorState.STOPPED
    webif_port: int | None = None
    uptime_text: str = ""
    primary_address: str | None = None
    access_point_address: str | None = None
    primary_url: str | None = None
    access_point_url: str | None = None
    log_status: str = "○ idle"
    line_count: int = 0
    last_error: str | None = None
    endpoints: list[NetworkEndpoint] = field(default_factory=list)

    @property
    def running(self) -> bool:
        return self.state is SupervisorState.RUNNING


# Module-level singleton for the NiceGUI host
status_view = StatusView()
