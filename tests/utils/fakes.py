from __future__ import annotations

from dataclasses import dataclass, field

from tcmg_app.common.errors import ResourceUnavailable
from tcmg_app.services.backend import LogRing
from tcmg_app.services.network import InterfaceInfo


@dataclass
class FakeBackend:
    """In-memory ServerBackend: start/stop flip a flag, logs live in a LogRing."""

    start_rc: int = 0
    webif_port: int = 8080
    running: bool = False
    ring: LogRing = field(default_factory=lambda: LogRing(capacity=2000))
    start_calls: list[tuple[str | None, int]] = field(default_factory=list)
    stop_calls: int = 0
    # When set, start() "succeeds" but the process does not come up until poll
    delayed_start: bool = False

    def start(self, config_dir: str | None, debug_level: int) -> int:
        self.start_calls.append((config_dir, debug_level))
        if self.start_rc != 0:
            return self.start_rc
        if self.running:
            return -1
        if not self.delayed_start:
            self.running = True
            self.log("tcmg started")
        return 0

    def come_up(self) -> None:
        self.running = True
        self.log("tcmg started")

    def stop(self) -> None:
        self.stop_calls += 1
        self.running = False

    def kill(self) -> None:
        """Simulate the host environment killing the process."""
        self.running = False

    def is_running(self) -> bool:
        return self.running

    def log(self, *lines: str) -> None:
        for line in lines:
            self.ring.append(line)

    def get_log_lines(self, from_id: int, max_lines: int) -> tuple[str, int]:
        lines, next_id = self.ring.since(from_id, max_lines)
        return ("\n".join(lines) + "\n") if lines else "", next_id

    def get_webif_port(self) -> int:
        return self.webif_port if self.running else -1


class BrokenBackend(FakeBackend):
    """Every query raises, as a crashed bridge would."""

    def is_running(self) -> bool:
        raise RuntimeError("bridge gone")

    def get_log_lines(self, from_id: int, max_lines: int) -> tuple[str, int]:
        raise RuntimeError("bridge gone")

    def get_webif_port(self) -> int:
        raise RuntimeError("bridge gone")


@dataclass
class FakeInhibitor:
    available: bool = True
    acquired: int = 0
    released: int = 0

    def acquire(self, name: str) -> None:
        if not self.available:
            raise ResourceUnavailable("no inhibitor on this host")
        self.acquired += 1

    def release(self) -> None:
        self.released += 1


def iface(name: str, *addresses: str, up: bool = True) -> InterfaceInfo:
    return InterfaceInfo(name=name, is_up=up, addresses=tuple(addresses))


def static_source(*ifaces: InterfaceInfo):
    return lambda: list(ifaces)
