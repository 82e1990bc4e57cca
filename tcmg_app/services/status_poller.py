from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Union

from tcmg_app.common.logging_config import TRACE
from tcmg_app.constants import CONTROL_POLL_INTERVAL_S, LOG_POLL_INTERVAL_S, LOG_PULL_MAX_LINES
from tcmg_app.services.log_stream import LogFollower, LogStreamBridge
from tcmg_app.services.network import NetworkEndpointResolver
from tcmg_app.services.server_manager import ProcessSupervisor
from tcmg_app.state import (
    EndpointRole,
    NetworkEndpoint,
    ServerHandle,
    StatusView,
    SupervisorState,
    format_uptime,
    status_view,
)

TickCallback = Callable[[], Union[None, Awaitable[None]]]
LogObserver = Callable[[str], None]
StatusObserver = Callable[[ServerHandle], None]
NetworkObserver = Callable[[list[NetworkEndpoint]], None]


class IntervalTask:
    """
    Cancellable fixed-interval asyncio loop.

    Exactly one loop runs per instance: ``start()`` while running is a no-op.
    A failing callback is logged and the loop keeps going; it ends only on
    ``cancel()``.
    """

    def __init__(self, interval: float, callback: TickCallback, name: str | None = None) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.interval = interval
        self.callback = callback
        self.name = name or getattr(callback, "__name__", "interval")
        self.ticks = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        """Cancel and wait for the loop to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            try:
                result = self.callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logging.error("IntervalTask %s: tick failed: %s", self.name, e)
            self.ticks += 1
            await asyncio.sleep(self.interval)


class StatusPoller:
    """
    Periodically queries supervisor, log bridge and resolver and forwards the
    results to the presentation state and attached observers.

    Two cadences run on the event loop: control status (running, webif port,
    endpoints) and log pulls. Each loop is active only while it has
    observers.
    """

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        bridge: LogStreamBridge,
        resolver: NetworkEndpointResolver,
        view: StatusView | None = None,
        control_interval: float = CONTROL_POLL_INTERVAL_S,
        log_interval: float = LOG_POLL_INTERVAL_S,
    ) -> None:
        self.supervisor = supervisor
        self.bridge = bridge
        self.resolver = resolver
        self.view = view if view is not None else status_view
        self._control = IntervalTask(control_interval, self.control_tick, name="tcmg-control-poll")
        self._logs = IntervalTask(log_interval, self.log_tick, name="tcmg-log-poll")
        self._status_observers: list[StatusObserver] = []
        self._network_observers: list[NetworkObserver] = []
        self._log_observers: list[tuple[LogFollower, LogObserver]] = []

    @property
    def control_running(self) -> bool:
        return self._control.running

    @property
    def logs_running(self) -> bool:
        return self._logs.running

    # ---- observers ----

    def attach_status_observer(self, cb: StatusObserver) -> None:
        self._status_observers.append(cb)
        self._control.start()

    def detach_status_observer(self, cb: StatusObserver) -> None:
        with contextlib.suppress(ValueError):
            self._status_observers.remove(cb)
        self._maybe_stop_control()

    def attach_network_observer(self, cb: NetworkObserver) -> None:
        self._network_observers.append(cb)
        self._control.start()

    def detach_network_observer(self, cb: NetworkObserver) -> None:
        with contextlib.suppress(ValueError):
            self._network_observers.remove(cb)
        self._maybe_stop_control()

    def attach_log_observer(self, cb: LogObserver, max_lines: int = LOG_PULL_MAX_LINES) -> LogFollower:
        """Attach a log sink with its own cursor, starting at the oldest retained line."""
        follower = LogFollower(self.bridge, max_lines=max_lines)
        self._log_observers.append((follower, cb))
        self._logs.start()
        return follower

    def detach_log_observer(self, follower: LogFollower) -> None:
        self._log_observers = [(f, cb) for f, cb in self._log_observers if f is not follower]
        if not self._log_observers:
            self._logs.cancel()

    def _maybe_stop_control(self) -> None:
        if not self._status_observers and not self._network_observers:
            self._control.cancel()

    def stop(self) -> None:
        self._status_observers.clear()
        self._network_observers.clear()
        self._log_observers.clear()
        self._control.cancel()
        self._logs.cancel()

    async def aclose(self) -> None:
        """Detach everything and wait for both loops to finish."""
        self._status_observers.clear()
        self._network_observers.clear()
        self._log_observers.clear()
        await self._control.aclose()
        await self._logs.aclose()

    def report_error(self, message: str | None) -> None:
        self.view.last_error = message

    # ---- ticks ----

    def control_tick(self) -> None:
        handle = self.supervisor.snapshot()
        self.view.state = handle.state
        self.view.webif_port = handle.webif_port
        self.view.uptime_text = format_uptime(self.supervisor.uptime())
        logging.log(TRACE, "StatusPoller: state=%s webif_port=%s", handle.state.value, handle.webif_port)
        for cb in list(self._status_observers):
            cb(handle)

        if not self._network_observers:
            return
        endpoints = self.resolver.resolve_all()
        self._publish_endpoints(endpoints, handle.webif_port)
        for cb in list(self._network_observers):
            cb(endpoints)

    def _publish_endpoints(self, endpoints: list[NetworkEndpoint], port: int | None) -> None:
        by_role = {e.role: e for e in endpoints}
        primary = by_role.get(EndpointRole.PRIMARY)
        ap = by_role.get(EndpointRole.ACCESS_POINT)
        self.view.endpoints = endpoints
        self.view.primary_address = primary.address if primary else None
        self.view.access_point_address = ap.address if ap else None
        self.view.primary_url = primary.url(port) if primary and port else None
        self.view.access_point_url = ap.url(port) if ap and port else None

    def log_tick(self) -> None:
        for follower, cb in list(self._log_observers):
            text = follower.poll()
            if text:
                cb(text)
            self.view.line_count = follower.buffer.line_count
        running = self.supervisor.state is SupervisorState.RUNNING
        self.view.log_status = "● live" if running else "○ idle"
