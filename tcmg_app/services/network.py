from __future__ import annotations

import ipaddress
import logging
import socket
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import psutil

from tcmg_app.common.errors import EnumerationFailure
from tcmg_app.constants import (
    ACCESS_POINT_IFACE_NAMES,
    ACCESS_POINT_IFACE_PREFIXES,
    PRIMARY_IFACE_PREFIXES,
)
from tcmg_app.state import EndpointRole, NetworkEndpoint


@dataclass(frozen=True)
class InterfaceInfo:
    name: str
    is_up: bool
    addresses: tuple[str, ...]  # IPv4 only, enumeration order


def psutil_interfaces() -> list[InterfaceInfo]:
    """List interfaces via psutil, preserving its enumeration order."""
    try:
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except (OSError, psutil.Error) as e:
        raise EnumerationFailure(str(e)) from e
    result = []
    for name, entries in addrs.items():
        st = stats.get(name)
        v4 = tuple(a.address for a in entries if a.family == socket.AF_INET)
        result.append(InterfaceInfo(name=name, is_up=bool(st and st.isup), addresses=v4))
    return result


def _first_ipv4(addresses: Iterable[str]) -> str | None:
    for addr in addresses:
        try:
            ip = ipaddress.IPv4Address(addr)
        except ValueError:
            continue
        if not ip.is_loopback:
            return str(ip)
    return None


class NetworkEndpointResolver:
    """
    Finds the addresses the WebIF is reachable at.

    Classification is a naming heuristic: the first interface (in platform
    enumeration order) whose name matches wins. Unfamiliar driver naming may
    misclassify; that is accepted best-effort behavior.
    """

    def __init__(
        self,
        source: Callable[[], Iterable[InterfaceInfo]] = psutil_interfaces,
        primary_prefixes: tuple[str, ...] = PRIMARY_IFACE_PREFIXES,
        ap_prefixes: tuple[str, ...] = ACCESS_POINT_IFACE_PREFIXES,
        ap_names: tuple[str, ...] = ACCESS_POINT_IFACE_NAMES,
    ) -> None:
        self.source = source
        self.primary_prefixes = primary_prefixes
        self.ap_prefixes = ap_prefixes
        self.ap_names = ap_names

    def _active(self) -> list[InterfaceInfo]:
        try:
            ifaces = list(self.source())
        except (EnumerationFailure, OSError, psutil.Error) as e:
            logging.debug("NetworkEndpointResolver: interface listing failed: %s", e)
            return []
        # Loopback interfaces carry only 127.0.0.0/8 addresses and drop out here
        return [i for i in ifaces if i.is_up and _first_ipv4(i.addresses)]

    def is_primary_name(self, name: str) -> bool:
        return name.lower().startswith(self.primary_prefixes)

    def is_access_point_name(self, name: str) -> bool:
        lname = name.lower()
        return lname.startswith(self.ap_prefixes) or lname in self.ap_names

    def resolve_primary(self) -> NetworkEndpoint | None:
        for iface in self._active():
            if not self.is_primary_name(iface.name):
                continue
            ip = _first_ipv4(iface.addresses)
            if ip is not None:
                return NetworkEndpoint(address=ip, role=EndpointRole.PRIMARY)
        return None

    def resolve_access_point(self, excluding: str | None = None) -> NetworkEndpoint | None:
        for iface in self._active():
            if not self.is_access_point_name(iface.name):
                continue
            ip = _first_ipv4(iface.addresses)
            if ip is not None and ip != excluding:
                return NetworkEndpoint(address=ip, role=EndpointRole.ACCESS_POINT)
        return None

    def resolve_all(self) -> list[NetworkEndpoint]:
        primary = self.resolve_primary()
        ap = self.resolve_access_point(excluding=primary.address if primary else None)
        return [e for e in (primary, ap) if e is not None]
