from __future__ import annotations

import socket
from types import SimpleNamespace
from typing import TYPE_CHECKING

import psutil
import pytest

from tcmg_app.common.errors import EnumerationFailure
from tcmg_app.services import network
from tcmg_app.services.network import NetworkEndpointResolver, psutil_interfaces
from tcmg_app.state import EndpointRole, NetworkEndpoint

from tests.utils.fakes import iface, static_source

if TYPE_CHECKING:
    from pytest import MonkeyPatch


@pytest.mark.unit
def test_station_and_hotspot_scenario():
    resolver = NetworkEndpointResolver(
        static_source(
            iface("lo", "127.0.0.1"),
            iface("wlan0", "192.168.1.5"),
            iface("ap0", "192.168.43.1"),
        )
    )

    primary = resolver.resolve_primary()
    assert primary == NetworkEndpoint("192.168.1.5", EndpointRole.PRIMARY)

    ap = resolver.resolve_access_point(excluding=primary.address)
    assert ap == NetworkEndpoint("192.168.43.1", EndpointRole.ACCESS_POINT)
    assert ap.url(8080) == "http://192.168.43.1:8080"


@pytest.mark.unit
def test_access_point_never_returns_excluded_address():
    resolver = NetworkEndpointResolver(
        static_source(
            iface("wlan1", "10.0.0.7"),
            iface("swlan0", "10.0.0.7"),
        )
    )
    assert resolver.resolve_access_point(excluding="10.0.0.7") is None
    assert resolver.resolve_access_point().address == "10.0.0.7"


@pytest.mark.unit
def test_wlan1_overlap_is_reported_once_by_resolve_all():
    """wlan1 matches both heuristics; resolve_all must not report it under both roles."""
    resolver = NetworkEndpointResolver(static_source(iface("wlan1", "192.168.49.1")))
    endpoints = resolver.resolve_all()
    assert endpoints == [NetworkEndpoint("192.168.49.1", EndpointRole.PRIMARY)]


@pytest.mark.unit
def test_first_match_in_enumeration_order_wins():
    resolver = NetworkEndpointResolver(
        static_source(
            iface("eth0", "172.16.0.2"),
            iface("wlan0", "192.168.1.5"),
            iface("p2p-wlan0-0", "192.168.49.1"),
            iface("ap0", "192.168.43.1"),
        )
    )
    assert resolver.resolve_primary().address == "172.16.0.2"
    assert resolver.resolve_access_point().address == "192.168.49.1"


@pytest.mark.unit
def test_down_loopback_and_v4less_interfaces_are_skipped():
    resolver = NetworkEndpointResolver(
        static_source(
            iface("wlan0", "192.168.1.5", up=False),
            iface("eth0"),
            iface("eth1", "127.0.0.2", "10.1.1.1"),
            iface("AP0", "192.168.43.1"),
        )
    )
    assert resolver.resolve_primary().address == "10.1.1.1"
    # name matching is case-insensitive
    assert resolver.resolve_access_point().address == "192.168.43.1"


@pytest.mark.unit
def test_no_matching_interface():
    resolver = NetworkEndpointResolver(static_source(iface("lo", "127.0.0.1"), iface("tun0", "10.8.0.2")))
    assert resolver.resolve_primary() is None
    assert resolver.resolve_access_point() is None
    assert resolver.resolve_all() == []


@pytest.mark.unit
@pytest.mark.parametrize("error", [EnumerationFailure("denied"), OSError("EPERM"), psutil.AccessDenied()])
def test_enumeration_failure_yields_absent(error: Exception):
    def boom():
        raise error

    resolver = NetworkEndpointResolver(boom)
    assert resolver.resolve_primary() is None
    assert resolver.resolve_access_point() is None


@pytest.mark.unit
def test_custom_prefixes():
    resolver = NetworkEndpointResolver(
        static_source(iface("enp3s0", "192.168.2.10"), iface("uap0", "192.168.4.1")),
        primary_prefixes=("enp",),
        ap_prefixes=("uap",),
    )
    assert resolver.resolve_primary().address == "192.168.2.10"
    assert resolver.resolve_access_point().address == "192.168.4.1"


@pytest.mark.unit
def test_psutil_interfaces_reads_addresses_and_state(monkeypatch: MonkeyPatch):
    def snic(family, address):
        return SimpleNamespace(family=family, address=address)

    monkeypatch.setattr(
        network.psutil,
        "net_if_addrs",
        lambda: {
            "lo": [snic(socket.AF_INET, "127.0.0.1")],
            "wlan0": [snic(socket.AF_INET6, "fe80::1"), snic(socket.AF_INET, "192.168.1.5")],
            "ap0": [snic(socket.AF_INET, "192.168.43.1")],
        },
    )
    monkeypatch.setattr(
        network.psutil,
        "net_if_stats",
        lambda: {"lo": SimpleNamespace(isup=True), "wlan0": SimpleNamespace(isup=True)},
    )

    ifaces = psutil_interfaces()
    assert [i.name for i in ifaces] == ["lo", "wlan0", "ap0"]
    assert ifaces[1].addresses == ("192.168.1.5",)
    assert ifaces[1].is_up
    assert not ifaces[2].is_up, "missing stats means down"


@pytest.mark.unit
def test_psutil_errors_become_enumeration_failure(monkeypatch: MonkeyPatch):
    def denied():
        raise PermissionError("netlink denied")

    monkeypatch.setattr(network.psutil, "net_if_addrs", denied)
    with pytest.raises(EnumerationFailure):
        psutil_interfaces()
    assert NetworkEndpointResolver().resolve_primary() is None
