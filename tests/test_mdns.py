"""Tests for the zeroconf discovery backend, with zeroconf faked out."""

from __future__ import annotations

import pytest
from zeroconf import ServiceStateChange

from elgato_keylight import mdns
from elgato_keylight.errors import DiscoveryUnavailable
from elgato_keylight.models import IpProtocol, Resolved, Unresolved

TYPE = "_elg._tcp.local."


class FakeInfo:
    def __init__(self, addresses, port=9123):
        self.addresses = addresses
        self.port = port
        self.server = "elgato-key-light-8d7c.local."
        self.properties = {b"pv": b"1.0", b"md": b"Elgato Key Light 20GAK9901", b"id": b"FF:6A:9D:30:B1:6E"}

    def parsed_scoped_addresses(self):
        return self.addresses


class FakeZeroconf:
    instances = []

    def __init__(self, ip_version=None):
        self.infos = {}
        self.closed = False
        FakeZeroconf.instances.append(self)

    def get_service_info(self, type_, name, timeout=3000):
        return self.infos.get(name)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_zeroconf(monkeypatch):
    FakeZeroconf.instances = []
    names = ["Elgato Key Light 8D7C." + TYPE, "Elgato Key Light - left." + TYPE]
    infos = {names[0]: FakeInfo(["192.168.0.92", "fe80::3e6a:9dff:fe21:b16e%enp6s0"])}

    class FakeBrowser:
        def __init__(self, zc, type_, handlers):
            assert type_ == TYPE
            zc.infos = infos
            for name in names:
                for handler in handlers:
                    handler(zeroconf=zc, service_type=type_, name=name, state_change=ServiceStateChange.Added)
            self.cancelled = False

        def cancel(self):
            self.cancelled = True

    monkeypatch.setattr(mdns, "Zeroconf", FakeZeroconf)
    monkeypatch.setattr(mdns, "ServiceBrowser", FakeBrowser)
    monkeypatch.setattr(mdns.time, "sleep", lambda seconds: None)
    return FakeZeroconf


def test_qualified_type():
    assert mdns._qualified("_elg._tcp") == (TYPE, "local")
    assert mdns._qualified(TYPE) == (TYPE, "local")


def test_browse_zeroconf(fake_zeroconf):
    outcomes = mdns.browse_zeroconf("_elg._tcp", timeout=2.0)

    resolved = [o.record for o in outcomes if isinstance(o, Resolved)]
    assert [r.internet_protocol for r in resolved] == [IpProtocol.V4, IpProtocol.V6]
    v4 = resolved[0]
    assert v4.hostname == "Elgato Key Light 8D7C"
    assert v4.service_type == "_elg._tcp"
    assert v4.domain == "local"
    assert v4.target_host == "elgato-key-light-8d7c.local"
    assert str(v4.ip) == "192.168.0.92"
    assert v4.port == 9123
    assert v4.txt["md"] == "Elgato Key Light 20GAK9901"
    assert resolved[1].interface_name == "enp6s0"

    unresolved = [o for o in outcomes if isinstance(o, Unresolved)]
    assert [u.advertisement.hostname for u in unresolved] == ["Elgato Key Light - left"]
    assert fake_zeroconf.instances[0].closed


def test_spent_budget_still_resolves_from_cache(fake_zeroconf, monkeypatch):
    calls = []
    original = FakeZeroconf.get_service_info

    def recording(self, type_, name, timeout=3000):
        calls.append(timeout)
        return original(self, type_, name, timeout)

    ticks = []

    def clock():
        ticks.append(None)
        return 0.0 if len(ticks) == 1 else 100.0

    monkeypatch.setattr(mdns.time, "monotonic", clock)
    monkeypatch.setattr(FakeZeroconf, "get_service_info", recording)

    outcomes = mdns.browse_zeroconf("_elg._tcp", timeout=2.0)

    resolved = [o.record for o in outcomes if isinstance(o, Resolved)]
    assert [str(r.ip) for r in resolved] == ["192.168.0.92", "fe80::3e6a:9dff:fe21:b16e%enp6s0"]
    assert calls == [1, 1]


def test_socket_failure_is_unavailable(monkeypatch):
    def broken(ip_version=None):
        raise OSError("No such device")

    monkeypatch.setattr(mdns, "Zeroconf", broken)
    with pytest.raises(DiscoveryUnavailable):
        mdns.browse_zeroconf(timeout=0.1)


def test_txt_strings():
    assert mdns._txt_strings({b"md": b"Key Light", b"flag": None}) == ('"md=Key Light"', '"flag"')
