import logging
import socket

import pytest

from coordinator.server import network
from coordinator.server.network import NetworkInterface, lan_interfaces, log_lan_addresses


def _addrinfo(*addresses: str) -> list[tuple]:
    return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (address, 0)) for address in addresses]


@pytest.fixture
def host(monkeypatch):
    """Fake host named "arcade"; tests set ``resolved`` and ``route``."""

    class _Host:
        resolved: list[str] | Exception = []
        route: str | None = None

    def _getaddrinfo(hostname, *_args, **_kwargs):
        assert hostname == "arcade"
        if isinstance(_Host.resolved, Exception):
            raise _Host.resolved
        return _addrinfo(*_Host.resolved)

    monkeypatch.setattr(network.socket, "gethostname", lambda: "arcade")
    monkeypatch.setattr(network.socket, "getaddrinfo", _getaddrinfo)
    monkeypatch.setattr(network, "_route_address", lambda: _Host.route)
    return _Host


class TestLanInterfaces:
    def test_skips_loopback_and_duplicates(self, host):
        host.resolved = ["127.0.1.1", "192.168.1.20", "192.168.1.20"]
        host.route = "192.168.1.20"

        assert lan_interfaces() == [NetworkInterface(name="arcade", address="192.168.1.20")]

    def test_keeps_every_distinct_address_in_order(self, host):
        host.resolved = ["10.0.0.5"]
        host.route = "192.168.1.20"

        assert [i.address for i in lan_interfaces()] == ["10.0.0.5", "192.168.1.20"]

    def test_failed_lookup_falls_back_to_route(self, host):
        host.resolved = socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        host.route = "10.0.0.5"

        assert lan_interfaces() == [NetworkInterface(name="arcade", address="10.0.0.5")]

    def test_nothing_found(self, host):
        host.resolved = ["127.0.0.1"]
        host.route = "0.0.0.0"

        assert lan_interfaces() == []

    def test_route_address_without_network(self, monkeypatch):
        class _Unroutable:
            def __init__(self, *_args):
                pass

            def __enter__(self):
                return self

            def __exit__(self, *_exc):
                return False

            def connect(self, _address):
                raise OSError("Network is unreachable")

        monkeypatch.setattr(network.socket, "socket", _Unroutable)

        assert network._route_address() is None


class TestLogLanAddresses:
    def test_logs_each_address(self, host, caplog):
        caplog.set_level(logging.INFO)
        host.resolved = ["192.168.1.20"]

        log_lan_addresses()

        assert "LAN address available" in caplog.text
        assert "192.168.1.20" in caplog.text

    def test_logs_when_no_address(self, host, caplog):
        caplog.set_level(logging.INFO)

        log_lan_addresses()

        assert "no LAN address found" in caplog.text
