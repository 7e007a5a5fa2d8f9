"""
Tests for TCP port probing and subnet sweeps.

Real sockets are used only against a local listener; sweeps patch
open_connection so nothing leaves the host.
"""

import asyncio
import ipaddress
import time
from unittest.mock import MagicMock, patch

import pytest

from device_hub.discovery.scanners.base import DeviceType
from device_hub.discovery.scanners.probe import PortProbeScanner


def _fake_open_connection(open_hosts: set[str], delay: float = 0.0):
    """open_connection stand-in: listed hosts accept, others hang."""

    async def _open(host, port):
        if host in open_hosts:
            if delay:
                await asyncio.sleep(delay)
            writer = MagicMock()

            async def _closed():
                return None

            writer.wait_closed = _closed
            return MagicMock(), writer
        await asyncio.sleep(10)

    return _open


class TestProbe:

    @pytest.mark.asyncio
    async def test_open_port_yields_descriptor(self):
        server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            device = await PortProbeScanner().probe("127.0.0.1", port, timeout=1.0)
        finally:
            server.close()
            await server.wait_closed()

        assert device is not None
        assert device.address == "127.0.0.1"
        assert device.port == port
        assert device.type == DeviceType.ANDROID_TV
        assert not device.connected
        assert not device.paired

    @pytest.mark.asyncio
    async def test_refused_port_yields_none(self):
        server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()

        assert await PortProbeScanner().probe("127.0.0.1", port, timeout=1.0) is None

    @pytest.mark.asyncio
    async def test_timeout_yields_none_within_bound(self):
        with patch("asyncio.open_connection", _fake_open_connection(set())):
            start = time.monotonic()
            result = await PortProbeScanner().probe("10.0.0.9", 5555, timeout=0.1)
            elapsed = time.monotonic() - start

        assert result is None
        assert elapsed < 1.0


class TestSweepSubnet:

    @pytest.mark.asyncio
    async def test_returns_only_open_hosts(self):
        open_hosts = {"192.168.1.20", "192.168.1.254"}
        with patch("asyncio.open_connection", _fake_open_connection(open_hosts)):
            devices = await PortProbeScanner().sweep_subnet("192.168.1.0", 5555, timeout=0.2)

        assert {d.address for d in devices} == open_hosts

    @pytest.mark.asyncio
    async def test_results_stay_inside_the_24(self):
        open_hosts = {f"10.1.2.{i}" for i in (1, 50, 200)}
        with patch("asyncio.open_connection", _fake_open_connection(open_hosts)):
            devices = await PortProbeScanner().sweep_subnet("10.1.2", 5555, timeout=0.2)

        network = ipaddress.IPv4Network("10.1.2.0/24")
        assert devices
        assert all(ipaddress.IPv4Address(d.address) in network for d in devices)

    @pytest.mark.asyncio
    async def test_sweep_time_is_near_one_timeout(self):
        with patch("asyncio.open_connection", _fake_open_connection(set())):
            start = time.monotonic()
            devices = await PortProbeScanner().sweep_subnet("192.168.7.0", 5555, timeout=0.2)
            elapsed = time.monotonic() - start

        assert devices == []
        # Sequential probing would take 254 * 0.2s
        assert elapsed < 3.0

    @pytest.mark.asyncio
    async def test_failing_probe_does_not_abort_sweep(self):
        async def _open(host, port):
            if host == "192.168.1.5":
                raise RuntimeError("unexpected")
            if host == "192.168.1.6":
                writer = MagicMock()

                async def _closed():
                    return None

                writer.wait_closed = _closed
                return MagicMock(), writer
            raise ConnectionRefusedError()

        with patch("asyncio.open_connection", _open):
            devices = await PortProbeScanner().sweep_subnet("192.168.1.0", 5555, timeout=0.2)

        assert [d.address for d in devices] == ["192.168.1.6"]

    @pytest.mark.asyncio
    async def test_bounded_concurrency_still_finds_hosts(self):
        open_hosts = {"192.168.1.3", "192.168.1.100"}
        with patch("asyncio.open_connection", _fake_open_connection(open_hosts)):
            devices = await PortProbeScanner(max_concurrency=64).sweep_subnet("192.168.1.0", 5555, timeout=0.05)

        assert {d.address for d in devices} == open_hosts

    def test_network_base(self):
        assert PortProbeScanner.network_base("192.168.1.0") == "192.168.1"
        assert PortProbeScanner.network_base("192.168.1") == "192.168.1"
