"""
Tests for the Cast receiver mDNS scanner.

Zeroconf, the service browser and service-info resolution are replaced by
fakes; browse events are delivered on the running loop.
"""

import asyncio
import time
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from zeroconf import ServiceStateChange

from device_hub.discovery.scanners.base import DeviceType
from device_hub.discovery.scanners.mdns import GOOGLECAST_SERVICE_TYPE, MulticastDeviceScanner


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeNetwork:
    """Records what each browse session will 'see'."""

    def __init__(self, *batches, release_delay: float = 0.0, resolve_delays=None):
        # One list of (name, addresses, port, properties) per browser created
        self.batches = list(batches)
        self.release_delay = release_delay
        self.resolve_delays = resolve_delays or {}
        self.records = {}
        self.zeroconfs = []
        self.browsers = []

    def zeroconf_factory(self):
        zc = SimpleNamespace(zeroconf=MagicMock(name="Zeroconf"), async_close=self._release_mock())
        self.zeroconfs.append(zc)
        return zc

    def browser_factory(self, zc, service_types, handlers):
        services = self.batches.pop(0) if self.batches else []
        loop = asyncio.get_running_loop()
        for name, addresses, port, properties in services:
            self.records[name] = (addresses, port, properties)
            loop.call_soon(handlers[0], zc, service_types[0], name, ServiceStateChange.Added)
        browser = SimpleNamespace(async_cancel=self._release_mock())
        self.browsers.append(browser)
        return browser

    def service_info_factory(self, service_type, name):
        addresses, port, properties = self.records[name]
        info = MagicMock()
        info.async_request = AsyncMock(side_effect=self._resolver(name))
        info.parsed_addresses.return_value = addresses
        info.port = port
        info.properties = properties
        return info

    def _release_mock(self):
        async def _release():
            await asyncio.sleep(self.release_delay)

        return AsyncMock(side_effect=_release)

    def _resolver(self, name):
        delay = self.resolve_delays.get(name, 0.0)

        async def _request(zc, timeout_ms):
            await asyncio.sleep(delay)
            return True

        return _request


def _make_scanner(network: FakeNetwork, duration: float = 0.1) -> MulticastDeviceScanner:
    return MulticastDeviceScanner(
        scan_duration=duration,
        resolve_timeout=1.0,
        zeroconf_factory=network.zeroconf_factory,
        browser_factory=network.browser_factory,
        service_info_factory=network.service_info_factory,
    )


def _service(name, ip, fn=b"Living Room TV", md=b"Chromecast Ultra", port=8009):
    return (f"{name}.{GOOGLECAST_SERVICE_TYPE}", [ip], port, {b"fn": fn, b"md": md})


# ===========================================================================
# Scan
# ===========================================================================

class TestMulticastScan:

    @pytest.mark.asyncio
    async def test_collects_devices_with_txt_fields(self):
        network = FakeNetwork([_service("a", "192.168.1.40")])
        devices = await _make_scanner(network).scan()

        assert len(devices) == 1
        device = devices[0]
        assert device.type == DeviceType.CHROMECAST
        assert device.address == "192.168.1.40"
        assert device.name == "Living Room TV"
        assert device.port == 8009
        assert device.extra["model"] == "Chromecast Ultra"
        assert device.extra["manufacturer"] == "Google"

    @pytest.mark.asyncio
    async def test_duplicate_addresses_first_seen_wins(self):
        network = FakeNetwork([
            _service("a", "192.168.1.40", fn=b"First"),
            _service("b", "192.168.1.40", fn=b"Second"),
            _service("c", "192.168.1.41", fn=b"Other"),
        ])
        devices = await _make_scanner(network).scan()

        assert [d.address for d in devices] == ["192.168.1.40", "192.168.1.41"]
        assert devices[0].name == "First"

    @pytest.mark.asyncio
    async def test_duplicate_address_keeps_earliest_event_when_it_resolves_last(self):
        first = _service("a", "192.168.1.40", fn=b"First")
        second = _service("b", "192.168.1.40", fn=b"Second")
        network = FakeNetwork([first, second], resolve_delays={first[0]: 0.05})

        devices = await _make_scanner(network, duration=0.2).scan()

        assert len(devices) == 1
        assert devices[0].name == "First"

    @pytest.mark.asyncio
    async def test_results_ordered_by_event_arrival(self):
        slow = _service("a", "192.168.1.40", fn=b"Slow")
        fast = _service("b", "192.168.1.41", fn=b"Fast")
        network = FakeNetwork([slow, fast], resolve_delays={slow[0]: 0.05})

        devices = await _make_scanner(network, duration=0.2).scan()

        assert [d.name for d in devices] == ["Slow", "Fast"]

    @pytest.mark.asyncio
    async def test_empty_network_returns_within_duration(self):
        network = FakeNetwork([])
        start = time.monotonic()
        devices = await _make_scanner(network, duration=0.2).scan()
        elapsed = time.monotonic() - start

        assert devices == []
        assert elapsed < 1.0
        network.browsers[0].async_cancel.assert_awaited_once()
        network.zeroconfs[0].async_close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_browser_failure_is_swallowed(self):
        network = FakeNetwork()

        def _broken_browser(*args, **kwargs):
            raise OSError("multicast not permitted")

        scanner = _make_scanner(network)
        scanner._browser_factory = _broken_browser

        assert await scanner.scan() == []
        assert not scanner.is_scanning
        network.zeroconfs[0].async_close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_last_scan_is_queryable(self):
        network = FakeNetwork([_service("a", "192.168.1.40")])
        scanner = _make_scanner(network)
        await scanner.scan()

        assert scanner.get_device("192.168.1.40") is not None
        assert [d.address for d in scanner.get_all_devices()] == ["192.168.1.40"]

        await scanner.close()
        assert scanner.get_all_devices() == []

    @pytest.mark.asyncio
    async def test_new_scan_supersedes_active_session(self):
        network = FakeNetwork(
            [_service("a", "10.0.0.1")],
            [_service("b", "10.0.0.2")],
        )
        scanner = _make_scanner(network)

        first = asyncio.ensure_future(scanner.scan(timeout=0.3))
        await asyncio.sleep(0.05)
        assert scanner.is_scanning

        second = await scanner.scan(timeout=0.1)
        first_devices = await first

        assert [d.address for d in second] == ["10.0.0.2"]
        assert [d.address for d in first_devices] == ["10.0.0.1"]
        # The superseded call does not overwrite the newer results
        assert [d.address for d in scanner.get_all_devices()] == ["10.0.0.2"]
        network.browsers[0].async_cancel.assert_awaited_once()
        assert not scanner.is_scanning

    @pytest.mark.asyncio
    async def test_overlapping_scans_release_every_browser_once(self):
        network = FakeNetwork(
            [_service("a", "10.0.0.1")],
            [_service("b", "10.0.0.2")],
            release_delay=0.02,
        )
        scanner = _make_scanner(network)

        first = asyncio.ensure_future(scanner.scan(timeout=0.3))
        await asyncio.sleep(0.05)
        second = asyncio.ensure_future(scanner.scan(timeout=0.3))
        await asyncio.sleep(0)
        third = await scanner.scan(timeout=0.1)
        await asyncio.gather(first, second)

        # The middle scan is superseded before it starts browsing
        assert len(network.browsers) == 2
        assert await second == []
        assert [d.address for d in third] == ["10.0.0.2"]
        assert [d.address for d in scanner.get_all_devices()] == ["10.0.0.2"]
        for zc in network.zeroconfs:
            assert zc.async_close.await_count == 1
        for browser in network.browsers:
            assert browser.async_cancel.await_count == 1
        assert not scanner.is_scanning

    @pytest.mark.asyncio
    async def test_close_during_scan_releases_once(self):
        network = FakeNetwork([_service("a", "10.0.0.1")], release_delay=0.02)
        scanner = _make_scanner(network)

        scan = asyncio.ensure_future(scanner.scan(timeout=0.3))
        await asyncio.sleep(0.05)
        await scanner.close()
        await scan

        network.browsers[0].async_cancel.assert_awaited_once()
        network.zeroconfs[0].async_close.assert_awaited_once()
        assert not scanner.is_scanning


# ===========================================================================
# Descriptor building
# ===========================================================================

class TestBuildDescriptor:

    def test_prefers_ipv4_address(self):
        device = MulticastDeviceScanner.build_descriptor(["fe80::1", "192.168.1.9"], 8009, {})
        assert device.address == "192.168.1.9"

    def test_defaults_when_txt_missing(self):
        device = MulticastDeviceScanner.build_descriptor(["192.168.1.9"], None, None)

        assert device.name == "Unknown"
        assert device.extra["model"] == "Chromecast"
        assert device.port == 8009

    def test_no_address_returns_none(self):
        assert MulticastDeviceScanner.build_descriptor([], 8009, {b"fn": b"x"}) is None
