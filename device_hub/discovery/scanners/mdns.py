"""
mDNS (Multicast DNS) scanner for Google Cast receivers.

Browses the _googlecast._tcp.local. service type for a bounded window and
returns one descriptor per receiver address.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from .base import BaseScanner, DeviceDescriptor, DeviceType

logger = logging.getLogger("device_hub.discovery.scanners.mdns")

# Service type for Google Cast devices
GOOGLECAST_SERVICE_TYPE = "_googlecast._tcp.local."


def _default_zeroconf() -> AsyncZeroconf:
    return AsyncZeroconf(ip_version=IPVersion.V4Only)


@dataclass
class ScanSession:
    """State of one bounded browse operation."""

    token: int
    devices: dict[str, DeviceDescriptor] = field(default_factory=dict)  # keyed by address
    zeroconf: Any = None
    browser: Any = None
    pending: set[asyncio.Task] = field(default_factory=set)
    active: bool = True
    superseded: bool = False
    # Event arrival order; resolutions may finish out of order
    arrivals: Iterator[int] = field(default_factory=itertools.count)
    seen: dict[str, int] = field(default_factory=dict)  # address -> arrival

    def ordered_devices(self) -> list[DeviceDescriptor]:
        """Devices sorted by the arrival of the event that produced them."""
        return sorted(self.devices.values(), key=lambda d: self.seen.get(d.address, 0))


class MulticastDeviceScanner(BaseScanner):
    """
    mDNS/Zeroconf scanner for Chromecast-class receivers.

    Only one scan session is active per instance. Starting a scan while
    another is running supersedes it: the old browser is cancelled and the
    old call returns whatever it had collected, without touching the new
    session's state.
    """

    def __init__(
        self,
        service_type: str = GOOGLECAST_SERVICE_TYPE,
        scan_duration: float = 10.0,
        resolve_timeout: float = 3.0,
        default_port: int = 8009,
        zeroconf_factory: Optional[Callable[[], Any]] = None,
        browser_factory: Optional[Callable[..., Any]] = None,
        service_info_factory: Optional[Callable[[str, str], Any]] = None,
    ):
        self.service_type = service_type
        self.scan_duration = scan_duration
        self.resolve_timeout = resolve_timeout
        self.default_port = default_port
        self._zeroconf_factory = zeroconf_factory or _default_zeroconf
        self._browser_factory = browser_factory or AsyncServiceBrowser
        self._service_info_factory = service_info_factory or AsyncServiceInfo

        self._token = 0
        self._session: Optional[ScanSession] = None
        self._discovered: dict[str, DeviceDescriptor] = {}

    @property
    def protocol_name(self) -> str:
        return "mdns"

    @property
    def is_scanning(self) -> bool:
        return self._session is not None and self._session.active

    async def scan(self, timeout: Optional[float] = None) -> list[DeviceDescriptor]:
        """
        Browse for Cast receivers.

        Args:
            timeout: Length of the collection window in seconds

        Returns:
            Descriptors in first-seen order, possibly empty
        """
        duration = self.scan_duration if timeout is None else timeout
        logger.info("Starting mDNS scan for Google Cast devices (duration=%.1fs)", duration)

        self._token += 1
        session = ScanSession(token=self._token)

        # Install the new session before awaiting anything so a concurrent
        # scan always sees it as the one to supersede.
        previous, self._session = self._session, session
        self._discovered.clear()

        def on_service_state_change(
            zeroconf: Zeroconf,
            service_type: str,
            name: str,
            state_change: ServiceStateChange,
        ) -> None:
            if not session.active:
                return
            if state_change in (ServiceStateChange.Added, ServiceStateChange.Updated):
                logger.debug("mDNS: %s service %s", state_change.name, name)
                seen = next(session.arrivals)
                task = asyncio.ensure_future(self._resolve(session, service_type, name, seen))
                session.pending.add(task)
                task.add_done_callback(session.pending.discard)

        try:
            if previous is not None and previous.active:
                logger.warning("Superseding active mDNS scan session %d", previous.token)
                previous.superseded = True
                await self._stop_session(previous)

            if session.active:
                try:
                    session.zeroconf = self._zeroconf_factory()
                    session.browser = self._browser_factory(
                        session.zeroconf.zeroconf,
                        [self.service_type],
                        handlers=[on_service_state_change],
                    )
                except Exception as e:
                    logger.error("mDNS browser failed to start: %s", e)

            if session.browser is not None:
                await asyncio.sleep(duration)
        finally:
            # Every session releases its own browser, superseded or not
            await self._stop_session(session)
            if self._session is session:
                self._session = None

        devices = session.ordered_devices()
        if session.superseded:
            logger.info(
                "mDNS scan session %d was superseded after finding %d devices",
                session.token,
                len(devices),
            )
            return devices

        self._discovered = {d.address: d for d in devices}
        logger.info("mDNS scan complete: found %d Cast devices", len(devices))
        return devices

    async def _resolve(
        self,
        session: ScanSession,
        service_type: str,
        name: str,
        seen: Optional[int] = None,
    ) -> None:
        """Resolve a service name to addresses and TXT records."""
        try:
            info = self._service_info_factory(service_type, name)
            # zeroconf takes this timeout in milliseconds
            if not await info.async_request(session.zeroconf.zeroconf, self.resolve_timeout * 1000):
                logger.debug("mDNS: no response resolving %s", name)
                return
            self.record_service(session, info.parsed_addresses(), info.port, info.properties, seen)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Failed to resolve service %s: %s", name, e)

    def record_service(
        self,
        session: ScanSession,
        addresses: list[str],
        port: Optional[int],
        properties: Optional[dict[Any, Any]],
        seen: Optional[int] = None,
    ) -> Optional[DeviceDescriptor]:
        """
        Add a resolved service to the session.

        When two services share an address, the one whose browse event
        arrived first is kept, whatever order their resolutions finish in.
        ``seen`` is that arrival position; omitted, it is the next one.
        """
        if not session.active:
            return None

        device = self.build_descriptor(addresses, port, properties, self.default_port)
        if device is None:
            logger.info("Cast device found but no IP address")
            return None

        if seen is None:
            seen = next(session.arrivals)

        existing = session.devices.get(device.address)
        if existing is not None and session.seen[device.address] <= seen:
            return existing

        session.devices[device.address] = device
        session.seen[device.address] = seen
        logger.info(
            "Found Cast device: %s at %s (%s) (total: %d)",
            device.name,
            device.address,
            device.extra.get("model"),
            len(session.devices),
        )
        return device

    @staticmethod
    def build_descriptor(
        addresses: list[str],
        port: Optional[int],
        properties: Optional[dict[Any, Any]],
        default_port: int = 8009,
    ) -> Optional[DeviceDescriptor]:
        """Build a descriptor from resolved addresses and TXT records."""
        if not addresses:
            return None
        ip = next((addr for addr in addresses if "." in addr), addresses[0])

        txt = {}
        for key, value in (properties or {}).items():
            if isinstance(key, bytes):
                key = key.decode("utf-8", errors="ignore")
            if isinstance(value, bytes):
                value = value.decode("utf-8", errors="ignore")
            txt[key] = value

        name = txt.get("fn") or "Unknown"
        model = txt.get("md") or "Chromecast"

        return DeviceDescriptor(
            id=ip,
            name=name,
            type=DeviceType.CHROMECAST,
            address=ip,
            port=port or default_port,
            connected=False,
            paired=False,
            extra={
                "model": model,
                "manufacturer": "Google",
                "discovered": True,
            },
        )

    def get_device(self, device_id: str) -> Optional[DeviceDescriptor]:
        """Get a device from the last completed scan."""
        return self._discovered.get(device_id)

    def get_all_devices(self) -> list[DeviceDescriptor]:
        """Get all devices from the last completed scan."""
        return list(self._discovered.values())

    async def close(self) -> None:
        """Stop any active session and forget discovered devices."""
        if self._session is not None:
            await self._stop_session(self._session)
            self._session = None
        self._discovered.clear()

    async def _stop_session(self, session: ScanSession) -> None:
        session.active = False

        # Detach everything before the first await so a second stop of the
        # same session finds nothing left to release.
        pending = list(session.pending)
        session.pending.clear()
        browser, session.browser = session.browser, None
        zeroconf, session.zeroconf = session.zeroconf, None

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        if browser is not None:
            try:
                await browser.async_cancel()
            except Exception as e:
                logger.warning("Error cancelling mDNS browser: %s", e)

        if zeroconf is not None:
            try:
                await zeroconf.async_close()
            except Exception as e:
                logger.warning("Error closing zeroconf: %s", e)
