"""
TCP port probing.

A probe is one bounded connect attempt; a sweep fans probes out over every
host of a /24 concurrently so the wall-clock cost stays near one timeout.
"""

import asyncio
import logging
from typing import Iterable, Optional

from .base import DeviceDescriptor, DeviceType

logger = logging.getLogger("device_hub.discovery.scanners.probe")


class PortProbeScanner:
    """Checks which hosts accept a TCP connection on a given port."""

    def __init__(self, max_concurrency: int = 0):
        # 0 means one in-flight socket per host
        self.max_concurrency = max_concurrency

    async def probe(
        self,
        address: str,
        port: int,
        timeout: float,
        device_type: DeviceType = DeviceType.ANDROID_TV,
    ) -> Optional[DeviceDescriptor]:
        """
        Attempt a single TCP connection.

        Returns:
            A descriptor if the port accepted the connection, else None
        """
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(address, port),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, OSError):
            return None

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

        logger.debug("Port %d open on %s", port, address)
        return self._descriptor(address, port, device_type)

    async def probe_many(
        self,
        addresses: Iterable[str],
        port: int,
        timeout: float,
    ) -> list[DeviceDescriptor]:
        """Probe an explicit list of addresses concurrently."""
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency > 0 else None

        async def _bounded(address: str) -> Optional[DeviceDescriptor]:
            if semaphore is None:
                return await self.probe(address, port, timeout)
            async with semaphore:
                return await self.probe(address, port, timeout)

        results = await asyncio.gather(
            *(_bounded(address) for address in addresses),
            return_exceptions=True,
        )

        devices = []
        for result in results:
            if isinstance(result, DeviceDescriptor):
                devices.append(result)
            elif isinstance(result, BaseException):
                logger.debug("Probe raised: %s", result)
        return devices

    async def sweep_subnet(
        self,
        subnet_prefix: str,
        port: int,
        timeout: float,
    ) -> list[DeviceDescriptor]:
        """
        Probe hosts .1 through .254 of the /24 containing subnet_prefix.

        Args:
            subnet_prefix: Either 'a.b.c' or a full dotted quad such as 'a.b.c.0'
            port: TCP port to test
            timeout: Per-probe timeout in seconds

        Returns:
            Descriptors for hosts that accepted; order is not significant
        """
        base = self.network_base(subnet_prefix)
        hosts = [f"{base}.{i}" for i in range(1, 255)]
        logger.info("Sweeping %s.0/24 on port %d (timeout=%.1fs)", base, port, timeout)
        devices = await self.probe_many(hosts, port, timeout)
        logger.info("Sweep of %s.0/24 found %d hosts", base, len(devices))
        return devices

    @staticmethod
    def network_base(subnet_prefix: str) -> str:
        """Reduce 'a.b.c.d' or 'a.b.c' to 'a.b.c'."""
        parts = subnet_prefix.strip().split(".")
        return ".".join(parts[:3])

    @staticmethod
    def _descriptor(address: str, port: int, device_type: DeviceType) -> DeviceDescriptor:
        label = "Android TV" if device_type == DeviceType.ANDROID_TV else device_type.value
        return DeviceDescriptor(
            id=address,
            name=f"{label} ({address})",
            type=device_type,
            address=address,
            port=port,
            connected=False,
            paired=False,
            extra={"discovered": True},
        )
