"""
Android TV scanner.

Finds hosts with the ADB control port open on the local /24. Tries nmap
first, then falls back to a raw TCP sweep that needs no installed tools.
On Windows the ARP table seeds a targeted probe instead of a full sweep.
"""

import logging
import re
import sys
from typing import Optional

from ...exceptions import ToolUnavailableError
from ...utils.shell import ShellCommandRunner
from ..subnet import SubnetInfo, SubnetResolver
from .base import BaseScanner, DeviceDescriptor, DeviceType
from .probe import PortProbeScanner

logger = logging.getLogger("device_hub.discovery.scanners.network")

NMAP_HOST_PATTERN = re.compile(r"Host:\s+(\d{1,3}(?:\.\d{1,3}){3})")
IPV4_PATTERN = re.compile(r"\b(\d{1,3}(?:\.\d{1,3}){3})\b")


class NetworkDeviceScanner(BaseScanner):
    """
    Orchestrates Android TV discovery over the local subnet.

    Strategy order, stopping at the first non-empty result:
    1. nmap, when installed
    2. concurrent TCP sweep of the /24
    On win32 an ARP-seeded probe replaces both.
    """

    def __init__(
        self,
        runner: ShellCommandRunner,
        resolver: Optional[SubnetResolver] = None,
        prober: Optional[PortProbeScanner] = None,
        port: int = 5555,
        probe_timeout: float = 0.5,
        nmap_timeout: float = 30.0,
        arp_timeout: float = 10.0,
        platform: Optional[str] = None,
    ):
        self._runner = runner
        self._resolver = resolver or SubnetResolver()
        self._prober = prober or PortProbeScanner()
        self.port = port
        self.probe_timeout = probe_timeout
        self.nmap_timeout = nmap_timeout
        self.arp_timeout = arp_timeout
        self.platform = platform or sys.platform

    @property
    def protocol_name(self) -> str:
        return "adb-port"

    async def scan(self, timeout: Optional[float] = None) -> list[DeviceDescriptor]:
        return await self.scan_for_android_tvs()

    async def scan_for_android_tvs(self) -> list[DeviceDescriptor]:
        """
        Scan the local network for Android TVs.

        Returns:
            Discovered devices; empty when nothing was found or scanning
            was impossible
        """
        logger.info("Scanning for Android TVs on port %d", self.port)

        try:
            network = self._resolver.resolve()
            if network is None:
                logger.error("Could not determine local network")
                return []

            logger.info("Local network: %s/24", network.subnet)

            if self.platform == "win32":
                devices = await self.scan_with_arp(network)
            else:
                devices = await self.scan_with_nmap(network)
                if not devices:
                    devices = await self.scan_with_port_sweep(network)

            logger.info("Found %d Android TV devices", len(devices))
            return devices

        except Exception as e:
            logger.error("Android TV scan failed: %s", e)
            return []

    async def scan_with_nmap(self, network: SubnetInfo) -> list[DeviceDescriptor]:
        """Scan with nmap's greppable output, if nmap is installed."""
        if not self._runner.is_available("nmap"):
            logger.info("nmap not available, trying alternative method")
            return []

        logger.info("Using nmap for scanning...")
        try:
            result = await self._runner.run(
                "nmap", "-p", str(self.port), "--open", f"{network.subnet}/24", "-oG", "-",
                timeout=self.nmap_timeout,
            )
        except ToolUnavailableError:
            return []

        if not result.ok:
            logger.warning(
                "nmap failed (exit=%s, timed_out=%s): %s",
                result.returncode,
                result.timed_out,
                result.stderr.strip()[:200],
            )
            return []

        return self.parse_nmap_output(result.stdout, self.port)

    async def scan_with_port_sweep(self, network: SubnetInfo) -> list[DeviceDescriptor]:
        """Concurrent TCP connect sweep of the whole /24."""
        logger.info("Using TCP port sweep...")
        return await self._prober.sweep_subnet(network.subnet, self.port, self.probe_timeout)

    async def scan_with_arp(self, network: SubnetInfo) -> list[DeviceDescriptor]:
        """Probe only the hosts already present in the ARP table."""
        logger.info("Using ARP scan...")
        try:
            result = await self._runner.run("arp", "-a", timeout=self.arp_timeout)
        except ToolUnavailableError:
            logger.warning("arp not available")
            return []

        if not result.ok:
            logger.warning("arp -a failed: %s", result.stderr.strip()[:200])
            return []

        candidates = self.parse_arp_candidates(result.stdout, network.prefix)
        logger.debug("ARP table has %d candidates in %s.0/24", len(candidates), network.prefix)
        return await self._prober.probe_many(candidates, self.port, self.probe_timeout)

    @staticmethod
    def parse_nmap_output(output: str, port: int) -> list[DeviceDescriptor]:
        """Extract hosts reporting the port open from `nmap -oG` output."""
        devices = []
        seen = set()
        marker = f"{port}/open"
        for line in output.splitlines():
            if marker not in line:
                continue
            match = NMAP_HOST_PATTERN.search(line)
            if not match or match.group(1) in seen:
                continue
            ip = match.group(1)
            seen.add(ip)
            devices.append(DeviceDescriptor(
                id=ip,
                name=f"Android TV ({ip})",
                type=DeviceType.ANDROID_TV,
                address=ip,
                port=port,
                extra={"discovered": True},
            ))
        return devices

    @staticmethod
    def parse_arp_candidates(output: str, prefix: str) -> list[str]:
        """Unique IPv4 addresses from `arp -a` output within the given /24 prefix."""
        candidates = []
        for line in output.splitlines():
            match = IPV4_PATTERN.search(line)
            if not match:
                continue
            ip = match.group(1)
            if ip.startswith(prefix + ".") and ip not in candidates:
                candidates.append(ip)
        return candidates
