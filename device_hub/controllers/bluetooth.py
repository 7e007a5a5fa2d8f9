"""
OS Bluetooth controller.

Enumerates paired and nearby peripherals and connects/disconnects them
through the platform's own tooling:
- macOS: blueutil (JSON output)
- Windows: PowerShell Get-PnpDevice (JSON output)
- Linux: bluetoothctl (line-oriented output)
"""

import asyncio
import json
import logging
import re
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..capabilities.protocols import ActionResult
from ..discovery.scanners.base import DeviceDescriptor, DeviceType
from ..exceptions import (
    CommandFailedError,
    CommandTimeoutError,
    UnsupportedPlatformError,
)
from ..utils.shell import ShellCommandRunner
from .outcomes import BLUETOOTHCTL_CONNECTED, BLUEUTIL_CONNECTED, OutcomeClassifier

logger = logging.getLogger("device_hub.controllers.bluetooth")

BLUETOOTHCTL_DEVICE_PATTERN = re.compile(r"^Device\s+([0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5})\s+(.+)$")

POWERSHELL_SCAN_SCRIPT = (
    "Get-PnpDevice -Class Bluetooth | "
    "Where-Object {$_.Status -eq 'OK'} | "
    "Select-Object FriendlyName, InstanceId, Status | "
    "ConvertTo-Json"
)


@dataclass
class BluetoothScanResult:
    """Outcome of a peripheral scan."""
    success: bool
    devices: list[DeviceDescriptor] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "devices": [d.to_dict() for d in self.devices],
        }
        if self.message:
            result["message"] = self.message
        return result


@dataclass
class BluetoothConnectResult:
    """Outcome of a connect attempt, with a user-facing message."""
    success: bool
    connected: bool
    message: str
    suggestion: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "connected": self.connected,
            "message": self.message,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result


def _parse_json_list(output: str) -> list[dict[str, Any]]:
    """Parse JSON tool output that may be empty, one object, or a list."""
    if not output or not output.strip():
        return []
    data = json.loads(output)
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [d for d in data if isinstance(d, dict)]
    return []


class BluetoothStrategy(ABC):
    """Platform-specific Bluetooth tooling."""

    platform: str = ""

    def __init__(
        self,
        runner: ShellCommandRunner,
        command_timeout: float = 10.0,
        inquiry_seconds: int = 10,
        inquiry_timeout: float = 15.0,
    ):
        self._runner = runner
        self.command_timeout = command_timeout
        self.inquiry_seconds = inquiry_seconds
        self.inquiry_timeout = inquiry_timeout

    @abstractmethod
    async def scan(self) -> list[DeviceDescriptor]:
        """List peripherals. Raises on tool failure."""
        ...

    @abstractmethod
    async def connect(self, device_id: str) -> None:
        """Issue the connect command. Raises on tool failure."""
        ...

    @abstractmethod
    async def is_connected(self, device_id: str) -> bool:
        ...

    @abstractmethod
    async def disconnect(self, device_id: str) -> None:
        """Issue the disconnect command. Raises on tool failure."""
        ...


class BlueutilStrategy(BluetoothStrategy):
    """macOS via blueutil."""

    platform = "darwin"

    def __init__(self, runner: ShellCommandRunner, connected_classifier: OutcomeClassifier = BLUEUTIL_CONNECTED, **kwargs):
        super().__init__(runner, **kwargs)
        self._connected_classifier = connected_classifier

    async def scan(self) -> list[DeviceDescriptor]:
        paired_result = await self._runner.run(
            "blueutil", "--paired", "--format", "json",
            timeout=self.command_timeout, check=True,
        )
        paired = _parse_json_list(paired_result.stdout)

        logger.info("Scanning for discoverable devices (%ds)...", self.inquiry_seconds)
        try:
            nearby_result = await self._runner.run(
                "blueutil", "--inquiry", str(self.inquiry_seconds), "--format", "json",
                timeout=self.inquiry_timeout, check=True,
            )
            nearby = _parse_json_list(nearby_result.stdout)
        except (CommandFailedError, CommandTimeoutError, ValueError) as e:
            logger.warning("Inquiry failed, using paired devices only: %s", e)
            nearby = []

        devices = self.merge(paired, nearby)
        logger.info(
            "Found %d total devices (%d paired, %d nearby)",
            len(devices), len(paired), len(nearby),
        )
        return devices

    @staticmethod
    def merge(paired: list[dict[str, Any]], nearby: list[dict[str, Any]]) -> list[DeviceDescriptor]:
        """Combine paired and nearby lists by address; paired entries win."""
        by_address: dict[str, DeviceDescriptor] = {}

        for d in paired:
            address = d.get("address")
            if not address:
                continue
            by_address[address] = DeviceDescriptor(
                id=address,
                name=d.get("name") or "Unknown Device",
                type=DeviceType.BLUETOOTH,
                address=address,
                connected=d.get("connected") is True,
                paired=True,
                extra={"favourite": bool(d.get("favourite", False))},
            )

        for d in nearby:
            address = d.get("address")
            if not address or address in by_address:
                continue
            rssi = d.get("rssi")
            by_address[address] = DeviceDescriptor(
                id=address,
                name=d.get("name") or "Unknown Device",
                type=DeviceType.BLUETOOTH,
                address=address,
                connected=False,
                paired=False,
                signal=float(rssi) if isinstance(rssi, (int, float)) else None,
                extra={"favourite": False},
            )

        return list(by_address.values())

    async def connect(self, device_id: str) -> None:
        await self._runner.run("blueutil", "--connect", device_id, timeout=self.command_timeout, check=True)

    async def is_connected(self, device_id: str) -> bool:
        result = await self._runner.run("blueutil", "--is-connected", device_id, timeout=self.command_timeout)
        return self._connected_classifier.matches(result)

    async def disconnect(self, device_id: str) -> None:
        await self._runner.run("blueutil", "--disconnect", device_id, timeout=self.command_timeout, check=True)


class PowerShellStrategy(BluetoothStrategy):
    """Windows via PowerShell. Enumeration only."""

    platform = "win32"

    async def scan(self) -> list[DeviceDescriptor]:
        result = await self._runner.run(
            "powershell", "-NoProfile", "-Command", POWERSHELL_SCAN_SCRIPT,
            timeout=self.command_timeout, check=True,
        )
        devices = []
        for d in _parse_json_list(result.stdout):
            instance_id = d.get("InstanceId")
            if not instance_id:
                continue
            devices.append(DeviceDescriptor(
                id=instance_id,
                name=d.get("FriendlyName") or "Unknown Device",
                type=DeviceType.BLUETOOTH,
                address=instance_id,
                connected=d.get("Status") == "OK",
                paired=True,
            ))
        return devices

    async def connect(self, device_id: str) -> None:
        raise UnsupportedPlatformError(self.platform)

    async def is_connected(self, device_id: str) -> bool:
        return False

    async def disconnect(self, device_id: str) -> None:
        raise UnsupportedPlatformError(self.platform)


class BluetoothctlStrategy(BluetoothStrategy):
    """Linux via bluetoothctl."""

    platform = "linux"

    def __init__(self, runner: ShellCommandRunner, connected_classifier: OutcomeClassifier = BLUETOOTHCTL_CONNECTED, **kwargs):
        super().__init__(runner, **kwargs)
        self._connected_classifier = connected_classifier

    async def scan(self) -> list[DeviceDescriptor]:
        result = await self._runner.run("bluetoothctl", "devices", timeout=self.command_timeout, check=True)
        return self.parse_devices(result.stdout)

    @staticmethod
    def parse_devices(output: str) -> list[DeviceDescriptor]:
        devices = []
        for line in output.splitlines():
            match = BLUETOOTHCTL_DEVICE_PATTERN.match(line.strip())
            if not match:
                continue
            address, name = match.group(1), match.group(2).strip()
            devices.append(DeviceDescriptor(
                id=address,
                name=name,
                type=DeviceType.BLUETOOTH,
                address=address,
                connected=False,
                paired=True,
            ))
        return devices

    async def connect(self, device_id: str) -> None:
        await self._runner.run("bluetoothctl", "connect", device_id, timeout=self.command_timeout, check=True)

    async def is_connected(self, device_id: str) -> bool:
        result = await self._runner.run("bluetoothctl", "info", device_id, timeout=self.command_timeout)
        return self._connected_classifier.matches(result)

    async def disconnect(self, device_id: str) -> None:
        await self._runner.run("bluetoothctl", "disconnect", device_id, timeout=self.command_timeout, check=True)


STRATEGIES: dict[str, type[BluetoothStrategy]] = {
    "darwin": BlueutilStrategy,
    "win32": PowerShellStrategy,
    "linux": BluetoothctlStrategy,
}


class BluetoothPeripheralController:
    """
    Scans, connects and disconnects Bluetooth peripherals.

    Keeps a local set of peripherals it connected successfully.
    """

    def __init__(
        self,
        runner: ShellCommandRunner,
        platform: Optional[str] = None,
        strategy: Optional[BluetoothStrategy] = None,
        settle_delay: float = 2.0,
        command_timeout: float = 10.0,
        inquiry_seconds: int = 10,
        inquiry_timeout: float = 15.0,
    ):
        self.platform = platform or sys.platform
        self.settle_delay = settle_delay
        self._connected: dict[str, str] = {}

        if strategy is None:
            strategy_cls = STRATEGIES.get(self.platform)
            if strategy_cls is not None:
                strategy = strategy_cls(
                    runner,
                    command_timeout=command_timeout,
                    inquiry_seconds=inquiry_seconds,
                    inquiry_timeout=inquiry_timeout,
                )
        self._strategy = strategy

    @property
    def connected_devices(self) -> dict[str, str]:
        """Peripherals connected by this controller, id -> display name."""
        return dict(self._connected)

    async def scan_devices(self) -> BluetoothScanResult:
        """Scan for paired and nearby peripherals."""
        logger.info("Scanning on %s...", self.platform)

        if self._strategy is None:
            return BluetoothScanResult(success=False, message="Unsupported platform")

        try:
            devices = await self._strategy.scan()
            return BluetoothScanResult(success=True, devices=devices)
        except Exception as e:
            logger.error("Bluetooth scan error: %s", e)
            return BluetoothScanResult(success=False, message=str(e))

    async def connect_device(self, device_id: str, display_name: Optional[str] = None) -> BluetoothConnectResult:
        """
        Connect a peripheral and verify the link.

        A failed connect is reconciled against the current link state, since
        the tool may report an error for a device that is already linked.
        """
        display_name = display_name or device_id
        logger.info("Connecting to %s (%s)...", display_name, device_id)

        if self._strategy is None:
            return BluetoothConnectResult(success=False, connected=False, message="Unsupported platform")

        try:
            try:
                await self._strategy.connect(device_id)
            except (CommandFailedError, CommandTimeoutError) as connect_error:
                logger.warning("Connect command failed for %s: %s", device_id, connect_error)
                if await self._check_connected(device_id):
                    self._connected[device_id] = display_name
                    return BluetoothConnectResult(success=True, connected=True, message="Already connected")
                return BluetoothConnectResult(
                    success=False,
                    connected=False,
                    message="Unable to connect",
                    suggestion="Make sure device is in pairing mode",
                )

            await asyncio.sleep(self.settle_delay)

            if await self._strategy.is_connected(device_id):
                self._connected[device_id] = display_name
                logger.info("Connected to %s", device_id)
                return BluetoothConnectResult(success=True, connected=True, message="Connected successfully")

            return BluetoothConnectResult(
                success=False,
                connected=False,
                message="Connection timeout",
                suggestion="Device didn't respond",
            )

        except UnsupportedPlatformError as e:
            return BluetoothConnectResult(success=False, connected=False, message=str(e))
        except Exception as e:
            logger.error("Bluetooth connect error for %s: %s", device_id, e)
            return BluetoothConnectResult(
                success=False,
                connected=False,
                message="Connection failed",
                suggestion="Please try again",
            )

    async def disconnect_device(self, device_id: str) -> ActionResult:
        """Disconnect a peripheral; local state changes only on success."""
        if self._strategy is None:
            return ActionResult(success=False, message="Unsupported platform", error="UNSUPPORTED_PLATFORM")

        try:
            await self._strategy.disconnect(device_id)
        except Exception as e:
            logger.error("Bluetooth disconnect error for %s: %s", device_id, e)
            return ActionResult(success=False, message=str(e), error="DISCONNECT_FAILED")

        self._connected.pop(device_id, None)
        return ActionResult(success=True, message=f"Disconnected {device_id}")

    async def _check_connected(self, device_id: str) -> bool:
        try:
            return await self._strategy.is_connected(device_id)
        except Exception as e:
            logger.debug("Connection check failed for %s: %s", device_id, e)
            return False
