"""
Device orchestrator.

Top-level façade over discovery and control. Owns the connected-device
registry and routes control requests to the controller for the device's
type.
"""

import logging
from typing import Any, Optional, Union

from ..capabilities.protocols import DEVICE_CAPABILITIES, ActionResult, ConnectedDevice
from ..capabilities.registry import ConnectedDeviceRegistry
from ..config import Settings
from ..controllers.bluetooth import BluetoothPeripheralController
from ..controllers.remote_shell import RemoteShellDeviceController
from ..discovery.scanners.base import DeviceDescriptor, DeviceType
from ..discovery.scanners.mdns import MulticastDeviceScanner
from ..discovery.scanners.network import NetworkDeviceScanner
from ..discovery.scanners.probe import PortProbeScanner
from ..discovery.subnet import SubnetResolver
from ..exceptions import (
    DeviceNotFoundError,
    InvalidAddressError,
    UnknownActionError,
    UnsupportedDeviceTypeError,
)
from ..utils.shell import ShellCommandRunner

logger = logging.getLogger("device_hub.orchestration.orchestrator")

SUPPORTED_ACTIONS = frozenset({
    "power-on",
    "power-off",
    "volume-up",
    "volume-down",
    "volume-set",
    "mute",
    "launch-app",
    "cast",
})

# Orchestrator action -> remote shell dispatch-table action
REMOTE_SHELL_ACTIONS = {
    "power-on": "power-on",
    "power-off": "power-off",
    "volume-up": "volume-up",
    "volume-down": "volume-down",
    "volume-set": "volume-set",
    "mute": "volume-mute",
    "launch-app": "launch-app",
    "cast": "open-url",
}

CONNECTABLE_TYPES = (DeviceType.ANDROID_TV, DeviceType.CHROMECAST, DeviceType.PROJECTOR)
SCANNABLE_TYPES = (DeviceType.BLUETOOTH, DeviceType.ANDROID_TV, DeviceType.CHROMECAST)


def coerce_device_type(value: Union[str, DeviceType]) -> DeviceType:
    """Parse a device type name, raising a named error for unknown types."""
    if isinstance(value, DeviceType):
        return value
    try:
        return DeviceType(value)
    except ValueError:
        raise UnsupportedDeviceTypeError(str(value)) from None


def make_device_id(device_type: DeviceType, address: str) -> str:
    """Deterministic registry id, e.g. android-tv-192-168-1-5."""
    return f"{device_type.value}-{address.replace('.', '-').replace(':', '-')}"


def split_address(target: str, default_port: int) -> tuple[str, int]:
    """Split "host[:port]" into host and port, using default_port when absent."""
    host, sep, port_text = target.partition(":")
    if not host:
        raise InvalidAddressError(target)
    if not sep:
        return host, default_port
    if not port_text.isdigit() or not 0 < int(port_text) < 65536:
        raise InvalidAddressError(target)
    return host, int(port_text)


class DeviceOrchestrator:
    """
    Aggregates discovery and routes control requests.

    Control for android-tv goes to the remote shell controller and for
    bluetooth to the Bluetooth controller. Chromecast and projector control
    is acknowledged without contacting the device.
    """

    def __init__(
        self,
        network_scanner: NetworkDeviceScanner,
        cast_scanner: MulticastDeviceScanner,
        bluetooth: BluetoothPeripheralController,
        remote_shell: RemoteShellDeviceController,
        registry: Optional[ConnectedDeviceRegistry] = None,
    ):
        self.network_scanner = network_scanner
        self.cast_scanner = cast_scanner
        self.bluetooth = bluetooth
        self.remote_shell = remote_shell
        self.registry = registry if registry is not None else ConnectedDeviceRegistry()

    # --- Discovery ---

    async def discover_devices(self) -> list[DeviceDescriptor]:
        """
        Descriptors for live remote shell sessions.

        Returns an empty list when adb is not installed. Full discovery goes
        through scan().
        """
        status = await self.remote_shell.check_adb()
        if not status.get("available"):
            logger.info("ADB unavailable; no devices to report")
            return []

        devices = [
            DeviceDescriptor(
                id=session.device_id,
                name=f"Android TV ({session.address})",
                type=DeviceType.ANDROID_TV,
                address=session.address,
                port=session.port,
                connected=True,
                paired=True,
            )
            for session in self.remote_shell.sessions
        ]
        logger.info("Found %d devices", len(devices))
        return devices

    async def scan(self, device_type: Union[str, DeviceType]) -> list[DeviceDescriptor]:
        """Run the scanner for one device type."""
        device_type = coerce_device_type(device_type)
        logger.info("Scanning for %s devices...", device_type.value)

        if device_type == DeviceType.BLUETOOTH:
            result = await self.bluetooth.scan_devices()
            if not result.success:
                logger.warning("Bluetooth scan failed: %s", result.message)
            return result.devices
        if device_type == DeviceType.ANDROID_TV:
            return await self.network_scanner.scan_for_android_tvs()
        if device_type == DeviceType.CHROMECAST:
            return await self.cast_scanner.scan()

        raise UnsupportedDeviceTypeError(device_type.value)

    async def pair(
        self,
        device_id: str,
        device_type: Union[str, DeviceType],
        pairing_code: Optional[str] = None,
        device_name: Optional[str] = None,
    ) -> ActionResult:
        """Pair and connect a discovered device, registering it on success."""
        device_type = coerce_device_type(device_type)
        logger.info("Pairing %s device %s", device_type.value, device_id)

        if device_type == DeviceType.BLUETOOTH:
            return await self._pair_bluetooth(device_id, device_name)
        if device_type == DeviceType.ANDROID_TV:
            return await self._pair_android_tv(device_id, pairing_code, device_name)
        if device_type in CONNECTABLE_TYPES:
            device = await self.connect(device_type, device_id)
            if device_name:
                device.name = device_name
            return ActionResult(
                success=True,
                message=f"Connected to {device_type.value}",
                data={"device": device.to_dict()},
            )

        raise UnsupportedDeviceTypeError(device_type.value)

    async def _pair_bluetooth(self, address: str, device_name: Optional[str]) -> ActionResult:
        result = await self.bluetooth.connect_device(address, device_name)
        data: dict[str, Any] = {}
        if result.suggestion:
            data["suggestion"] = result.suggestion

        if not result.success:
            return ActionResult(success=False, message=result.message, data=data, error="CONNECT_FAILED")

        device = ConnectedDevice(
            id=address,
            type=DeviceType.BLUETOOTH,
            address=address,
            capabilities=DEVICE_CAPABILITIES[DeviceType.BLUETOOTH],
            name=device_name,
        )
        self.registry.add(device)
        data["device"] = device.to_dict()
        return ActionResult(success=True, message=result.message, data=data)

    async def _pair_android_tv(
        self,
        target: str,
        pairing_code: Optional[str],
        device_name: Optional[str],
    ) -> ActionResult:
        address, port = split_address(target, self.remote_shell.default_port)

        if pairing_code:
            paired = await self.remote_shell.pair(f"{address}:{port}", pairing_code)
            if not paired.success:
                return ActionResult(success=False, message="Pairing failed", error=paired.error)

        session = await self.remote_shell.connect_to_tv(address, port)
        if not session.success:
            return ActionResult(success=False, message="Unable to connect", error=session.error)

        device = ConnectedDevice(
            id=make_device_id(DeviceType.ANDROID_TV, address),
            type=DeviceType.ANDROID_TV,
            address=address,
            capabilities=DEVICE_CAPABILITIES[DeviceType.ANDROID_TV],
            name=device_name,
            metadata={"remote_shell_id": session.device_id},
        )
        self.registry.add(device)
        return ActionResult(
            success=True,
            message=session.message or "Connected",
            data={"device": device.to_dict()},
        )

    # --- Registry ---

    async def connect(self, device_type: Union[str, DeviceType], address: str) -> ConnectedDevice:
        """
        Record a device in the registry.

        This does not open a session with the device. For android-tv the
        remote shell id is remembered so later control calls can reach it.
        """
        device_type = coerce_device_type(device_type)
        if device_type not in CONNECTABLE_TYPES:
            raise UnsupportedDeviceTypeError(device_type.value)

        device_id = make_device_id(device_type, address)
        metadata: dict[str, Any] = {}
        if device_type == DeviceType.ANDROID_TV:
            host, port = split_address(address, self.remote_shell.default_port)
            metadata["remote_shell_id"] = f"{host}:{port}"
            address = host

        device = ConnectedDevice(
            id=device_id,
            type=device_type,
            address=address,
            capabilities=DEVICE_CAPABILITIES[device_type],
            metadata=metadata,
        )
        self.registry.add(device)
        logger.info("Connected to %s: %s", device_type.value, device.id)
        return device

    def get_connected_devices(self) -> list[ConnectedDevice]:
        return self.registry.list_all()

    async def disconnect(self, device_id: str) -> ActionResult:
        """
        Remove a device from the registry.

        Underlying links are released on a best-effort basis; their failure
        is logged and does not keep the entry.
        """
        device = self.registry.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)

        if device.type == DeviceType.BLUETOOTH:
            result = await self.bluetooth.disconnect_device(device.address)
            if not result.success:
                logger.warning("Bluetooth disconnect failed for %s: %s", device_id, result.message)
        elif device.type == DeviceType.ANDROID_TV:
            shell_id = device.metadata.get("remote_shell_id")
            if shell_id and self.remote_shell.get_session(shell_id) is not None:
                await self.remote_shell.disconnect_from_tv(shell_id)

        self.registry.remove(device_id)
        return ActionResult(success=True, message="Device disconnected successfully")

    async def disconnect_all(self) -> ActionResult:
        logger.info("Disconnecting all devices")
        count = self.registry.clear()
        return ActionResult(
            success=True,
            message=f"Disconnected {count} device(s)",
            data={"count": count},
        )

    # --- Control ---

    async def control(
        self,
        device_id: str,
        action: str,
        params: Optional[dict[str, Any]] = None,
    ) -> ActionResult:
        """
        Execute an action on a connected device.

        Raises:
            DeviceNotFoundError: the id is not in the registry
            UnknownActionError: the action is not supported
        """
        device = self.registry.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        if action not in SUPPORTED_ACTIONS:
            raise UnknownActionError(action)

        params = params or {}
        logger.info("Controlling device %s: %s", device_id, action)

        if device.type == DeviceType.ANDROID_TV:
            return await self._control_android_tv(device, action, params)
        if device.type == DeviceType.BLUETOOTH:
            return await self._control_bluetooth(device, action)

        # Chromecast / projector: no session protocol, acknowledge only
        return ActionResult(
            success=True,
            message=f"{action} acknowledged for {device.type.value}",
            data={"device_id": device.id, "action": action, "params": params, "acknowledged_only": True},
        )

    async def _control_android_tv(
        self,
        device: ConnectedDevice,
        action: str,
        params: dict[str, Any],
    ) -> ActionResult:
        shell_id = device.metadata.get("remote_shell_id") or f"{device.address}:{self.remote_shell.default_port}"
        result = await self.remote_shell.control_tv(REMOTE_SHELL_ACTIONS[action], shell_id, params)
        return ActionResult(
            success=result.success,
            message=result.message or result.error or "",
            data=result.to_dict(),
            error=result.error,
        )

    async def _control_bluetooth(self, device: ConnectedDevice, action: str) -> ActionResult:
        if action == "power-on":
            result = await self.bluetooth.connect_device(device.address, device.name)
            data = {"connected": result.connected}
            if result.suggestion:
                data["suggestion"] = result.suggestion
            return ActionResult(
                success=result.success,
                message=result.message,
                data=data,
                error=None if result.success else "CONNECT_FAILED",
            )
        if action == "power-off":
            return await self.bluetooth.disconnect_device(device.address)

        return ActionResult(
            success=False,
            message=f"Action {action} is not supported for bluetooth devices",
            error="UNSUPPORTED_ACTION",
        )

    async def close(self) -> None:
        await self.cast_scanner.close()


def build_orchestrator(settings: Settings) -> DeviceOrchestrator:
    """Wire up an orchestrator and its collaborators from settings."""
    runner = ShellCommandRunner(default_timeout=settings.adb.command_timeout)
    discovery = settings.discovery

    network_scanner = NetworkDeviceScanner(
        runner,
        resolver=SubnetResolver(),
        prober=PortProbeScanner(max_concurrency=discovery.probe_concurrency),
        port=discovery.control_port,
        probe_timeout=discovery.probe_timeout,
        nmap_timeout=discovery.nmap_timeout,
        arp_timeout=discovery.arp_timeout,
    )
    cast_scanner = MulticastDeviceScanner(
        service_type=discovery.cast_service_type,
        scan_duration=discovery.cast_scan_duration,
        resolve_timeout=discovery.cast_resolve_timeout,
        default_port=discovery.cast_default_port,
    )
    bluetooth = BluetoothPeripheralController(
        runner,
        settle_delay=settings.bluetooth.settle_delay,
        command_timeout=settings.bluetooth.command_timeout,
        inquiry_seconds=settings.bluetooth.inquiry_seconds,
        inquiry_timeout=settings.bluetooth.inquiry_timeout,
    )
    remote_shell = RemoteShellDeviceController(
        runner,
        executable=settings.adb.executable,
        default_address=settings.adb.default_address,
        default_port=settings.adb.default_port,
        command_timeout=settings.adb.command_timeout,
        connect_timeout=settings.adb.connect_timeout,
    )
    return DeviceOrchestrator(network_scanner, cast_scanner, bluetooth, remote_shell)
