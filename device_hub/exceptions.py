"""
Custom exceptions for device discovery and control.

Provides explicit error types instead of silent failures.
"""


class DeviceHubError(Exception):
    """Base exception for all device hub errors."""

    pass


class ToolUnavailableError(DeviceHubError):
    """Raised when a required command-line tool is not installed."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Command-line tool not available: {tool}")


class CommandTimeoutError(DeviceHubError):
    """Raised when an external command exceeds its timeout."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command '{command}' timed out after {timeout:.1f}s")


class CommandFailedError(DeviceHubError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, command: str, returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"Command '{command}' exited with status {returncode}{detail}")


class DeviceNotFoundError(DeviceHubError):
    """Raised when a device id is not present in the connected-device registry."""

    def __init__(self, device_id: str):
        self.device_id = device_id
        super().__init__(f"Device not found: {device_id}")


class UnsupportedDeviceTypeError(DeviceHubError):
    """Raised when a request names a device type this hub cannot handle."""

    def __init__(self, device_type: str):
        self.device_type = device_type
        super().__init__(f"Unsupported device type: {device_type}")


class UnsupportedPlatformError(DeviceHubError):
    """Raised when the host operating system has no matching strategy."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"Unsupported platform: {platform}")


class UnknownActionError(DeviceHubError):
    """Raised when a control action is not part of the supported set."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Unknown action: {action}")


class InvalidAddressError(DeviceHubError):
    """Raised when a device address is not a host with an optional valid port."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Invalid device address: {address}")
