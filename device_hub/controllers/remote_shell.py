"""
ADB Controller - Android TV control over the remote debug bridge.

Handles connection sessions, a fixed action dispatch table and read-only
device queries.
"""

import asyncio
import logging
import re
import shlex
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..exceptions import ToolUnavailableError, UnknownActionError
from ..utils.shell import CommandResult, ShellCommandRunner
from .outcomes import ADB_CONNECTED, ADB_PAIRED, DISPLAY_POWER_ON, OutcomeClassifier

logger = logging.getLogger("device_hub.controllers.remote_shell")

BATTERY_LEVEL_PATTERN = re.compile(r"level:\s*(\d+)")
SCREEN_SIZE_PATTERN = re.compile(r"size:\s*(\d+x\d+)")
CURRENT_FOCUS_PATTERN = re.compile(r"mCurrentFocus=.*\{[^}]*\s([\w.]+)/([\w.$]+)\}")

KEYEVENT_ACTIONS = {
    # Power
    "power-on": "KEYCODE_WAKEUP",
    "power-off": "KEYCODE_SLEEP",
    "power-toggle": "KEYCODE_POWER",
    # Volume
    "volume-up": "KEYCODE_VOLUME_UP",
    "volume-down": "KEYCODE_VOLUME_DOWN",
    "volume-mute": "KEYCODE_VOLUME_MUTE",
    # Navigation
    "home": "KEYCODE_HOME",
    "back": "KEYCODE_BACK",
    "menu": "KEYCODE_MENU",
    "up": "KEYCODE_DPAD_UP",
    "down": "KEYCODE_DPAD_DOWN",
    "left": "KEYCODE_DPAD_LEFT",
    "right": "KEYCODE_DPAD_RIGHT",
    "select": "KEYCODE_DPAD_CENTER",
    # Media
    "play-pause": "KEYCODE_MEDIA_PLAY_PAUSE",
    "play": "KEYCODE_MEDIA_PLAY",
    "pause": "KEYCODE_MEDIA_PAUSE",
    "stop": "KEYCODE_MEDIA_STOP",
    "next": "KEYCODE_MEDIA_NEXT",
    "previous": "KEYCODE_MEDIA_PREVIOUS",
}

APP_COMPONENTS = {
    "netflix": "com.netflix.ninja/.MainActivity",
    "youtube": "com.google.android.youtube.tv/com.google.android.apps.youtube.tv.activity.ShellActivity",
    "prime": "com.amazon.avod/.client.activity.HomeActivity",
    "disney": "com.disney.disneyplus/com.bamtechmedia.dominguez.main.MainActivity",
    "spotify": "com.spotify.tv.android/.SpotifyTVActivity",
    "browser": "com.android.chrome/com.google.android.apps.chrome.Main",
}

APP_ALIASES = {
    "prime video": "prime",
    "amazon prime": "prime",
    "disney+": "disney",
    "disney plus": "disney",
    "chrome": "browser",
}


def resolve_app(name: str) -> Optional[str]:
    """Map a spoken or typed app name to a known app key."""
    key = name.strip().lower()
    key = APP_ALIASES.get(key, key)
    return key if key in APP_COMPONENTS else None


def _keyevent(code: str) -> Callable[[dict[str, Any]], list[str]]:
    return lambda params: ["input", "keyevent", code]


def _launch(app: str) -> Callable[[dict[str, Any]], list[str]]:
    return lambda params: ["am", "start", "-n", APP_COMPONENTS[app]]


def _launch_named(params: dict[str, Any]) -> list[str]:
    name = params.get("app") or params.get("appName") or ""
    app = resolve_app(str(name))
    if app is None:
        raise ValueError(f"Unknown app: {name or '(none)'}")
    return ["am", "start", "-n", APP_COMPONENTS[app]]


def _volume_set(params: dict[str, Any]) -> list[str]:
    try:
        level = int(params["level"])
    except (KeyError, TypeError, ValueError):
        raise ValueError("level parameter required (integer)") from None
    if level < 0:
        raise ValueError("level must not be negative")
    return ["cmd", "media_session", "volume", "--show", "--stream", "3", "--set", str(level)]


def _open_url(params: dict[str, Any]) -> list[str]:
    url = params.get("url") or params.get("mediaUrl")
    if not url:
        raise ValueError("url parameter required")
    return ["am", "start", "-a", "android.intent.action.VIEW", "-d", shlex.quote(str(url))]


def build_dispatch_table() -> dict[str, Callable[[dict[str, Any]], list[str]]]:
    """Action name -> builder of the remote shell command arguments."""
    table: dict[str, Callable[[dict[str, Any]], list[str]]] = {
        action: _keyevent(code) for action, code in KEYEVENT_ACTIONS.items()
    }
    for app in APP_COMPONENTS:
        table[f"launch-{app}"] = _launch(app)
    table["launch-app"] = _launch_named
    table["volume-set"] = _volume_set
    table["open-url"] = _open_url
    return table


@dataclass
class RemoteShellSession:
    """A live `adb connect` session."""
    device_id: str  # address:port
    address: str
    port: int
    status: str = "connected"
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.device_id,
            "ip": self.address,
            "port": self.port,
            "status": self.status,
            "connectedAt": self.connected_at.isoformat(),
        }


@dataclass
class RemoteShellResult:
    """Result of a remote shell operation."""
    success: bool
    device_id: str
    action: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "deviceId": self.device_id}
        if self.action is not None:
            result["action"] = self.action
        if self.message is not None:
            result["message"] = self.message
        if self.error is not None:
            result["error"] = self.error
        return result


class RemoteShellDeviceController:
    """
    Controls Android TVs over ADB.

    Sessions recorded here are independent of the orchestrator's
    connected-device registry.
    """

    def __init__(
        self,
        runner: ShellCommandRunner,
        executable: str = "adb",
        default_address: str = "192.168.1.128",
        default_port: int = 5555,
        command_timeout: float = 10.0,
        connect_timeout: float = 15.0,
        connect_classifier: OutcomeClassifier = ADB_CONNECTED,
        pair_classifier: OutcomeClassifier = ADB_PAIRED,
        power_classifier: OutcomeClassifier = DISPLAY_POWER_ON,
    ):
        self._runner = runner
        self.executable = executable
        self.default_address = default_address
        self.default_port = default_port
        self.command_timeout = command_timeout
        self.connect_timeout = connect_timeout
        self._connect_classifier = connect_classifier
        self._pair_classifier = pair_classifier
        self._power_classifier = power_classifier
        self._commands = build_dispatch_table()
        self._sessions: dict[str, RemoteShellSession] = {}

    @property
    def default_device_id(self) -> str:
        return f"{self.default_address}:{self.default_port}"

    @property
    def supported_actions(self) -> list[str]:
        return sorted(self._commands)

    @property
    def sessions(self) -> list[RemoteShellSession]:
        return list(self._sessions.values())

    def get_session(self, device_id: str) -> Optional[RemoteShellSession]:
        return self._sessions.get(device_id)

    async def check_adb(self) -> dict[str, Any]:
        """Check if ADB is installed and available."""
        try:
            result = await self._runner.run(self.executable, "version", timeout=self.command_timeout)
        except ToolUnavailableError as e:
            logger.error("ADB not found: %s", e)
            return {"available": False, "error": "ADB not installed"}

        lines = result.stdout.strip().splitlines()
        return {
            "available": result.ok and "Android Debug Bridge" in result.stdout,
            "version": lines[0] if lines else None,
        }

    async def connect_to_tv(
        self,
        address: Optional[str] = None,
        port: Optional[int] = None,
    ) -> RemoteShellResult:
        """Connect to an Android TV and record the session."""
        address = address or self.default_address
        port = int(port or self.default_port)
        device_id = f"{address}:{port}"
        logger.info("Connecting to Android TV at %s...", device_id)

        try:
            result = await self._runner.run(
                self.executable, "connect", device_id, timeout=self.connect_timeout,
            )
        except ToolUnavailableError as e:
            logger.error("Connection failed: %s", e)
            return RemoteShellResult(success=False, device_id=device_id, error="ADB not installed")

        if self._connect_classifier.matches(result):
            self._sessions[device_id] = RemoteShellSession(device_id=device_id, address=address, port=port)
            logger.info("Successfully connected to %s", device_id)
            return RemoteShellResult(success=True, device_id=device_id, message=result.stdout.strip())

        error = (result.stderr or result.stdout).strip() or "Connection timed out"
        logger.error("Connection to %s failed: %s", device_id, error)
        return RemoteShellResult(success=False, device_id=device_id, error=error)

    async def pair(self, device_id: str, pairing_code: str) -> RemoteShellResult:
        """Pair with a device that requires a pairing code (`adb pair`)."""
        logger.info("Pairing with %s...", device_id)
        try:
            result = await self._runner.run(
                self.executable, "pair", device_id, pairing_code, timeout=self.connect_timeout,
            )
        except ToolUnavailableError:
            return RemoteShellResult(success=False, device_id=device_id, action="pair", error="ADB not installed")

        if self._pair_classifier.matches(result):
            return RemoteShellResult(
                success=True, device_id=device_id, action="pair", message=result.stdout.strip(),
            )
        error = (result.stderr or result.stdout).strip() or "Pairing failed"
        logger.error("Pairing with %s failed: %s", device_id, error)
        return RemoteShellResult(success=False, device_id=device_id, action="pair", error=error)

    async def disconnect_from_tv(self, device_id: Optional[str] = None) -> RemoteShellResult:
        """Forget the session and run `adb disconnect` either way."""
        device_id = device_id or self.default_device_id
        self._sessions.pop(device_id, None)

        try:
            result = await self._runner.run(
                self.executable, "disconnect", device_id, timeout=self.command_timeout,
            )
        except ToolUnavailableError:
            return RemoteShellResult(success=False, device_id=device_id, error="ADB not installed")

        if not result.ok:
            error = (result.stderr or result.stdout).strip() or "Disconnect failed"
            logger.error("Disconnection from %s failed: %s", device_id, error)
            return RemoteShellResult(success=False, device_id=device_id, error=error)

        logger.info("Disconnected from %s", device_id)
        return RemoteShellResult(success=True, device_id=device_id, message=result.stdout.strip())

    async def list_attached_devices(self) -> list[dict[str, str]]:
        """Devices the local ADB server currently knows about."""
        try:
            result = await self._runner.run(self.executable, "devices", timeout=self.command_timeout)
        except ToolUnavailableError:
            return []
        if not result.ok:
            logger.error("Failed to get devices: %s", result.stderr.strip())
            return []

        devices = []
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line or line.startswith("List of devices") or line.startswith("*"):
                continue
            parts = line.split()
            if len(parts) >= 2:
                devices.append({"id": parts[0], "status": parts[1], "type": "android-tv"})
        return devices

    async def control_tv(
        self,
        action: str,
        device_id: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> RemoteShellResult:
        """
        Execute a control action.

        Unknown actions and invalid parameters are rejected locally and never
        reach the shell.
        """
        device_id = device_id or self.default_device_id
        params = params or {}
        logger.info("Executing %s on %s", action, device_id)

        try:
            builder = self._commands.get(action)
            if builder is None:
                raise UnknownActionError(action)
            shell_args = builder(params)
        except (UnknownActionError, ValueError) as e:
            logger.warning("Rejected %s for %s: %s", action, device_id, e)
            return RemoteShellResult(success=False, device_id=device_id, action=action, error=str(e))

        try:
            result = await self._shell(device_id, *shell_args)
        except ToolUnavailableError:
            return RemoteShellResult(success=False, device_id=device_id, action=action, error="ADB not installed")

        if not result.ok:
            error = result.stderr.strip() or ("Command timed out" if result.timed_out else "Command failed")
            logger.error("Command %s failed on %s: %s", action, device_id, error)
            return RemoteShellResult(success=False, device_id=device_id, action=action, error=error)

        logger.info("Command executed successfully: %s", action)
        return RemoteShellResult(
            success=True,
            device_id=device_id,
            action=action,
            message=f"TV {action.replace('-', ' ')} executed successfully",
        )

    async def get_tv_info(self, device_id: Optional[str] = None) -> dict[str, Any]:
        """Model, Android version, battery level and resolution, queried concurrently."""
        device_id = device_id or self.default_device_id

        model, android, battery, resolution = await asyncio.gather(
            self._query(device_id, "getprop", "ro.product.model"),
            self._query(device_id, "getprop", "ro.build.version.release"),
            self._query(device_id, "dumpsys", "battery"),
            self._query(device_id, "wm", "size"),
        )

        answered = any(r is not None and r.ok for r in (model, android, battery, resolution))
        return {
            "deviceId": device_id,
            "model": self._first_line(model) or "Unknown",
            "androidVersion": self._first_line(android) or "Unknown",
            "battery": self._extract(battery, BATTERY_LEVEL_PATTERN) or "N/A",
            "resolution": self._extract(resolution, SCREEN_SIZE_PATTERN) or "Unknown",
            "status": "connected" if answered else "error",
        }

    async def is_tv_on(self, device_id: Optional[str] = None) -> bool:
        """Whether the display is powered on."""
        device_id = device_id or self.default_device_id
        result = await self._query(device_id, "dumpsys", "power")
        if result is None:
            return False
        return self._power_classifier.matches(result)

    async def get_current_app(self, device_id: Optional[str] = None) -> dict[str, str]:
        """Package and activity of the focused window."""
        device_id = device_id or self.default_device_id
        result = await self._query(device_id, "dumpsys", "window", "windows")

        if result is not None and result.ok:
            match = CURRENT_FOCUS_PATTERN.search(result.stdout)
            if match:
                return {
                    "package": match.group(1),
                    "activity": match.group(2),
                    "fullName": f"{match.group(1)}/{match.group(2)}",
                }

        return {"package": "unknown", "activity": "unknown"}

    async def _shell(self, device_id: str, *shell_args: str) -> CommandResult:
        return await self._runner.run(
            self.executable, "-s", device_id, "shell", *shell_args,
            timeout=self.command_timeout,
        )

    async def _query(self, device_id: str, *shell_args: str) -> Optional[CommandResult]:
        """Run a read-only query; any failure becomes None."""
        try:
            return await self._shell(device_id, *shell_args)
        except Exception as e:
            logger.warning("Query %s failed on %s: %s", " ".join(shell_args), device_id, e)
            return None

    @staticmethod
    def _first_line(result: Optional[CommandResult]) -> Optional[str]:
        if result is None or not result.ok:
            return None
        lines = result.stdout.strip().splitlines()
        return lines[0].strip() if lines else None

    @staticmethod
    def _extract(result: Optional[CommandResult], pattern: re.Pattern) -> Optional[str]:
        if result is None or not result.ok:
            return None
        match = pattern.search(result.stdout)
        return match.group(1) if match else None
