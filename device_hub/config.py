"""
Centralized configuration management using Pydantic Settings.

Configuration is loaded from environment variables with sensible defaults.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiscoveryConfig(BaseSettings):
    """Network device discovery configuration."""

    model_config = SettingsConfigDict(env_prefix="DEVICE_HUB_DISCOVERY_")

    control_port: int = Field(default=5555, description="TCP port probed for Android TV (ADB)")
    probe_timeout: float = Field(default=0.5, description="Per-host TCP connect timeout in seconds")
    probe_concurrency: int = Field(
        default=0,
        description="Max simultaneous probe sockets (0 = one per host, unbounded)",
    )
    nmap_timeout: float = Field(default=30.0, description="Timeout for an nmap subnet scan")
    arp_timeout: float = Field(default=10.0, description="Timeout for reading the ARP table")

    # Google Cast (mDNS)
    cast_service_type: str = Field(
        default="_googlecast._tcp.local.",
        description="mDNS service type browsed for Cast receivers",
    )
    cast_scan_duration: float = Field(default=10.0, description="mDNS collection window in seconds")
    cast_resolve_timeout: float = Field(
        default=3.0,
        description="Seconds to wait for a single service record to resolve",
    )
    cast_default_port: int = Field(default=8009, description="Cast port when none is advertised")

    @field_validator("probe_timeout", "cast_scan_duration")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v


class BluetoothConfig(BaseSettings):
    """OS Bluetooth controller configuration."""

    model_config = SettingsConfigDict(env_prefix="DEVICE_HUB_BLUETOOTH_")

    inquiry_seconds: int = Field(default=10, description="Length of the nearby-device inquiry")
    inquiry_timeout: float = Field(default=15.0, description="Hard timeout for the inquiry command")
    command_timeout: float = Field(default=10.0, description="Timeout for other Bluetooth commands")
    settle_delay: float = Field(
        default=2.0,
        description="Seconds to wait after connect before re-checking the link",
    )


class RemoteShellConfig(BaseSettings):
    """ADB remote shell configuration for Android TV control."""

    model_config = SettingsConfigDict(env_prefix="DEVICE_HUB_ADB_")

    executable: str = Field(default="adb", description="ADB client executable")
    default_address: str = Field(default="192.168.1.128", description="Default Android TV address")
    default_port: int = Field(default=5555, description="Default Android TV ADB port")
    command_timeout: float = Field(default=10.0, description="Timeout for shell commands")
    connect_timeout: float = Field(default=15.0, description="Timeout for adb connect/pair")


class Settings(BaseSettings):
    """Application-wide settings."""

    model_config = SettingsConfigDict(
        env_prefix="DEVICE_HUB_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # General
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    api_prefix: str = Field(default="/api", description="Prefix for HTTP routes")
    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=8000, description="HTTP port")

    # Nested configs
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    bluetooth: BluetoothConfig = Field(default_factory=BluetoothConfig)
    adb: RemoteShellConfig = Field(default_factory=RemoteShellConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level


# Singleton settings instance
settings = Settings()
