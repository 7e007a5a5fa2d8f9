"""
Device discovery and control endpoints.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ...exceptions import (
    DeviceNotFoundError,
    InvalidAddressError,
    UnknownActionError,
    UnsupportedDeviceTypeError,
)
from ...orchestration import DeviceOrchestrator
from ..dependencies import get_orchestrator

logger = logging.getLogger("device_hub.api.devices")

router = APIRouter()


# --- Request Models ---
# Fields are optional so missing values map to 400 rather than 422.


class ScanRequestBody(BaseModel):
    """Request to scan for one device type."""
    type: Optional[str] = None


class PairRequestBody(BaseModel):
    """Request to pair with a discovered device."""
    deviceId: Optional[str] = None
    deviceType: Optional[str] = None
    pairingCode: Optional[str] = None
    deviceName: Optional[str] = None


class ConnectRequestBody(BaseModel):
    """Request to connect a device by address."""
    deviceType: Optional[str] = None
    deviceIp: Optional[str] = None


class ControlRequestBody(BaseModel):
    """Request to execute an action on a connected device."""
    deviceId: Optional[str] = None
    action: Optional[str] = None
    params: dict[str, Any] = {}


class DisconnectRequestBody(BaseModel):
    """Request to disconnect a device."""
    deviceId: Optional[str] = None


def _raise_for(error: Exception) -> None:
    """Map orchestrator errors to HTTP errors."""
    if isinstance(error, DeviceNotFoundError):
        raise HTTPException(404, str(error))
    if isinstance(error, (InvalidAddressError, UnsupportedDeviceTypeError, UnknownActionError)):
        raise HTTPException(400, str(error))
    logger.exception("Device request failed: %s", error)
    raise HTTPException(500, str(error))


# --- Endpoints ---


@router.post("/scan")
async def scan_devices(
    body: ScanRequestBody,
    orchestrator: DeviceOrchestrator = Depends(get_orchestrator),
):
    """Scan for devices of one type (bluetooth, android-tv, chromecast)."""
    if not body.type:
        raise HTTPException(400, "Device type is required")

    try:
        devices = await orchestrator.scan(body.type)
    except Exception as e:
        _raise_for(e)

    return {
        "success": True,
        "devices": [d.to_dict() for d in devices],
        "count": len(devices),
        "message": f"Found {len(devices)} devices",
    }


@router.post("/pair")
async def pair_device(
    body: PairRequestBody,
    orchestrator: DeviceOrchestrator = Depends(get_orchestrator),
):
    """Pair and connect a discovered device."""
    if not body.deviceId or not body.deviceType:
        raise HTTPException(400, "Device ID and device type are required")

    try:
        result = await orchestrator.pair(
            body.deviceId,
            body.deviceType,
            pairing_code=body.pairingCode,
            device_name=body.deviceName,
        )
    except Exception as e:
        _raise_for(e)

    return result.to_dict()


@router.post("/discover")
async def discover_devices(orchestrator: DeviceOrchestrator = Depends(get_orchestrator)):
    """List devices reachable through live remote shell sessions."""
    try:
        devices = await orchestrator.discover_devices()
    except Exception as e:
        _raise_for(e)

    return {
        "success": True,
        "devices": [d.to_dict() for d in devices],
        "count": len(devices),
        "message": f"Found {len(devices)} devices",
    }


@router.post("/connect")
async def connect_device(
    body: ConnectRequestBody,
    orchestrator: DeviceOrchestrator = Depends(get_orchestrator),
):
    """Connect to a specific device."""
    if not body.deviceType or not body.deviceIp:
        raise HTTPException(400, "Device type and IP address are required")

    logger.info("Connecting to %s at %s", body.deviceType, body.deviceIp)
    try:
        device = await orchestrator.connect(body.deviceType, body.deviceIp)
    except Exception as e:
        _raise_for(e)

    return {
        "success": True,
        "device": device.to_dict(),
        "message": f"Connected to {body.deviceType}",
    }


@router.post("/control")
async def control_device(
    body: ControlRequestBody,
    orchestrator: DeviceOrchestrator = Depends(get_orchestrator),
):
    """Control a connected device."""
    if not body.deviceId or not body.action:
        raise HTTPException(400, "Device ID and action are required")

    try:
        result = await orchestrator.control(body.deviceId, body.action, body.params)
    except Exception as e:
        _raise_for(e)

    return {
        "success": result.success,
        "result": result.to_dict(),
        "message": result.message,
    }


@router.get("/list")
async def list_devices(orchestrator: DeviceOrchestrator = Depends(get_orchestrator)):
    """Get list of connected devices."""
    devices = orchestrator.get_connected_devices()
    return {
        "success": True,
        "devices": [d.to_dict() for d in devices],
        "count": len(devices),
    }


@router.post("/disconnect")
async def disconnect_device(
    body: DisconnectRequestBody,
    orchestrator: DeviceOrchestrator = Depends(get_orchestrator),
):
    """Disconnect from a device."""
    if not body.deviceId:
        raise HTTPException(400, "Device ID is required")

    try:
        result = await orchestrator.disconnect(body.deviceId)
    except Exception as e:
        _raise_for(e)

    return result.to_dict()
