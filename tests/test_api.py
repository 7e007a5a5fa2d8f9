"""
Tests for the HTTP route layer.

The orchestrator is attached to app.state directly; the lifespan (and so
the real scanners) never runs.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from conftest import FakeRunner
from device_hub.controllers.remote_shell import RemoteShellDeviceController
from device_hub.discovery.scanners.base import DeviceDescriptor, DeviceType
from device_hub.main import app
from device_hub.orchestration import DeviceOrchestrator


@pytest.fixture
def orchestrator():
    network_scanner = MagicMock()
    network_scanner.scan_for_android_tvs = AsyncMock(return_value=[
        DeviceDescriptor(id="192.168.1.50", name="Android TV (192.168.1.50)", type=DeviceType.ANDROID_TV,
                         address="192.168.1.50", port=5555),
    ])
    cast_scanner = MagicMock()
    cast_scanner.close = AsyncMock()
    bluetooth = MagicMock()
    remote_shell = RemoteShellDeviceController(FakeRunner())
    return DeviceOrchestrator(network_scanner, cast_scanner, bluetooth, remote_shell)


@pytest.fixture
def client(orchestrator):
    app.state.orchestrator = orchestrator
    yield TestClient(app)
    app.state.orchestrator = None


class TestHealth:

    def test_ping(self, client):
        response = client.get("/api/ping")
        assert response.status_code == 200
        assert response.json()["message"] == "pong"


class TestDeviceRoutes:

    def test_scan(self, client):
        response = client.post("/api/devices/scan", json={"type": "android-tv"})

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["devices"][0]["address"] == "192.168.1.50"

    def test_scan_requires_type(self, client):
        assert client.post("/api/devices/scan", json={}).status_code == 400

    def test_scan_invalid_type(self, client):
        assert client.post("/api/devices/scan", json={"type": "toaster"}).status_code == 400

    def test_discover_without_adb(self, client):
        response = client.post("/api/devices/discover")

        assert response.status_code == 200
        assert response.json()["devices"] == []

    def test_connect_list_control_disconnect(self, client):
        connect = client.post("/api/devices/connect", json={"deviceType": "projector", "deviceIp": "192.168.1.70"})
        assert connect.status_code == 200
        device_id = connect.json()["device"]["id"]
        assert device_id == "projector-192-168-1-70"

        listing = client.get("/api/devices/list").json()
        assert listing["count"] == 1

        control = client.post("/api/devices/control", json={"deviceId": device_id, "action": "power-on"})
        assert control.status_code == 200
        assert control.json()["result"]["data"]["acknowledged_only"] is True

        disconnect = client.post("/api/devices/disconnect", json={"deviceId": device_id})
        assert disconnect.status_code == 200
        assert client.get("/api/devices/list").json()["count"] == 0

    def test_connect_missing_fields(self, client):
        response = client.post("/api/devices/connect", json={"deviceType": "projector"})
        assert response.status_code == 400

    def test_connect_unsupported_type(self, client):
        response = client.post("/api/devices/connect", json={"deviceType": "mobile", "deviceIp": "10.0.0.1"})
        assert response.status_code == 400

    def test_pair_malformed_address_is_400(self, client):
        response = client.post("/api/devices/pair", json={"deviceId": "10.0.0.5:abc", "deviceType": "android-tv"})

        assert response.status_code == 400
        assert "Invalid device address" in response.json()["detail"]

    def test_connect_malformed_address_is_400(self, client):
        response = client.post("/api/devices/connect", json={"deviceType": "android-tv", "deviceIp": "10.0.0.5:99999"})
        assert response.status_code == 400

    def test_control_unknown_device(self, client):
        response = client.post("/api/devices/control", json={"deviceId": "nope", "action": "power-on"})
        assert response.status_code == 404
        assert "Device not found" in response.json()["detail"]

    def test_control_unknown_action(self, client):
        device_id = client.post(
            "/api/devices/connect", json={"deviceType": "chromecast", "deviceIp": "192.168.1.60"},
        ).json()["device"]["id"]

        response = client.post("/api/devices/control", json={"deviceId": device_id, "action": "self-destruct"})
        assert response.status_code == 400

    def test_disconnect_unknown_device(self, client):
        assert client.post("/api/devices/disconnect", json={"deviceId": "nope"}).status_code == 404

    def test_unexpected_error_is_500(self, client, orchestrator):
        orchestrator.network_scanner.scan_for_android_tvs.side_effect = RuntimeError("boom")

        response = client.post("/api/devices/scan", json={"type": "android-tv"})
        assert response.status_code == 500


class TestWithoutOrchestrator:

    def test_service_unavailable(self):
        app.state.orchestrator = None
        response = TestClient(app).get("/api/devices/list")
        assert response.status_code == 503
