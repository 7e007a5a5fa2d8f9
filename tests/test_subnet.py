"""
Tests for local subnet resolution.
"""

import socket
from types import SimpleNamespace

from device_hub.discovery.subnet import SubnetResolver, compute_subnet


def _addr(address: str, netmask=None, family=socket.AF_INET):
    return SimpleNamespace(family=family, address=address, netmask=netmask)


class TestComputeSubnet:

    def test_class_c(self):
        assert compute_subnet("192.168.1.37", "255.255.255.0") == "192.168.1.0"

    def test_wider_mask(self):
        assert compute_subnet("10.20.30.40", "255.255.0.0") == "10.20.0.0"


class TestSubnetResolver:

    def test_resolves_first_non_loopback_ipv4(self):
        interfaces = {
            "lo": [_addr("127.0.0.1", "255.0.0.0")],
            "eth0": [
                _addr("fe80::1", "ffff:ffff:ffff:ffff::", family=socket.AF_INET6),
                _addr("192.168.1.37", "255.255.255.0"),
            ],
        }
        info = SubnetResolver(lambda: interfaces).resolve()

        assert info is not None
        assert info.address == "192.168.1.37"
        assert info.netmask == "255.255.255.0"
        assert info.subnet == "192.168.1.0"
        assert info.prefix == "192.168.1"

    def test_skips_addresses_without_netmask(self):
        interfaces = {
            "tun0": [_addr("10.8.0.2", None)],
            "wlan0": [_addr("172.16.5.9", "255.255.255.0")],
        }
        info = SubnetResolver(lambda: interfaces).resolve()
        assert info.subnet == "172.16.5.0"

    def test_loopback_only_returns_none(self):
        assert SubnetResolver(lambda: {"lo": [_addr("127.0.0.1", "255.0.0.0")]}).resolve() is None

    def test_enumeration_failure_returns_none(self):
        def _boom():
            raise OSError("no interfaces")

        assert SubnetResolver(_boom).resolve() is None
