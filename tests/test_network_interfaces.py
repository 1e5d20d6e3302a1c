"""Host interface enumeration tests."""
from __future__ import annotations

import socket
from collections import namedtuple

import psutil
import pytest

from localdbctl.network import AddressResolutionError, StaticInterfaces, SystemInterfaces

Snic = namedtuple("Snic", "family address netmask broadcast ptp")


def _fake_interfaces() -> dict[str, list[Snic]]:
    return {
        "lo": [
            Snic(socket.AF_INET, "127.0.0.1", "255.0.0.0", None, None),
            Snic(socket.AF_INET6, "::1", "ffff:ffff:ffff:ffff:ffff:ffff:ffff:ffff", None, None),
            Snic(psutil.AF_LINK, "00:00:00:00:00:00", None, None, None),
        ],
        "eth0": [
            Snic(socket.AF_INET, "192.168.1.20", "255.255.255.0", "192.168.1.255", None),
            Snic(socket.AF_INET6, "fe80::1c2b:3aff:fe4d:5e6f%eth0", "ffff:ffff:ffff:ffff::", None, None),
            Snic(socket.AF_INET6, "2001:db8::20", "ffff:ffff:ffff:ffff::", None, None),
        ],
        "eth1": [
            Snic(socket.AF_INET, "169.254.10.10", "255.255.0.0", None, None),
            Snic(socket.AF_INET, "203.0.113.9", "255.255.255.0", None, None),
            Snic(socket.AF_INET, "192.168.1.20", "255.255.255.0", None, None),
        ],
        "weird": [
            Snic(socket.AF_INET, "not-an-address", None, None, None),
        ],
    }


def test_loopback_addresses_cover_ipv4_and_ipv6() -> None:
    """Loopback enumeration returns both families in interface order."""
    interfaces = SystemInterfaces(net_if_addrs=_fake_interfaces)

    assert interfaces.loopback_addresses() == ["127.0.0.1", "::1"]


def test_public_addresses_are_ipv4_global_unicast() -> None:
    """Public enumeration skips loopback, link-local and IPv6 addresses."""
    interfaces = SystemInterfaces(net_if_addrs=_fake_interfaces)

    assert interfaces.public_addresses() == ["192.168.1.20", "203.0.113.9"]


def test_enumeration_error_is_wrapped() -> None:
    """OS errors from psutil surface as AddressResolutionError."""

    def broken() -> dict[str, list[Snic]]:
        raise OSError("ioctl failed")

    interfaces = SystemInterfaces(net_if_addrs=broken)

    with pytest.raises(AddressResolutionError, match="ioctl failed"):
        interfaces.loopback_addresses()
    with pytest.raises(AddressResolutionError):
        interfaces.public_addresses()


def test_system_interfaces_default_to_psutil() -> None:
    """The default enumerator reads psutil.net_if_addrs."""
    interfaces = SystemInterfaces()

    assert interfaces.net_if_addrs is psutil.net_if_addrs


def test_static_interfaces_return_copies() -> None:
    """Static interface values cannot be mutated through returned lists."""
    interfaces = StaticInterfaces.of(["127.0.0.1"], ["198.51.100.1"])

    loopback = interfaces.loopback_addresses()
    loopback.append("10.0.0.1")

    assert interfaces.loopback_addresses() == ["127.0.0.1"]
    assert interfaces.public_addresses() == ["198.51.100.1"]
