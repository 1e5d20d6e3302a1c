"""Host network interface enumeration.

The resolver in :mod:`localdbctl.network.listen` asks an
:class:`InterfaceAddresses` implementation for the loopback and public
addresses of the host. :class:`SystemInterfaces` reads them from
``psutil.net_if_addrs()``; :class:`StaticInterfaces` returns fixed values.
"""
from __future__ import annotations

import ipaddress
import logging
import socket
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import psutil

LOGGER = logging.getLogger(__name__)

_IP_FAMILIES = (socket.AF_INET, socket.AF_INET6)
_LIMITED_BROADCAST = ipaddress.IPv4Address("255.255.255.255")

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


class AddressResolutionError(RuntimeError):
    """Raised when host addresses cannot be enumerated."""


class InterfaceAddresses(Protocol):
    """Source of the addresses bound to the local host."""

    def loopback_addresses(self) -> list[str]:
        """Return loopback addresses (IPv4 and IPv6)."""
        ...

    def public_addresses(self) -> list[str]:
        """Return externally reachable IPv4 addresses."""
        ...


@dataclass(slots=True)
class SystemInterfaces:
    """Enumerate interface addresses through psutil."""

    net_if_addrs: Callable[[], Mapping[str, Sequence[Any]]] = psutil.net_if_addrs

    def loopback_addresses(self) -> list[str]:
        """Return every loopback address configured on the host."""
        return [str(ip) for ip in self._addresses() if ip.is_loopback]

    def public_addresses(self) -> list[str]:
        """Return IPv4 global unicast addresses (private ranges included)."""
        return [
            str(ip)
            for ip in self._addresses()
            if isinstance(ip, ipaddress.IPv4Address) and _is_global_unicast(ip)
        ]

    # ------------------------------------------------------------------
    def _addresses(self) -> list[IPAddress]:
        try:
            interfaces = self.net_if_addrs()
        except OSError as exc:
            raise AddressResolutionError(
                f"Failed to enumerate network interfaces: {exc}"
            ) from exc

        seen: set[IPAddress] = set()
        addresses: list[IPAddress] = []
        for name, entries in interfaces.items():
            for entry in entries:
                if entry.family not in _IP_FAMILIES:
                    continue
                ip = _parse_address(entry.address)
                if ip is None:
                    LOGGER.debug("Skipping unparseable address %r on %s", entry.address, name)
                    continue
                if ip in seen:
                    continue
                seen.add(ip)
                addresses.append(ip)
        return addresses


@dataclass(frozen=True)
class StaticInterfaces:
    """Fixed interface addresses, for callers that already know them."""

    loopback: tuple[str, ...] = ("127.0.0.1", "::1")
    public: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, loopback: Iterable[str], public: Iterable[str] = ()) -> StaticInterfaces:
        """Build an instance from arbitrary iterables."""
        return cls(loopback=tuple(loopback), public=tuple(public))

    def loopback_addresses(self) -> list[str]:
        """Return the configured loopback addresses."""
        return list(self.loopback)

    def public_addresses(self) -> list[str]:
        """Return the configured public addresses."""
        return list(self.public)


def _parse_address(raw: str) -> IPAddress | None:
    # Link-local IPv6 addresses carry a zone suffix, e.g. ``fe80::1%eth0``.
    host = raw.split("%", 1)[0]
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


def _is_global_unicast(ip: ipaddress.IPv4Address) -> bool:
    return not (
        ip.is_unspecified
        or ip.is_loopback
        or ip.is_multicast
        or ip.is_link_local
        or ip == _LIMITED_BROADCAST
    )


__all__ = [
    "AddressResolutionError",
    "InterfaceAddresses",
    "StaticInterfaces",
    "SystemInterfaces",
]
