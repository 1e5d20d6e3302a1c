"""Listen address resolution and host interface enumeration."""
from __future__ import annotations

from .interfaces import (
    AddressResolutionError,
    InterfaceAddresses,
    StaticInterfaces,
    SystemInterfaces,
)
from .listen import (
    ListenKind,
    ListenRequest,
    parse_listen_requests,
    resolve_listen_addresses,
    sort_locals_first,
)

__all__ = [
    "AddressResolutionError",
    "InterfaceAddresses",
    "ListenKind",
    "ListenRequest",
    "StaticInterfaces",
    "SystemInterfaces",
    "parse_listen_requests",
    "resolve_listen_addresses",
    "sort_locals_first",
]
