"""Resolve requested listen addresses into concrete host addresses.

Callers describe where the database server should listen with a list of
strings. Two entries are markers rather than addresses:

``localhost``
    every loopback address of the host.
``*``
    every loopback and public address of the host.

The markers are expanded against the live interface configuration, the result
is deduplicated and local addresses are moved to the front so the address a
user will most likely connect to is listed first.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from ..constants import LOCAL_ADDRESSES, LOOPBACK_MARKER, WILDCARD_MARKER
from .interfaces import InterfaceAddresses, SystemInterfaces

_MARKERS = frozenset({LOOPBACK_MARKER, WILDCARD_MARKER})


class ListenKind(str, Enum):
    """Kinds of listen request."""

    EXPLICIT = "explicit"
    LOOPBACK = "loopback"
    WILDCARD = "wildcard"


@dataclass(frozen=True)
class ListenRequest:
    """A single entry of a listen specification."""

    kind: ListenKind
    addresses: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Refuse marker strings inside explicit requests."""
        markers = [address for address in self.addresses if address in _MARKERS]
        if markers:
            raise ValueError(
                f"Listen markers are not literal addresses: {markers!r}. "
                "Use ListenRequest.loopback() or ListenRequest.wildcard()."
            )

    @classmethod
    def explicit(cls, *addresses: str) -> ListenRequest:
        """Listen on the given literal addresses."""
        return cls(ListenKind.EXPLICIT, tuple(addresses))

    @classmethod
    def loopback(cls) -> ListenRequest:
        """Listen on every loopback address."""
        return cls(ListenKind.LOOPBACK)

    @classmethod
    def wildcard(cls) -> ListenRequest:
        """Listen on every loopback and public address."""
        return cls(ListenKind.WILDCARD)

    def to_strings(self) -> list[str]:
        """Return the string-list form understood by external callers."""
        if self.kind is ListenKind.LOOPBACK:
            return [LOOPBACK_MARKER]
        if self.kind is ListenKind.WILDCARD:
            return [WILDCARD_MARKER]
        return list(self.addresses)


def parse_listen_requests(requested: Iterable[str | ListenRequest]) -> list[ListenRequest]:
    """Convert a mixed list of strings and requests into requests.

    Consecutive literal addresses are grouped into one explicit request.
    """
    requests: list[ListenRequest] = []
    pending: list[str] = []

    def flush() -> None:
        if pending:
            requests.append(ListenRequest.explicit(*pending))
            pending.clear()

    for item in requested:
        if isinstance(item, ListenRequest):
            flush()
            requests.append(item)
        elif item == LOOPBACK_MARKER:
            flush()
            requests.append(ListenRequest.loopback())
        elif item == WILDCARD_MARKER:
            flush()
            requests.append(ListenRequest.wildcard())
        else:
            pending.append(item)
    flush()
    return requests


def resolve_listen_addresses(
    requested: Sequence[str | ListenRequest],
    *,
    interfaces: InterfaceAddresses | None = None,
) -> list[str]:
    """Expand *requested* into a deduplicated, locals-first address list.

    Raises :class:`~localdbctl.network.interfaces.AddressResolutionError` when
    a marker is present and the host addresses cannot be enumerated.
    """
    requests = parse_listen_requests(requested)
    kinds = {request.kind for request in requests}
    source = interfaces if interfaces is not None else SystemInterfaces()

    addresses: list[str] = []
    if ListenKind.LOOPBACK in kinds:
        addresses = list(source.loopback_addresses())
    if ListenKind.WILDCARD in kinds:
        addresses = [*source.loopback_addresses(), *source.public_addresses()]

    for request in requests:
        if request.kind is ListenKind.EXPLICIT:
            addresses.extend(request.addresses)

    return sort_locals_first(_distinct(addresses))


def sort_locals_first(addresses: Iterable[str]) -> list[str]:
    """Stable-sort local addresses ahead of all others."""
    return sorted(addresses, key=lambda address: address not in LOCAL_ADDRESSES)


def _distinct(addresses: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(addresses))


__all__ = [
    "ListenKind",
    "ListenRequest",
    "parse_listen_requests",
    "resolve_listen_addresses",
    "sort_locals_first",
]
