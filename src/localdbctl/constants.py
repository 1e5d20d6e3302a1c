"""Constants shared between the descriptor, the resolver and the CLI."""
from __future__ import annotations

from enum import Enum

# Role the server is started with; every descriptor records it.
DATABASE_USER = "localdb"

# Addresses only reachable from the same host. These sort ahead of every
# other listen address.
LOCAL_ADDRESSES: frozenset[str] = frozenset({"127.0.0.1", "::1", "localhost"})

LOOPBACK_MARKER = "localhost"
WILDCARD_MARKER = "*"


class Invoker(str, Enum):
    """What triggered the database server to start."""

    SERVICE = "service"
    QUERY = "query"
    CHECK = "check"
    PLUGIN = "plugin"
    DASHBOARD = "dashboard"
    INSTALLER = "installer"

    def __str__(self) -> str:
        return self.value


__all__ = [
    "DATABASE_USER",
    "LOCAL_ADDRESSES",
    "LOOPBACK_MARKER",
    "WILDCARD_MARKER",
    "Invoker",
]
