"""Process exit codes returned by the ``localdbctl`` commands."""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit status of a CLI invocation."""

    OK = 0
    # Configuration file or environment overrides are invalid.
    VALIDATION = 2
    # The running instance file could not be read or removed.
    ENVIRONMENT = 3
    # Host interface addresses could not be enumerated.
    PROVIDER = 4
