"""Descriptor of the locally running database server.

When the database server starts, the launcher records how to reach it
(pid, listen addresses, port, credentials) in a single JSON file. Later CLI
invocations read that file to find the running instance instead of starting
a new one, and shutdown removes it.

The file is written atomically with owner-only permissions because it carries
the plaintext password. Every other textual form of the descriptor
(``str()``, ``repr()``, :meth:`RunningInstanceInfo.render_redacted`) hides it.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from ..constants import DATABASE_USER, Invoker
from ..network import InterfaceAddresses, ListenRequest, resolve_listen_addresses

LOGGER = logging.getLogger(__name__)

RUNNING_INFO_STRUCT_VERSION = 20220411
REDACTED_PASSWORD = "XXXX-XXXX-XXXX"
RUNNING_INFO_FILE_MODE = 0o600


class RunningInfoError(RuntimeError):
    """Base class for running instance descriptor failures."""


class RunningInfoSerializationError(RunningInfoError):
    """Raised when a descriptor cannot be encoded for saving."""


class RunningInfoFormatError(RunningInfoError):
    """Raised when persisted content does not describe a descriptor."""


class _HasPid(Protocol):
    pid: int


@dataclass(slots=True)
class RunningInstanceInfo:
    """Connection details of the running database server."""

    pid: int
    listen: list[str]
    port: int
    invoker: Invoker | str
    password: str = field(repr=False)
    user: str
    database: str
    struct_version: int = RUNNING_INFO_STRUCT_VERSION

    @classmethod
    def create(
        cls,
        process: int | _HasPid,
        listen_addresses: Sequence[str | ListenRequest],
        port: int,
        database: str,
        password: str,
        invoker: Invoker,
        *,
        interfaces: InterfaceAddresses | None = None,
    ) -> RunningInstanceInfo:
        """Build the descriptor for a freshly started server process.

        *listen_addresses* is the binding requested from the server; markers
        are resolved against the host interfaces. Nothing is written to disk.
        """
        return cls(
            pid=_process_id(process),
            listen=resolve_listen_addresses(listen_addresses, interfaces=interfaces),
            port=port,
            invoker=Invoker(invoker),
            password=password,
            user=DATABASE_USER,
            database=database,
            struct_version=RUNNING_INFO_STRUCT_VERSION,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> RunningInstanceInfo:
        """Decode a persisted mapping.

        Missing keys fall back to empty values and unknown keys are ignored.
        Invoker tags outside :class:`Invoker` are kept as plain strings so a
        descriptor written by a newer server still loads.
        """
        if not isinstance(data, Mapping):
            raise RunningInfoFormatError(
                f"Expected a JSON object, got {type(data).__name__}."
            )
        listen_raw = data.get("listen")
        if listen_raw is None:
            listen: list[str] = []
        elif isinstance(listen_raw, list) and all(isinstance(item, str) for item in listen_raw):
            listen = list(listen_raw)
        else:
            raise RunningInfoFormatError("Field 'listen' must be a list of strings.")

        return cls(
            pid=_expect_int(data, "pid"),
            listen=listen,
            port=_expect_int(data, "port"),
            invoker=_decode_invoker(_expect_str(data, "invoker")),
            password=_expect_str(data, "password"),
            user=_expect_str(data, "user"),
            database=_expect_str(data, "database"),
            struct_version=_expect_int(data, "struct_version"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the persisted representation, password included."""
        return {
            "pid": self.pid,
            "listen": list(self.listen),
            "port": self.port,
            "invoker": _invoker_tag(self.invoker),
            "password": self.password,
            "user": self.user,
            "database": self.database,
            "struct_version": self.struct_version,
        }

    @property
    def is_current_version(self) -> bool:
        """Return whether the descriptor uses the current format revision."""
        return self.struct_version == RUNNING_INFO_STRUCT_VERSION

    def redacted(self) -> RunningInstanceInfo:
        """Return a copy whose password is replaced by a placeholder."""
        return replace(self, listen=list(self.listen), password=REDACTED_PASSWORD)

    def render_redacted(self) -> str:
        """Render compact JSON suitable for display and logs."""
        return json.dumps(self.redacted().to_dict(), separators=(",", ":"))

    def __str__(self) -> str:
        return self.render_redacted()


@dataclass(frozen=True)
class RunningInfoStore:
    """Read and write the descriptor file at *path*."""

    path: Path

    def __post_init__(self) -> None:
        """Normalise the path after initialisation."""
        object.__setattr__(self, "path", Path(self.path).expanduser())

    def save(self, info: RunningInstanceInfo) -> None:
        """Atomically persist *info*, replacing any existing descriptor."""
        info.struct_version = RUNNING_INFO_STRUCT_VERSION
        try:
            content = json.dumps(info.to_dict(), indent=2)
        except (TypeError, ValueError) as exc:
            raise RunningInfoSerializationError(
                f"Failed to encode running instance info: {exc}"
            ) from exc

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}."
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.chmod(tmp_path, RUNNING_INFO_FILE_MODE)
            os.replace(tmp_path, self.path)
        finally:
            tmp_path.unlink(missing_ok=True)
        LOGGER.debug("Saved running instance info to %s: %s", self.path, info)

    def load(self) -> RunningInstanceInfo | None:
        """Return the recorded descriptor, or ``None`` when there is none.

        Unparseable files count as "no descriptor"; see :meth:`load_result`
        to tell the two cases apart.
        """
        return self.load_result().info

    def load_result(self) -> RunningInfoLoadResult:
        """Load the descriptor and report why it is absent, if it is."""
        LOGGER.debug("Loading running instance info from %s", self.path)
        try:
            content = self.path.read_bytes()
        except FileNotFoundError:
            return RunningInfoLoadResult.absent(RunningInfoAbsence.MISSING)

        try:
            info = RunningInstanceInfo.from_dict(json.loads(content))
        except (ValueError, RecursionError, RunningInfoFormatError) as exc:
            LOGGER.warning(
                "Failed to parse running instance file %s: %s", self.path, exc
            )
            return RunningInfoLoadResult.absent(RunningInfoAbsence.UNPARSEABLE, str(exc))

        if not info.is_current_version:
            LOGGER.debug(
                "Running instance file %s has struct version %s (current %s)",
                self.path,
                info.struct_version,
                RUNNING_INFO_STRUCT_VERSION,
            )
        return RunningInfoLoadResult(info=info)

    def remove(self) -> None:
        """Delete the descriptor file; a missing file raises ``FileNotFoundError``."""
        self.path.unlink()
        LOGGER.debug("Removed running instance file %s", self.path)


class RunningInfoAbsence(str, Enum):
    """Reasons no descriptor could be loaded."""

    MISSING = "missing"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class RunningInfoLoadResult:
    """Outcome of :meth:`RunningInfoStore.load_result`."""

    info: RunningInstanceInfo | None = None
    absence: RunningInfoAbsence | None = None
    detail: str | None = None

    @classmethod
    def absent(
        cls, absence: RunningInfoAbsence, detail: str | None = None
    ) -> RunningInfoLoadResult:
        """Return a result carrying no descriptor."""
        return cls(info=None, absence=absence, detail=detail)

    @property
    def found(self) -> bool:
        """Return whether a descriptor was loaded."""
        return self.info is not None


def _process_id(process: int | _HasPid) -> int:
    if isinstance(process, bool):
        raise TypeError("Process id must be an integer.")
    if isinstance(process, int):
        return process
    pid = getattr(process, "pid", None)
    if not isinstance(pid, int) or isinstance(pid, bool):
        raise TypeError(f"Cannot determine process id from {process!r}.")
    return pid


def _decode_invoker(raw: str) -> Invoker | str:
    try:
        return Invoker(raw)
    except ValueError:
        return raw


def _invoker_tag(invoker: Invoker | str) -> str:
    if isinstance(invoker, Invoker):
        return invoker.value
    if isinstance(invoker, str):
        return invoker
    raise TypeError(f"Invoker must be a string, got {type(invoker).__name__}.")


def _expect_int(data: Mapping[str, object], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise RunningInfoFormatError(
            f"Field {key!r} must be an integer, got {type(value).__name__}."
        )
    return value


def _expect_str(data: Mapping[str, object], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise RunningInfoFormatError(
            f"Field {key!r} must be a string, got {type(value).__name__}."
        )
    return value


__all__ = [
    "REDACTED_PASSWORD",
    "RUNNING_INFO_FILE_MODE",
    "RUNNING_INFO_STRUCT_VERSION",
    "RunningInfoAbsence",
    "RunningInfoError",
    "RunningInfoFormatError",
    "RunningInfoLoadResult",
    "RunningInfoSerializationError",
    "RunningInfoStore",
    "RunningInstanceInfo",
]
