"""Persistent state helpers for localdbctl."""
from __future__ import annotations

from .running_info import (
    REDACTED_PASSWORD,
    RUNNING_INFO_STRUCT_VERSION,
    RunningInfoAbsence,
    RunningInfoError,
    RunningInfoFormatError,
    RunningInfoLoadResult,
    RunningInfoSerializationError,
    RunningInfoStore,
    RunningInstanceInfo,
)

__all__ = [
    "REDACTED_PASSWORD",
    "RUNNING_INFO_STRUCT_VERSION",
    "RunningInfoAbsence",
    "RunningInfoError",
    "RunningInfoFormatError",
    "RunningInfoLoadResult",
    "RunningInfoSerializationError",
    "RunningInfoStore",
    "RunningInstanceInfo",
]
