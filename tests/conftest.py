"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from localdbctl.constants import Invoker
from localdbctl.state import RunningInfoStore, RunningInstanceInfo


@pytest.fixture
def store(tmp_path: Path) -> RunningInfoStore:
    """Return a descriptor store rooted at a temporary path."""
    return RunningInfoStore(tmp_path / "internal" / "localdb.json")


@pytest.fixture
def descriptor() -> RunningInstanceInfo:
    """Return a fully populated descriptor."""
    return RunningInstanceInfo(
        pid=4242,
        listen=["127.0.0.1", "::1", "192.168.1.20"],
        port=9193,
        invoker=Invoker.QUERY,
        password="s3cr3t-pass-word",
        user="localdb",
        database="localdb",
    )
