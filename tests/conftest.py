"""Shared pytest fixtures for the full Toonslate test suite."""

from __future__ import annotations

import io

import pytest

from toonslate.telemetry.logger import RunLogger


class RecordingSleeper:
    """Fake sleeper that records requested delays instead of blocking."""

    def __init__(self) -> None:
        """Initialize an empty delay history."""

        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        """Record one requested delay."""

        self.delays.append(seconds)


@pytest.fixture
def sleeper() -> RecordingSleeper:
    """Provide a non-blocking sleeper that records delays."""

    return RecordingSleeper()


@pytest.fixture
def log_sink() -> io.StringIO:
    """Provide an in-memory sink for structured run logs."""

    return io.StringIO()


@pytest.fixture
def run_logger(log_sink: io.StringIO) -> RunLogger:
    """Provide a run logger writing into `log_sink`."""

    return RunLogger(sink=log_sink)
