"""
Shared fixtures for calltrack-core tests.
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest


class RecordingErrorReporter:
    """Error reporter that keeps every report for assertions."""

    def __init__(self):
        self.events: List[Tuple[BaseException, Dict[str, Any]]] = []

    async def report(self, error: BaseException, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.events.append((error, dict(metadata or {})))

    def actions(self) -> List[str]:
        return [metadata.get("action") for _, metadata in self.events]

    def with_action(self, action: str) -> List[Tuple[BaseException, Dict[str, Any]]]:
        return [event for event in self.events if event[1].get("action") == action]


class FakeClock:
    """Manually advanced wall clock (epoch seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def reporter() -> RecordingErrorReporter:
    return RecordingErrorReporter()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
