"""Root conftest.py for pytest configuration.

Adds project root to sys.path so test modules are importable by dotted path
in monkeypatch.setattr calls.

Provides --run-slow flag to opt in to slow tests (skipped by default) and a
manually advanced clock for deterministic recovery timing.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from endpoint_breaker.circuit_breaker import reset_registry

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-slow", action="store_true", default=False, help="Run tests marked @pytest.mark.slow"
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="needs --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _fresh_registry() -> None:
    """Each test starts without a process-wide registry."""
    reset_registry()
