"""pytest configuration for the song room service.

This file ensures that the project source directory is available on the
Python import path when running tests, and provides shared fixtures.

Location:
- tests/conftest.py
"""

import os
import sys

import pytest


def pytest_configure() -> None:
    """Configure pytest to include the src directory in sys.path."""

    # Resolve repository root (one level above the tests directory)
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

    # Resolve src directory
    src_path = os.path.join(repo_root, "src")

    # Prepend src to sys.path to allow absolute imports in tests
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


class FakeClock:
    """Manually advanced replacement for time.monotonic."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
