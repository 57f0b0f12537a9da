"""Pytest fixtures for testing."""
import threading
from pathlib import Path

import pytest

from core.config import Settings
from services.page_service import PageService

# 2023-11-14T22:13:20Z in milliseconds
START_MILLIS = 1_700_000_000_000


class FakeClock:
    """
    Deterministic millisecond clock.

    Each call returns the current value and advances it by `step`. A step of 0
    returns the same timestamp forever, which forces version collisions.
    """

    def __init__(self, start: int = START_MILLIS, step: int = 1000) -> None:
        self.now = start
        self.step = step
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            value = self.now
            self.now += self.step
            return value


@pytest.fixture
def wiki_dir(tmp_path: Path) -> Path:
    """Empty wiki directory for a test."""
    path = tmp_path / "wiki"
    path.mkdir()
    return path


@pytest.fixture
def settings(wiki_dir: Path) -> Settings:
    """Settings pointing at the test wiki directory, ignoring any local .env."""
    return Settings(_env_file=None, wiki_dir=wiki_dir)


@pytest.fixture
def clock() -> FakeClock:
    """Clock advancing one second per save."""
    return FakeClock()


@pytest.fixture
def page_service(settings: Settings, clock: FakeClock) -> PageService:
    """Page service over the test wiki directory."""
    return PageService(settings, clock=clock)
