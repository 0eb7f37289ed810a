import contextlib
import copy
from datetime import datetime, timedelta, timezone

import pytest

from settings import DEFAULT_CFG


class Clock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class FakeHandle:
    """Stands in for browser.SessionHandle; pages are whatever the test hands it."""

    def __init__(self, page=None):
        self.page = page
        self.ephemeral_closed = 0

    @contextlib.asynccontextmanager
    async def primary(self):
        yield self.page

    @contextlib.asynccontextmanager
    async def ephemeral_page(self):
        try:
            yield self.page
        finally:
            self.ephemeral_closed += 1


class FakeSessions:
    def __init__(self, handle=None):
        self.handle = handle or FakeHandle()
        self.ensure_calls = 0
        self.reset_calls = 0

    async def ensure_session(self):
        self.ensure_calls += 1
        return self.handle

    def is_healthy(self):
        return True

    async def reset(self):
        self.reset_calls += 1


@pytest.fixture
def cfg(tmp_path):
    c = copy.deepcopy(DEFAULT_CFG)
    c["store"]["root"] = str(tmp_path / "store")
    c["browser"]["session_dir"] = str(tmp_path / "session")
    c["io"]["log"] = str(tmp_path / "scraper.log")
    c["io"]["debug_dir"] = str(tmp_path / "debug")
    return c


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def sessions():
    return FakeSessions()
