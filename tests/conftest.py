"""Shared fixtures over the in-memory stand-ins in tests.fakes."""

import pytest

from practice_api.core.config import Settings
from tests.fakes import FakeClock, FakeDatabase, FakeRedis


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        openai_api_key=None,
        snapshot_dir=str(tmp_path / "snapshots"),
        _env_file=None,
    )
