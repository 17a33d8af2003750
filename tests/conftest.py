"""pytest configuration for WallChange console tests."""

import pytest

from wallchange.config import ConsoleConfig
from wallchange.fleet import AgentRoster
from wallchange.models import Agent
from wallchange.session import SessionState


# Configure asyncio mode for pytest-asyncio
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


@pytest.fixture
def config(tmp_path):
    return ConsoleConfig(
        base_url="http://wallchange.test",
        session_file=str(tmp_path / "session.json"),
        log_flush_interval=0.01,
    )


@pytest.fixture
def session(config):
    state = SessionState(config.session_file)
    state.login("tok-123", "admin", "alice")
    return state


@pytest.fixture
def roster():
    return AgentRoster([Agent(id=i, hostname=f"pc-{i.lower()}") for i in ("A", "B", "C", "D")])
