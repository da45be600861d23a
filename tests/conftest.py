from pathlib import Path
import sys
import time

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

from tasksim.config import Settings
from tasksim.main import create_app


@pytest.fixture()
def fast_settings() -> Settings:
    """Sub-second task durations so lifecycle tests finish quickly."""
    return Settings(
        task_min_duration_seconds=0.3,
        task_max_duration_seconds=0.3,
        task_duration_step_seconds=0.1,
        task_poll_interval_seconds=0.02,
        task_failure_rate=0.0,
    )


@pytest.fixture()
def client(fast_settings):
    with TestClient(create_app(fast_settings)) as c:
        yield c


@pytest.fixture()
def wait_until():
    def _wait(predicate, timeout: float = 2.0, interval: float = 0.01):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            value = predicate()
            if value:
                return value
            time.sleep(interval)
        return predicate()

    return _wait
