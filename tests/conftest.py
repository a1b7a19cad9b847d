import os
import sys
from pathlib import Path

import pytest
import structlog

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep CHATLOOM settings and log switches from the host out of tests."""
    for name in list(os.environ):
        if name.startswith(("CHATLOOM__", "CHATLOOM_LOG_")):
            monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def fresh_logging():
    """Start every test with default structlog config and no bound context."""
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
