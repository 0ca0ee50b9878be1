import os
import sys
from pathlib import Path

import pytest

# Add server directory to sys.path for flat imports (core, services, ...)
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "server"))

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fakes import FakeClock, InMemoryCache, InMemoryRowStore, make_settings  # noqa: E402
from services.messages import MessageService  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryRowStore()


@pytest.fixture
def cache(clock):
    return InMemoryCache(clock)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def service(store, cache, settings):
    return MessageService(store, cache, settings)
