"""
Pytest configuration and fixtures for the repair quote service tests
"""

import os

# Ensure test-friendly environment prior to importing the app
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("STORE_DRIVER", "memory")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.rate_limit import limiter  # noqa: E402
from app.main import create_app  # noqa: E402
from app.services.container import build_services  # noqa: E402
from app.services.store import MemoryStore  # noqa: E402
from tests.helpers import FakeClock, RecordingNotifier, make_settings  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def cfg():
    return make_settings()


@pytest.fixture
def services(cfg, clock, store, notifier):
    return build_services(cfg, clock=clock, store=store, notifier=notifier)


@pytest.fixture
def app(cfg, clock, store, notifier):
    return create_app(cfg, clock=clock, store=store, notifier=notifier)


@pytest.fixture
def client(app):
    limiter.reset()
    with TestClient(app) as c:
        yield c
