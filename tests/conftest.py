import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import MemoryStorage
from main import create_app
from store import ContentStore

# 2026-01-01T00:00:00Z
BASE_NOW = 1767225600000


class FakeClock:
    def __init__(self, now=BASE_NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage, clock):
    return ContentStore(storage, clock=clock)


@pytest.fixture
def app_settings():
    return Settings(SEED_DEFAULT_DATA=False, AI_DELAY_MIN_MS=0, AI_DELAY_MAX_MS=0)


@pytest.fixture
def client(app_settings, storage):
    app = create_app(app_settings, storage)
    with TestClient(app) as c:
        yield c
