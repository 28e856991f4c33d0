"""
Shared test fixtures — in-memory store, settings, async DB, FastAPI test client.
"""

import copy
from datetime import datetime, timedelta
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from sweeper.config import RootConfig, Settings
from sweeper.database import Base, get_db
from sweeper.main import app
from sweeper.services.firebase import Snapshot, StoreError
from sweeper.services.runner import SweepLock
from sweeper.services.sweeper import SweepPolicy


ZONE = ZoneInfo("Asia/Ho_Chi_Minh")
NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=ZONE)


def ago(hours: float) -> str:
    """Naive wall-clock timestamp ``hours`` before NOW, as the devices write it."""
    return (NOW - timedelta(hours=hours)).strftime("%Y-%m-%dT%H:%M:%S")


# ── In-memory Store ─────────────────────────────────────

class FakeStore:
    """Dict-backed stand-in for RealtimeDatabaseStore."""

    def __init__(self, data: dict | None = None, label: str = "firebase",
                 fail_on_get: bool = False, fail_on_update: bool = False):
        self.label = label
        self.data = copy.deepcopy(data or {})
        self.reads: list[str] = []
        self.updates: list[dict] = []
        self.fail_on_get = fail_on_get
        self.fail_on_update = fail_on_update

    def get(self, path: str) -> Snapshot:
        self.reads.append(path)
        if self.fail_on_get:
            raise StoreError(f"read {path} failed: RTDB unreachable")
        node = self.data
        for part in path.strip("/").split("/"):
            node = node.get(part) if isinstance(node, dict) else None
        return Snapshot(path=path, value=copy.deepcopy(node))

    def multi_update(self, updates: dict) -> None:
        if self.fail_on_update:
            raise StoreError("multi-path update failed: permission denied")
        self.updates.append(dict(updates))
        for path, value in updates.items():
            *parents, leaf = path.strip("/").split("/")
            node = self.data
            for part in parents:
                node = node.setdefault(part, {})
            if value is None:
                node.pop(leaf, None)
            else:
                node[leaf] = value

    def is_ready(self) -> bool:
        return True


# ── Sample Data ─────────────────────────────────────────

def sample_tree() -> dict:
    return {
        "BESAUNTCT": {
            "A": {"updateTime": ago(5)},
            "B": {"updateTime": ago(1)},
            "SetRuContent": {"updateTime": ago(10)},
        },
        "SetDevicesNV": {
            "dev1": '{"updateTime": "%s"}' % ago(4),
            "dev2": "{not valid json",
        },
        "SetDevicesVNGDH": {
            "gw1": {"Devices": {"updateTime": ago(6)}, "updateTime": ago(1)},
        },
        "VNGDH1": {
            "n1": {"Devices": {"updateTime": ago(8)}},
            "n2": {"Devices": {"updateTime": ago(2)}},
            "n3": {"updateTime": ago(8)},
            "SetRuContents": {"Devices": {"updateTime": ago(50)}},
        },
    }


@pytest.fixture
def store():
    return FakeStore(sample_tree())


@pytest.fixture
def policy():
    return SweepPolicy(zone=ZONE, retention_hours=3)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        firebase_db_url="https://test.firebaseio.com",
        database_url="sqlite+aiosqlite:///:memory:",
        auth_token="",
        cron_path="",
        sweep_interval_minutes=0,
    )


# ── Test Database (SQLite in-memory) ────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    with patch("sweeper.services.history.async_session", factory):
        yield factory


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(session_factory, store, test_settings):
    """FastAPI test client with a FakeStore and the test DB injected."""

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.state.stores = [store]
    app.state.sweep_lock = SweepLock()

    transport = ASGITransport(app=app)
    with patch("sweeper.routes.settings", test_settings):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac

    app.dependency_overrides.clear()
    app.state.stores = []
    app.state.sweep_lock = None


@pytest.fixture
def besauntct_root():
    return RootConfig(path="BESAUNTCT", exempt_keys=["SetRuContent"])
