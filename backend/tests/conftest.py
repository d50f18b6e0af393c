"""
Pytest configuration and fixtures for backend tests.

The remote store is SQLite in-memory; the local mirror lives in a
per-test temporary directory.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared.config.constants import EntityTable
from shared.infrastructure.events import CircuitBreaker
from pos_api.core.lifespan import build_runtime
from pos_api.main import create_app
from pos_api.models import Base
from pos_api.services.domain import TableService, ZoneService
from pos_api.services.persistence import LocalStore, PersistenceGateway, RemoteStore
from pos_api.services.persistence.defaults import SEEDED_TABLES, default_table
from pos_api.services.state import AppState
from pos_api.services.sync import POLICY_SNAPSHOT, ReconciliationLoop


# SQLite in-memory database standing in for the remote store
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def local_store(tmp_path):
    return LocalStore(tmp_path / "offline")


@pytest.fixture(scope="function")
def remote_store():
    """
    Fresh remote store for each test.
    Tables are dropped after the test.
    """
    store = RemoteStore(TestingSessionLocal)
    store.create_schema()
    try:
        yield store
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    return CircuitBreaker("remote_store", failure_threshold=1, recovery_timeout=30.0, time_fn=clock)


@pytest.fixture
def gateway(local_store, remote_store, breaker):
    return PersistenceGateway(local_store, remote_store, breaker=breaker)


@pytest.fixture
def offline_gateway(local_store, breaker):
    """Gateway without a remote store: everything lands in the mirror."""
    return PersistenceGateway(local_store, None, breaker=breaker)


def seed_remote(gateway: PersistenceGateway) -> None:
    for table in SEEDED_TABLES:
        gateway.seed_table(table, default_table(table))
    gateway.seed_table(EntityTable.INVENTORY, default_table(EntityTable.INVENTORY))


@pytest.fixture
def state(gateway):
    """Application state loaded from a seeded remote store."""
    seed_remote(gateway)
    app_state = AppState(gateway)
    ReconciliationLoop(app_state, gateway, policy=POLICY_SNAPSHOT, interval=0).reconcile_once()
    app_state.set_current_user(app_state.get(EntityTable.USERS, "user-admin"))
    return app_state


@pytest.fixture
def offline_state(offline_gateway):
    """Application state running on the local mirror and its defaults."""
    app_state = AppState(offline_gateway)
    ReconciliationLoop(app_state, offline_gateway, policy=POLICY_SNAPSHOT, interval=0).reconcile_once()
    return app_state


@pytest.fixture
def zone(state):
    return ZoneService(state).create({"name": "Terraza"})


@pytest.fixture
def table(state, zone):
    return TableService(state).create({"name": "Mesa 5", "capacity": 4, "zone_id": zone.id})


@pytest.fixture
def runtime(gateway):
    return build_runtime(gateway)


@pytest.fixture(scope="function")
def client(runtime):
    """
    Test client wired to the test stores, logged in as the default admin.
    """
    app = create_app(runtime)

    with TestClient(app) as test_client:
        response = test_client.post(
            "/api/auth/login",
            json={"username": "admin", "password": "admin"},
        )
        assert response.status_code == 200
        yield test_client


@pytest.fixture(scope="function")
def anonymous_client(runtime):
    """Test client without a session."""
    app = create_app(runtime)

    with TestClient(app) as test_client:
        yield test_client
