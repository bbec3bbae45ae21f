"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before any application module reads the settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from datetime import datetime
from zoneinfo import ZoneInfo
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rest_api.main import app
from rest_api.models import (
    Base, Product, ProductAddon, StaffProfile, StoreSettings, Table,
)
from shared.config.constants import ApprovalMode, Roles
from shared.infrastructure.db import get_db
from shared.infrastructure.events import reset_event_circuit_breaker
from shared.security.rate_limit import limiter


# SQLite in-memory database shared by every connection of the test engine
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 2026-10-19 is a Monday (weekday 1 with Sunday = 0)
MONDAY = datetime(2026, 10, 19, 12, 0, tzinfo=ZoneInfo("America/Sao_Paulo"))
TUESDAY = datetime(2026, 10, 20, 12, 0, tzinfo=ZoneInfo("America/Sao_Paulo"))


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db_session):
    """Factory producing sessions on the same in-memory database."""
    return TestingSessionLocal


@pytest.fixture(scope="function")
def client(db_session):
    """
    Test client with the database dependency overridden.
    The lifespan (outbox processor, Redis) is not started.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_circuit_breaker():
    reset_event_circuit_breaker()
    yield
    reset_event_circuit_breaker()


@pytest.fixture
def seed_store(db_session):
    """Store settings in HOST approval mode."""
    store = StoreSettings(store_name="Cantina Teste", order_approval_mode=ApprovalMode.HOST)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture
def seed_table(db_session):
    table = Table(name="Mesa 07", token="mesa-07-token")
    db_session.add(table)
    db_session.commit()
    return table


@pytest.fixture
def seed_products(db_session):
    """Burger (with add-ons), soda and an inactive dessert."""
    burger = Product(name="X-Burger", price_cents=2500, category="Lanches")
    burger.addons = [
        ProductAddon(name="Bacon", price_cents=300),
        ProductAddon(name="Queijo", price_cents=200),
        ProductAddon(name="Ovo", price_cents=150, active=False),
    ]
    soda = Product(name="Refrigerante", price_cents=600, category="Bebidas")
    dessert = Product(name="Pudim", price_cents=1200, category="Sobremesas", active=False)
    db_session.add_all([burger, soda, dessert])
    db_session.commit()
    return {"burger": burger, "soda": soda, "dessert": dessert}


@pytest.fixture
def seed_staff(db_session):
    waiter = StaffProfile(name="Ana", role=Roles.WAITER)
    manager = StaffProfile(name="Bruno", role=Roles.MANAGER)
    retired = StaffProfile(name="Caio", role=Roles.WAITER, active=False)
    db_session.add_all([waiter, manager, retired])
    db_session.commit()
    return {"waiter": waiter, "manager": manager, "retired": retired}


@pytest.fixture
def seated_session(db_session, seed_store, seed_table, seed_products):
    """A session at Mesa 07 with a host (Alice) and a second guest (Bruno)."""
    from rest_api.services.domain import SessionService

    service = SessionService(db_session)
    session, host = service.join_table(seed_table.token, "Alice")
    _, guest = service.join_table(seed_table.token, "Bruno")
    return {"session": session, "host": host, "guest": guest}
