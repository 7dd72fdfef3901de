"""Pytest configuration and fixtures."""

import os

# Settings are read once at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_tableside")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_tableside")

import pytest
from decimal import Decimal
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tableside.core.security import create_access_token
from tableside.core.tenancy import TenantContext, UserRole
from tableside.db.base import Base
from tableside.db.session import get_db
from tableside.main import app
# Import all models to ensure they're registered with Base.metadata
from tableside.models import *  # noqa: F401,F403
from tableside.models.menu import MenuItem
from tableside.services.live_feed import feed_hub

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

TENANT = "trattoria-1"
API = "/api/v1"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiting during tests to avoid flaky failures
    from tableside.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_feed_hub():
    yield
    feed_hub._subscriptions.clear()


def _token(role: UserRole, user_id: str, tenant_id: str = TENANT) -> str:
    return create_access_token(
        data={"sub": user_id, "tenant_id": tenant_id, "role": role.value, "name": f"{role.value} {user_id}"}
    )


def _headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def waiter_headers() -> dict:
    return _headers(_token(UserRole.WAITER, "w-1"))


@pytest.fixture
def kitchen_headers() -> dict:
    return _headers(_token(UserRole.KITCHEN, "k-1"))


@pytest.fixture
def manager_headers() -> dict:
    return _headers(_token(UserRole.MANAGER, "m-1"))


@pytest.fixture
def driver_headers() -> dict:
    return _headers(_token(UserRole.DRIVER, "d-1"))


@pytest.fixture
def other_tenant_waiter_headers() -> dict:
    return _headers(_token(UserRole.WAITER, "w-9", tenant_id="bistro-2"))


@pytest.fixture
def ctx() -> TenantContext:
    """Waiter context used by service-level tests."""
    return TenantContext(tenant_id=TENANT, user_id="w-1", role=UserRole.WAITER, name="Ana")


@pytest.fixture
def make_menu_item(db_session: Session):
    """Factory for menu items of the test tenant."""
    def _make(name: str = "Pizza", base_price: str = "30.00", **kwargs) -> MenuItem:
        item = MenuItem(
            tenant_id=kwargs.pop("tenant_id", TENANT),
            name=name,
            category=kwargs.pop("category", "Mains"),
            base_price=Decimal(base_price),
            **kwargs,
        )
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item

    return _make


@pytest.fixture
def pizza(make_menu_item) -> MenuItem:
    return make_menu_item(
        "Pizza",
        "30.00",
        sizes=[
            {"id": "m", "name": "Medium", "price": 30.0},
            {"id": "l", "name": "Large", "price": 42.0},
        ],
        addons=[
            {"id": "bacon", "name": "Bacon", "price": 4.0},
            {"id": "olives", "name": "Olives", "price": 2.5},
        ],
        stuffed_crust_options=[{"id": "cheddar", "name": "Cheddar crust", "price": 6.0}],
        allow_multiple_flavors=True,
        max_flavors=2,
        flavors=[
            {"id": "marg", "name": "Margherita", "price": 0.0},
            {"id": "pep", "name": "Pepperoni", "price": 8.0},
        ],
        flavor_combinations=[{
            "id": "half-half",
            "name": "Half Margherita / Half Pepperoni",
            "price": 45.0,
            "flavors": [
                {"flavor_id": "marg", "percentage": 50},
                {"flavor_id": "pep", "percentage": 50},
            ],
        }],
        removable_ingredients=["onion", "basil"],
    )


@pytest.fixture
def soda(make_menu_item) -> MenuItem:
    return make_menu_item("Soda", "8.00", category="Drinks")
