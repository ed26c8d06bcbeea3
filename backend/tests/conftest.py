"""Pytest configuration and fixtures."""

import os

# Point the application engine at an in-memory database before settings load
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from typing import Callable, Dict, Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from garment_erp.db.base import Base
from garment_erp.db.session import get_db
from garment_erp.main import app
# Import all models to ensure they're registered with Base.metadata
from garment_erp.models import *
from garment_erp.services.distribution_service import DistributionService
from garment_erp.services.picking_service import PickingService

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


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
    # Disable rate limiter during tests to avoid flaky failures
    from garment_erp.core.rate_limit import limiter
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def make_order(db_session: Session) -> Callable[..., Order]:
    """Factory for an order with a size ledger."""
    counter = {"n": 0}

    def _make(sizes: Dict[str, int], order_type: OrderType = OrderType.CUSTOM, **kwargs) -> Order:
        counter["n"] += 1
        order = Order(
            order_number=kwargs.pop("order_number", f"ORD-{counter['n']:04d}"),
            customer_name=kwargs.pop("customer_name", "Test Customer"),
            order_type=order_type,
            **kwargs,
        )
        for size_name, qty in sizes.items():
            order.sizes.append(OrderSizeQuantity(size_name=size_name, total_quantity=qty))
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make


@pytest.fixture
def make_batch(db_session: Session) -> Callable[..., Batch]:
    counter = {"n": 0}

    def _make(**kwargs) -> Batch:
        counter["n"] += 1
        batch = Batch(
            batch_name=kwargs.pop("batch_name", f"Batch {chr(64 + counter['n'])}"),
            batch_code=kwargs.pop("batch_code", f"B{counter['n']:03d}"),
            tailor_type=kwargs.pop("tailor_type", "stitching"),
            max_capacity=kwargs.pop("max_capacity", 500),
            current_capacity=kwargs.pop("current_capacity", 0),
            **kwargs,
        )
        db_session.add(batch)
        db_session.commit()
        db_session.refresh(batch)
        return batch

    return _make


@pytest.fixture
def batch_a(make_batch) -> Batch:
    return make_batch(batch_name="Batch A", batch_code="BA")


@pytest.fixture
def batch_b(make_batch) -> Batch:
    return make_batch(batch_name="Batch B", batch_code="BB")


@pytest.fixture
def distribute(db_session: Session):
    """Save a distribution and return {batch_id: assignment}."""
    def _distribute(order: Order, allocations: Dict[int, Dict[str, int]]):
        created = DistributionService(db_session).save_distribution(order.id, allocations)
        return {a.batch_id: a for a in created}

    return _distribute


@pytest.fixture
def pick(db_session: Session):
    def _pick(assignment, size_name: str, delta: int):
        return PickingService(db_session, policy="clamp").record_pick(assignment.id, size_name, delta)

    return _pick
