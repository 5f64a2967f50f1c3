"""
Soft Delete Test Configuration

Provides pytest fixtures for in-memory SQLite databases, sessions and repositories.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from soft_delete import TableLocator

from tests.models import Base, Customer, Order, OrderItem, OrderNote, Shipment, Tag


def build_locator(db: Session) -> TableLocator:
    """Register the test tables the way an application would"""
    locator = TableLocator(db)
    locator.add(Order, soft_delete=True)
    locator.add(OrderItem, soft_delete=True)
    locator.add(Shipment, soft_delete_field="removed_at")
    locator.add(Tag)
    return locator


@pytest.fixture(scope="session")
def db_engine():
    """Create an in-memory SQLite database for testing"""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """
    Create a new database session for each test function.
    Rolls back all changes after the test completes.
    """
    connection = db_engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(bind=connection)
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def session_factory():
    """
    Sessionmaker over a private database, for code that commits
    (the purge worker and the admin API).
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def locator(db_session) -> TableLocator:
    return build_locator(db_session)


@pytest.fixture
def orders(locator):
    return locator.get(Order)


@pytest.fixture
def items(locator):
    return locator.get(OrderItem)


@pytest.fixture
def shipments(locator):
    return locator.get(Shipment)


@pytest.fixture
def make_order(db_session):
    """Persist an order, optionally with items, notes, shipments and tags"""

    def _make_order(status="open", deleted=None, skus=(), notes=(), carriers=(), tags=()):
        order = Order(status=status, deleted=deleted)
        order.items = [OrderItem(sku=sku) for sku in skus]
        order.notes = [OrderNote(body=body) for body in notes]
        order.shipments = [Shipment(carrier=carrier) for carrier in carriers]
        order.tags = list(tags)
        db_session.add(order)
        db_session.flush()
        return order

    return _make_order


@pytest.fixture
def customer(db_session) -> Customer:
    customer = Customer(name="Ada")
    db_session.add(customer)
    db_session.flush()
    return customer
