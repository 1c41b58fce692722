"""
Shared fixtures for the test suite.

Every test case gets its own in-memory SQLite database (StaticPool keeps the
single connection alive across sessions) and an InMemoryPublisher.
"""

import itertools
import unittest

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from bakery_bliss.dependencies import get_publisher
from bakery_bliss.events import InMemoryPublisher
from bakery_bliss.main import app
from bakery_bliss.models import BakerTeam, Order, OrderStatus, Product, User, UserRole
from bakery_bliss.utils.db import get_session

_counter = itertools.count(1)


def make_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


def make_user(session: Session, role: UserRole = UserRole.CUSTOMER, **fields) -> User:
    n = next(_counter)
    user = User(
        email=fields.pop("email", f"user{n}@bakery.test"),
        username=fields.pop("username", f"user{n}"),
        full_name=fields.pop("full_name", f"Test User {n}"),
        role=role,
        **fields,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_team(session: Session, main_baker: User, junior: User) -> BakerTeam:
    team = BakerTeam(main_baker_id=main_baker.id, junior_baker_id=junior.id)
    junior.main_baker_id = main_baker.id
    session.add(team)
    session.add(junior)
    session.commit()
    session.refresh(team)
    return team


def make_product(session: Session, main_baker: User, price: float = 20.0, **fields) -> Product:
    product = Product(
        name=fields.pop("name", "Test Cake"),
        description=fields.pop("description", "A cake for testing"),
        price=price,
        category=fields.pop("category", "cakes"),
        main_baker_id=main_baker.id,
        **fields,
    )
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


def make_order(
    session: Session,
    customer: User,
    status: OrderStatus = OrderStatus.PENDING,
    total: float = 100.0,
    main_baker: User = None,
    junior: User = None,
    rush: bool = False,
) -> Order:
    order = Order(
        order_id=f"BB-ORD-T{next(_counter):05d}",
        user_id=customer.id,
        status=status,
        total_amount=total,
        is_rush=rush,
        main_baker_id=main_baker.id if main_baker else None,
        junior_baker_id=junior.id if junior else None,
    )
    session.add(order)
    session.commit()
    session.refresh(order)
    return order


class DatabaseTestCase(unittest.TestCase):
    """A fresh database and publisher per test."""

    def setUp(self):
        self.engine = make_engine()
        self.session = Session(self.engine)
        self.publisher = InMemoryPublisher()

    def tearDown(self):
        self.session.close()
        self.engine.dispose()


class ApiTestCase(DatabaseTestCase):
    """DatabaseTestCase plus a TestClient wired to the same database and publisher."""

    def setUp(self):
        super().setUp()

        def override_session():
            with Session(self.engine) as session:
                yield session

        app.dependency_overrides[get_session] = override_session
        app.dependency_overrides[get_publisher] = lambda: self.publisher
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        super().tearDown()

    def as_user(self, user: User) -> dict:
        return {"user-id": str(user.id)}
