import itertools
import os
from decimal import Decimal

# No Redis in the test run: keep the change feed hooks off
os.environ.setdefault("CHANGE_FEED_ENABLED", "false")

import pytest
from unittest.mock import Mock, MagicMock, patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.database import get_db
from app.auth.dependencies import get_current_user
from app.models import Base
from app.models.catalog import SubscriptionService, Plan, Deliverable
from app.models.coupon import Coupon
from app.models.user import User, UserRole


@pytest.fixture
def mock_db():
    """Mock database session"""
    db = MagicMock()
    db.query.return_value = db
    db.filter.return_value = db
    db.order_by.return_value = db
    db.limit.return_value = db
    db.first.return_value = None
    db.all.return_value = []
    db.count.return_value = 0
    return db


def _mock_user(user_id, email, role, name, phone="11999990000"):
    user = Mock(spec=User)
    user.id = user_id
    user.email = email
    user.role = role
    user.display_name = name
    user.name = name
    user.phone_number = phone
    user.password_hash = "$2b$12$test_hash"
    user.whatsapp_api_token_encrypted = None
    user.last_seen_at = None
    return user


@pytest.fixture
def mock_customer():
    """Mock customer user"""
    return _mock_user(1, "cliente@test.com", UserRole.CUSTOMER, "Cliente")


@pytest.fixture
def mock_seller():
    """Mock seller user"""
    return _mock_user(2, "vendedor@test.com", UserRole.SELLER, "Vendedor")


@pytest.fixture
def mock_admin():
    """Mock admin user"""
    return _mock_user(3, "admin@test.com", UserRole.ADMIN, "Admin")


@pytest.fixture
def client_with_customer(mock_db, mock_customer):
    """TestClient with customer auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_customer
    client = TestClient(app)
    yield client, mock_db, mock_customer
    app.dependency_overrides.clear()


@pytest.fixture
def client_with_seller(mock_db, mock_seller):
    """TestClient with seller auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_seller
    client = TestClient(app)
    yield client, mock_db, mock_seller
    app.dependency_overrides.clear()


@pytest.fixture
def client_with_admin(mock_db, mock_admin):
    """TestClient with admin auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_admin
    client = TestClient(app)
    yield client, mock_db, mock_admin
    app.dependency_overrides.clear()


@pytest.fixture
def unauthenticated_client(mock_db):
    """TestClient with mocked DB but no auth"""
    app.dependency_overrides[get_db] = lambda: mock_db
    client = TestClient(app)
    yield client, mock_db
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


# ---------------------------------------------------------------------------
# Real (in-memory SQLite) session for workflow tests
# ---------------------------------------------------------------------------

@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    yield session
    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def make_user(db_session):
    counter = itertools.count(1)

    def _make(role=UserRole.CUSTOMER, name=None, phone="11999990000"):
        n = next(counter)
        user = User(
            email=f"user{n}@test.com",
            password_hash="$2b$12$test_hash",
            display_name=name or f"User {n}",
            phone_number=phone,
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def marketplace(db_session, make_user):
    """A seller with one 30.00 plan, a buyer and the PROMO10 / FREE100 coupons."""
    seller = make_user(UserRole.SELLER, name="Loja Stream", phone="11988887777")
    customer = make_user(UserRole.CUSTOMER, name="Maria", phone="11977776666")
    service = SubscriptionService(name="Netflix", description="Filmes e séries")
    db_session.add(service)
    db_session.flush()
    plan = Plan(
        service_id=service.id,
        seller_id=seller.id,
        name="Premium 4 telas",
        price=Decimal("30.00"),
        features=["4K", "4 telas"],
        stock=0,
    )
    db_session.add(plan)
    db_session.add(Coupon(code="PROMO10", discount_percentage=10, usage_limit=0, usage_count=0))
    db_session.add(Coupon(code="FREE100", discount_percentage=100, usage_limit=0, usage_count=0))
    db_session.commit()
    return {"seller": seller, "customer": customer, "service": service, "plan": plan}


@pytest.fixture
def add_stock(db_session):
    def _add(plan, *contents):
        items = [Deliverable(plan_id=plan.id, content=c) for c in contents]
        db_session.add_all(items)
        plan.stock = (plan.stock or 0) + len(items)
        db_session.commit()
        return items

    return _add


@pytest.fixture
def api(db_session, marketplace):
    """TestClient on the in-memory session; `api.login(user)` switches the caller."""
    current = {"user": marketplace["customer"]}
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_current_user] = lambda: current["user"]
    client = TestClient(app)
    client.login = lambda user: current.update(user=user)
    with patch("app.routers.checkout.dispatch_pending_messages") as dispatch_checkout, \
         patch("app.routers.tickets.dispatch_pending_messages"), \
         patch("app.routers.sales.dispatch_pending_messages"), \
         patch("app.routers.tickets.ticket_service.schedule_media_acknowledgement"), \
         patch("app.routers.checkout.coupon_rate_limiter") as mock_rl:
        mock_rl.is_blocked.return_value = False
        mock_rl.window_minutes = 15
        client.dispatch = dispatch_checkout
        client.coupon_rate_limiter = mock_rl
        yield client
    app.dependency_overrides.clear()
