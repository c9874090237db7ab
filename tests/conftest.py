import os

# Settings are read at import time; keep the app off the Postgres defaults
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("INTERAKT_API_KEY", "")
os.environ.setdefault("SMTP_SERVER", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.services.fulfillment import get_fulfillment_service
from app.services.payments import OfflineGateway, PaymentStatusResult, get_payment_gateway

from factories import make_attraction, make_user


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class RecordingFulfillment:
    def __init__(self):
        self.calls = []

    async def fulfil_order(self, order_id, notify_user=True):
        self.calls.append((order_id, notify_user))


class ScriptedGateway(OfflineGateway):
    """Offline gateway whose status answer can be set by the test."""

    def __init__(self):
        self.next_status = None

    def check_status(self, order):
        if self.next_status is not None:
            return PaymentStatusResult(status=self.next_status, reference=f"PAY-{order.ref}")
        return super().check_status(order)


@pytest.fixture
def fulfillment():
    return RecordingFulfillment()


@pytest.fixture
def gateway():
    return ScriptedGateway()


@pytest.fixture
def client(session_factory, fulfillment, gateway):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_fulfillment_service] = lambda: fulfillment
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    # No context manager: the lifespan would try to reach the configured database
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user(db):
    return make_user(db, phone="+91 98765 43210", whatsapp_consent=True)


@pytest.fixture
def admin(db):
    return make_user(db, email="admin@example.com", role="admin", full_name="Admin")


@pytest.fixture
def attraction(db):
    return make_attraction(db)
