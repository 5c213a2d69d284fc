"""Shared fixtures: in-memory database, seeded events, a fake payment gateway."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import boxoffice.models  # noqa: F401
from boxoffice.api.deps import get_gateway
from boxoffice.core.payment_gateways.base import Authorization, CaptureResult, PaymentGateway
from boxoffice.core.security import create_access_token
from boxoffice.database import SessionLocal, db_engine
from boxoffice.domain.errors import PaymentNotCompletedError
from boxoffice.domain.value_objects import CustomerSnapshot
from boxoffice.main import app
from boxoffice.models.base import Base

from tests.factories import make_event


class FakeGateway(PaymentGateway):
    """Records calls and settles every authorization for the authorized amount."""

    name = "FakePay"
    method = "fakepay"

    def __init__(self):
        self.authorizations = {}
        self.references = {}
        self.captures = []
        self.capture_status = "COMPLETED"
        self.capture_amount = None

    def create_authorization(self, amount, currency, order_id, description):
        authorization_id = f"AUTH-{order_id}-{len(self.authorizations) + 1}"
        self.authorizations[authorization_id] = (Decimal(amount), currency)
        self.references[authorization_id] = str(order_id)
        return Authorization(authorization_id=authorization_id, approval_url=f"https://pay.example/{authorization_id}")

    def capture_authorization(self, authorization_id):
        self.captures.append(authorization_id)
        if self.capture_status != "COMPLETED":
            raise PaymentNotCompletedError(self.capture_status)
        amount, currency = self.authorizations.get(authorization_id, (Decimal("0.00"), "USD"))
        if self.capture_amount is not None:
            amount = self.capture_amount
        return CaptureResult(
            transaction_id=f"CAP-{authorization_id}",
            amount=amount,
            currency=currency,
            status=self.capture_status,
            order_reference=self.references.get(authorization_id),
        )


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=db_engine)
    yield
    Base.metadata.drop_all(bind=db_engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(gateway):
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


def _token(role):
    return create_access_token({"sub": f"{role}@boxoffice.test", "role": role, "user_id": 1})


@pytest.fixture
def staff_headers():
    return {"Authorization": f"Bearer {_token('staff')}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {_token('admin')}"}


@pytest.fixture
def customer():
    return CustomerSnapshot(name="Ada Lovelace", email="ada@example.com", phone="555-0100")


@pytest.fixture
def jazz_night(db):
    """Jazz Night with a single GA category: capacity 2 at 20.00 USD."""
    event = make_event(db, categories=[("GA", "20.00", 2)])
    return event, event.categories[0]
