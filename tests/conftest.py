"""Test fixtures."""

import os
from datetime import datetime, time, timedelta
from types import SimpleNamespace

import pytest

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["PLATFORM_API_KEY"] = "test-platform-key"
os.environ["PUSH_NOTIFICATIONS_ENABLED"] = "false"

from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session

from tenantbook import models  # noqa: F401
from tenantbook.auth import create_access_token
from tenantbook.core import utcnow
from tenantbook.db import engine
from tenantbook.main import app
from tenantbook.models import Appointment, Business, User


# a Monday a week out, so every booking in it is safely in the future
BASE_DAY = (utcnow() + timedelta(days=7 - utcnow().weekday() + 7)).date()


def at(hour: int, minute: int = 0, days: int = 0) -> datetime:
    return datetime.combine(BASE_DAY + timedelta(days=days), time(hour, minute))


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def schema():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def client():
    return TestClient(app)


def _user(session: Session, business: Business, name: str, phone: str, role: str) -> User:
    user = User(name=name, phone=phone, business_id=business.id, role=role)
    session.add(user)
    session.flush()
    return user


@pytest.fixture
def tenant(session):
    """One business (08:00-20:00, 20 min grid) with an admin, two workers and three clients,
    plus a second business with its own worker and client."""
    business = Business(name="Studio One", email="one@example.com")
    other = Business(name="Studio Two", email="two@example.com")
    session.add(business)
    session.add(other)
    session.flush()

    admin = _user(session, business, "Owner", "0500000001", "admin")
    worker = _user(session, business, "Dana", "0500000002", "worker")
    worker2 = _user(session, business, "Noa", "0500000003", "worker")
    clients = [_user(session, business, f"Client {i}", f"05100000{i:02d}", "user") for i in range(3)]
    other_worker = _user(session, other, "Gal", "0520000001", "worker")
    other_client = _user(session, other, "Tal", "0520000002", "user")

    business.owner_id = admin.id
    business.worker_ids = [admin.id, worker.id, worker2.id]
    other.worker_ids = [other_worker.id]
    session.commit()

    return SimpleNamespace(
        business_id=business.id,
        other_business_id=other.id,
        admin_id=admin.id,
        worker_id=worker.id,
        worker2_id=worker2.id,
        client_ids=[c.id for c in clients],
        other_worker_id=other_worker.id,
        other_client_id=other_client.id,
        admin_token=create_access_token(admin),
        worker_token=create_access_token(worker),
        client_tokens=[create_access_token(c) for c in clients],
        other_client_token=create_access_token(other_client),
    )


def booking_payload(worker_id: int, starts_at: datetime, duration: int = 30, **extra) -> dict:
    payload = {
        "worker_id": worker_id,
        "service": {"name": "Haircut", "duration": duration, "price": 80},
        "starts_at": starts_at.isoformat(),
    }
    payload.update(extra)
    return payload


def insert_appointment(
    session: Session,
    business_id: int,
    worker_id: int,
    client_id: int,
    starts_at: datetime,
    duration: int = 30,
    status: str = "confirmed",
) -> Appointment:
    appt = Appointment(
        business_id=business_id,
        client_id=client_id,
        worker_id=worker_id,
        service_name="Haircut",
        service_duration=duration,
        service_price=80,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(minutes=duration),
        status=status,
    )
    session.add(appt)
    session.commit()
    session.refresh(appt)
    return appt
