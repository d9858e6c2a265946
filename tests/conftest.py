from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "true")

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.core import email_client
from app.core.config import get_settings
from app.core.notifications import NotificationDispatcher
from app.database import get_session
from app.main import app
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.user_repo import UserRepository
from app.services.order_service import OrderService


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as s:
        yield s


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    sent: list[dict] = []

    def _fake_send_email(to_email, subject, text_body, html_body=None) -> None:
        sent.append({"to": to_email, "subject": subject, "text": text_body})

    monkeypatch.setattr(email_client, "send_email", _fake_send_email)
    return sent


@pytest.fixture()
def customer(session: Session) -> User:
    user = User(
        id=uuid.uuid4(),
        email="buyer@acme-logistics.com",
        name="Dana",
        company_name="Acme Logistics",
        role="user",
        approved=True,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture()
def staff(session: Session) -> User:
    user = User(
        id=uuid.uuid4(),
        email="ops@grungepallets.com",
        name="Ops",
        role="admin",
        approved=True,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture()
def order_service() -> OrderService:
    return OrderService(OrderRepository(), UserRepository(), NotificationDispatcher(get_settings()))


def _bearer(user: User) -> dict[str, str]:
    token = jwt.encode(
        {"sub": str(user.id), "email": user.email},
        get_settings().SUPABASE_JWT_SECRET,
        algorithm=get_settings().SUPABASE_JWT_ALG,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def customer_headers(customer: User) -> dict[str, str]:
    return _bearer(customer)


@pytest.fixture()
def staff_headers(staff: User) -> dict[str, str]:
    return _bearer(staff)


@pytest.fixture()
def client(engine) -> Generator[TestClient, None, None]:
    def _get_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _get_session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
