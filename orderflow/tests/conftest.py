from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from orderflow.app.config import Config
from orderflow.app.db.base import Base
from orderflow.app.db.models.models_v1 import STAFF_MODELS, Client
from orderflow.app.db.retry import RetryPolicy
from orderflow.app.db.session import Database
from orderflow.app.errors import DownstreamServiceError
from orderflow.app.factory import create_app
from orderflow.services.notifications import NotificationDispatcher
from orderflow.services.workflow import Workflow


class FakePushChannel:
    def __init__(self) -> None:
        self.sent = []
        self.fail = False
        self.fail_tokens: set[str] = set()

    def send(self, message) -> None:
        if self.fail or message.token in self.fail_tokens:
            raise DownstreamServiceError("push channel down")
        self.sent.append(message)

    def tokens(self) -> list[str]:
        return [m.token for m in self.sent]


class FakeIdentityProvider:
    def __init__(self) -> None:
        self.created = []
        self.updated = []
        self.deleted = []
        self.fail_on: set[str] = set()

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise DownstreamServiceError(f"identity {op} failed")

    def create_user(self, *, email, password, name, role):
        self._maybe_fail("create")
        ref = f"user_{len(self.created) + 1}"
        self.created.append({"ref": ref, "email": email, "password": password, "name": name, "role": role})
        return ref

    def update_user(self, identity_ref, *, name, email, phone, role):
        self._maybe_fail("update")
        self.updated.append({"ref": identity_ref, "name": name, "email": email, "phone": phone, "role": role})

    def delete_user(self, identity_ref):
        self._maybe_fail("delete")
        self.deleted.append(identity_ref)


class FakeMailer:
    def __init__(self) -> None:
        self.sent = []
        self.fail = False

    def send_welcome(self, *, email, name, password, role):
        if self.fail:
            raise DownstreamServiceError("mail down")
        self.sent.append({"email": email, "name": name, "password": password, "role": role})


@pytest.fixture
def config() -> Config:
    return Config(
        ENVIRONMENT="test",
        DATABASE_URL="sqlite://",
        LOG_JSON=False,
        VAT_RATE=0.15,
        DELIVERY_REQUIRES_ACCEPTANCE=True,
    )


@pytest.fixture
def database():
    """
    Fresh in-memory SQLite per test.

    StaticPool keeps a single connection so every session (and the
    TestClient worker thread) sees the same database.
    """
    engine = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    db = Database("sqlite://", engine=engine)
    Base.metadata.create_all(bind=db.engine)
    yield db
    db.dispose()


@pytest.fixture
def db_session(database) -> Session:
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0.0, sleep=lambda _: None)


@pytest.fixture
def push_channel() -> FakePushChannel:
    return FakePushChannel()


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def notifier(push_channel) -> NotificationDispatcher:
    return NotificationDispatcher(push_channel)


@pytest.fixture
def seed(database):
    """One client and one active user per role, each with a push token."""
    with database.session() as s:
        client = Client(
            company_name="Acme Logistics",
            client_name="Acme",
            client_type="Company",
            phone_number="+966500000000",
            tax_number="300000000000003",
            branch_number="001",
            latitude=24.7,
            longitude=46.6,
            city="Riyadh",
        )
        s.add(client)

        users = {}
        for role, model in STAFF_MODELS.items():
            user = model(
                name=f"{role.value} one",
                email=f"{role.value.lower()}@example.com",
                phone="+966500000001",
                role=role.value,
                active=True,
                fcm_token=f"token-{role.value}",
                identity_ref=f"ext-{role.value}",
            )
            s.add(user)
            users[role] = user
        s.commit()

        return SimpleNamespace(
            client_id=client.id,
            user_ids={role: user.id for role, user in users.items()},
        )


@pytest.fixture
def workflow(db_session, notifier, retry_policy) -> Workflow:
    return Workflow(
        db_session,
        notifier=notifier,
        policy=retry_policy,
        vat_rate=0.15,
        clock=lambda: datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def app(config, database, notifier, identity, mailer, retry_policy):
    return create_app(
        config,
        database=database,
        notifier=notifier,
        identity=identity,
        mailer=mailer,
        retry_policy=retry_policy,
    )


@pytest.fixture
def api(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def count_rows(database):
    def _count(model) -> int:
        with database.session() as s:
            return s.execute(select(func.count()).select_from(model)).scalar_one()

    return _count
