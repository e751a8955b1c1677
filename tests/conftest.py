# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Awaitable, Callable, Generator, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-ecoroute")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["QUEUE_WORKERS_ENABLED"] = "false"

from ecoroute.api.v1.endpoints.realtime import get_gateway_dep
from ecoroute.api.v1.endpoints.system import get_job_queue_dep
from ecoroute.core.security import create_access_token
from ecoroute.db.session import Base
from ecoroute.db.session import get_db as app_get_session
from ecoroute.main import app as fastapi_app
from ecoroute.models import QueuedJob, User
from ecoroute.models.user import ROLE_ADMIN, ROLE_COOPERATIVE, ROLE_DRIVER
from ecoroute.realtime.gateway import RealtimeGateway
from ecoroute.services.job_queue import JobQueue
from ecoroute.services.queue_service import QueueService

TEST_DB_URL = "sqlite://"


class FakeConnection:
    """Connection double that records every event sent to it."""

    _counter = 0

    def __init__(self, fail: bool = False) -> None:
        FakeConnection._counter += 1
        self.id = f"conn-{FakeConnection._counter}"
        self.fail = fail
        self.sent: list[tuple[str, Any]] = []

    async def send(self, event: str, data: Any) -> None:
        if self.fail:
            raise ConnectionError("peer went away")
        self.sent.append((event, data))

    def events(self, name: str) -> list[Any]:
        """Return the payloads of every ``name`` event received, oldest first."""
        return [data for event, data in self.sent if event == name]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _make_user(
    db: Session,
    name: str,
    email: str,
    role: str = ROLE_COOPERATIVE,
    is_active: bool = True,
) -> User:
    user = User(name=name, email=email, role=role, is_active=is_active)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def alice(db_session: Session) -> User:
    """Cooperative member used as the usual sender."""
    return _make_user(db_session, "Alice", "alice@example.com")


@pytest.fixture()
def bob(db_session: Session) -> User:
    return _make_user(db_session, "Bob", "bob@example.com", role=ROLE_DRIVER)


@pytest.fixture()
def carol(db_session: Session) -> User:
    return _make_user(db_session, "Carol", "carol@example.com")


@pytest.fixture()
def admin(db_session: Session) -> User:
    return _make_user(db_session, "Admin", "admin@example.com", role=ROLE_ADMIN)


@pytest.fixture()
def inactive_user(db_session: Session) -> User:
    return _make_user(db_session, "Dormant", "dormant@example.com", is_active=False)


def auth_headers(user: User) -> dict[str, str]:
    """Return authorization headers for ``user``."""
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def job_queue(session_factory: sessionmaker[Session]) -> JobQueue:
    return JobQueue(session_factory)


@pytest.fixture()
def queue_service(job_queue: JobQueue) -> QueueService:
    return QueueService(job_queue)


@pytest.fixture()
def gateway(session_factory: sessionmaker[Session], queue_service: QueueService) -> RealtimeGateway:
    return RealtimeGateway(
        session_factory=session_factory,
        queue_service=queue_service,
        history_limit=50,
    )


@pytest.fixture()
def connect_user(gateway: RealtimeGateway) -> Callable[..., Awaitable[FakeConnection]]:
    """Admit ``user`` through a real token and register a recording connection."""

    async def _connect(user: User, fail: bool = False) -> FakeConnection:
        principal = await gateway.admit(create_access_token(user.id))
        connection = FakeConnection(fail=fail)
        await gateway.connect(connection, principal)
        return connection

    return _connect


@pytest.fixture()
def queued_jobs(db_session: Session) -> Callable[..., list[QueuedJob]]:
    """Return a reader of the jobs table, optionally filtered by queue."""

    def _read(queue: str | None = None) -> list[QueuedJob]:
        db_session.expire_all()
        query = db_session.query(QueuedJob)
        if queue is not None:
            query = query.filter(QueuedJob.queue == queue)
        return query.order_by(QueuedJob.id).all()

    return _read


@pytest.fixture()
def app(
    session_factory: sessionmaker[Session],
    gateway: RealtimeGateway,
    job_queue: JobQueue,
) -> Iterator[FastAPI]:
    def _get_session_override() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[app_get_session] = _get_session_override
    fastapi_app.dependency_overrides[get_gateway_dep] = lambda: gateway
    fastapi_app.dependency_overrides[get_job_queue_dep] = lambda: job_queue
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
