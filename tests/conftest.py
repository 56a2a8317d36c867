# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from pathlib import Path

import fakeredis
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ["OUTBOX_RELAY_ENABLED"] = "false"
os.environ.setdefault("DATABASE_URL", "sqlite://")

from orders_service.api.v1.dependencies import get_events_publisher, get_idempotency_store
from orders_service.db.session import Base
from orders_service.db.session import get_db as app_get_session
from orders_service.main import app as fastapi_app
from orders_service.services.events import EventEnvelope
from orders_service.services.idempotency import IdempotencyStore
from orders_service.services.order_service import OrderService

TEST_DB_URL = "sqlite://"
TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"


class RecordingPublisher:
    """Publisher double that keeps every envelope it was given."""

    def __init__(self) -> None:
        self.envelopes: list[EventEnvelope] = []
        self.fail = False

    def publish(self, envelope: EventEnvelope) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.envelopes.append(envelope)

    def types(self) -> list[str]:
        return [envelope.type for envelope in self.envelopes]


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
def file_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Engine with independent connections, for tests that interleave sessions."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'orders.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def redis_client() -> Iterator[fakeredis.FakeRedis]:
    client = fakeredis.FakeRedis(decode_responses=True)
    client.flushall()
    try:
        yield client
    finally:
        client.flushall()


@pytest.fixture()
def idempotency_store(redis_client: fakeredis.FakeRedis) -> IdempotencyStore:
    return IdempotencyStore(redis_client, ttl_seconds=3600)


@pytest.fixture()
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture()
def order_service(
    db_session: Session,
    idempotency_store: IdempotencyStore,
    publisher: RecordingPublisher,
) -> OrderService:
    return OrderService(db_session, idempotency_store, publisher)


@pytest.fixture()
def app(
    session_factory: sessionmaker[Session],
    idempotency_store: IdempotencyStore,
    publisher: RecordingPublisher,
) -> Iterator[FastAPI]:
    def _get_session_override() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[app_get_session] = _get_session_override
    fastapi_app.dependency_overrides[get_idempotency_store] = lambda: idempotency_store
    fastapi_app.dependency_overrides[get_events_publisher] = lambda: publisher
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def tenant_headers() -> dict[str, str]:
    return {"X-Tenant-Id": TENANT}
