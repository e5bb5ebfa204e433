import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "true")

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from signsync.db import Base, get_db
from signsync.main import create_app
from signsync.models.agreement import Agreement
from signsync.routes.webhooks import get_processor
from signsync.signing.artifacts import ArtifactCapture
from signsync.signing.event_store import EventStore
from signsync.signing.notify import DashboardNotifier, RedisMetrics
from signsync.signing.orchestrator import SignatureEventProcessor
from signsync.storage.local import LocalStorageProvider

# sqlite has no JSONB; plain JSON behaves the same for these tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"

class FakeRedis:
    def __init__(self):
        self.published: list[tuple[str, str]] = []
        self.counters: dict[str, int] = {}

    def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1

    def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        self.counters[field] = self.counters.get(field, 0) + amount
        return self.counters[field]

@pytest.fixture()
def engine():
    database_url = os.environ["DATABASE_URL"]
    if database_url.startswith("sqlite"):
        eng = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        eng = create_engine(database_url, pool_pre_ping=True)

    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(eng)
        eng.dispose()

@pytest.fixture()
def db_session(engine) -> Session:
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()

@pytest.fixture()
def storage(tmp_path) -> LocalStorageProvider:
    return LocalStorageProvider(tmp_path / "documents", "https://files.example.com")

@pytest.fixture()
def store() -> EventStore:
    return EventStore(write_attempts=2)

@pytest.fixture()
def processor(storage, store, fake_redis) -> SignatureEventProcessor:
    return SignatureEventProcessor(
        capture=ArtifactCapture(storage),
        store=store,
        notifier=DashboardNotifier(fake_redis, "test:dashboard"),
        metrics=RedisMetrics(fake_redis, "test:metrics"),
    )

@pytest.fixture()
def client(db_session: Session, processor: SignatureEventProcessor) -> TestClient:
    app = create_app()

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_processor] = lambda: processor
    return TestClient(app)

@pytest.fixture()
def make_agreement(db_session: Session):
    def _make(**fields) -> Agreement:
        fields.setdefault("external_reference", str(uuid.uuid4()))
        fields.setdefault("lifecycle_status", "created")
        a = Agreement(**fields)
        db_session.add(a)
        db_session.commit()
        db_session.refresh(a)
        return a

    return _make
