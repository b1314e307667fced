import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool


@pytest.fixture(autouse=True)
def _safe_test_config(monkeypatch):
    """Force deterministic, offline-safe config for tests.

    The repo loads .env on import; these overrides keep Twilio / Resend out of
    the provider registry and dispatches inline.
    """
    from salesops.config import config, Config

    overrides = {
        "TWILIO_ACCOUNT_SID": "",
        "TWILIO_AUTH_TOKEN": "",
        "TWILIO_CALLER_ID": "",
        "RESEND_API_KEY": "",
        "EMAIL_FROM_ADDRESS": "",
        "API_KEY": "",
        "AUTOMATIONS_ASYNC": False,
        "DEFAULT_OVERDUE_THRESHOLD_MINUTES": 30,
    }
    for name, value in overrides.items():
        monkeypatch.setattr(Config, name, value, raising=False)
        # Keep the instance in sync for any code that reads instance attributes directly.
        monkeypatch.setattr(config, name, value, raising=False)

    return config


@pytest.fixture
def db_engine():
    """One shared in-memory SQLite database per test."""
    from salesops.database import init_db

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    from salesops.database import make_session_factory

    return make_session_factory(db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(session_factory):
    from salesops.store import SqlAlchemyStore

    return SqlAlchemyStore(session_factory)


class RecordingProvider:
    """Message provider that remembers what it was asked to send."""

    def __init__(self, provider_id="recording", channels=("sms", "email", "voice", "in_app"), fail_with=None):
        from salesops.models import MessageChannel

        self.id = provider_id
        self.label = provider_id
        self.channels = tuple(MessageChannel(c) for c in channels)
        self.fail_with = fail_with
        self.sent = []

    def send(self, message):
        from salesops.models import MessageResult

        self.sent.append(message)
        if self.fail_with:
            return MessageResult(success=False, provider_id=self.id, error=self.fail_with)
        return MessageResult(success=True, provider_id=self.id, provider_message_id=f"msg-{len(self.sent)}")


@pytest.fixture
def recording_provider():
    return RecordingProvider()


@pytest.fixture
def engine(store, recording_provider):
    from salesops.messaging.providers import ProviderRegistry
    from salesops.runtime import build_engine

    return build_engine(store=store, providers=ProviderRegistry([recording_provider]))


@pytest.fixture
def bus(engine):
    from salesops.automations.events import EventBus

    return EventBus(engine=engine)


@pytest.fixture
def client(session_factory, store, engine, bus):
    """TestClient wired to the in-memory database and inline dispatch."""
    from fastapi.testclient import TestClient

    from salesops.database import get_db
    from salesops.main import app
    from salesops.routers import deps

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_engine] = lambda: engine
    app.dependency_overrides[deps.get_event_bus] = lambda: bus
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def provider_factory():
    """Build extra RecordingProviders (custom channels or a forced failure)."""
    return RecordingProvider
