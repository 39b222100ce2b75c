import logging
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from permit_intake.database import get_db, get_session_factory, init_db
from permit_intake.main import app
from permit_intake.services.relay import RelayPublisher, get_relay

INTEGRATION_ENV_VARS = [
    "OPENAI_API_KEY",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_PHONE_NUMBER",
    "ABLY_API_KEY",
    "BRAINTRUST_API_KEY",
    "PAGE_PASSWORD",
    "PUBLIC_BASE_URL",
]


def future_date(days=30):
    return (date.today() + timedelta(days=days)).isoformat()


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Run every test without real provider credentials"""
    for name in INTEGRATION_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def relay_publisher():
    return RelayPublisher(None)


@pytest.fixture
def client(session_factory, relay_publisher, monkeypatch):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr("permit_intake.main.init_db", lambda: None)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_relay] = lambda: relay_publisher
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def application_data():
    return {
        "establishmentName": "Joe's Pizza",
        "streetAddress": "123 Main St, Wenatchee, WA 98801",
        "establishmentPhone": "(509) 555-1234",
        "establishmentEmail": "Info@JoesPizza.com",
        "ownerName": "Joe Smith",
        "ownerPhone": "509.555.9876",
        "ownerEmail": "joe@example.com",
        "establishmentType": "restaurant",
        "plannedOpeningDate": future_date(),
    }
