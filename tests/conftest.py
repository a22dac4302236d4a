import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from intent_service.config import Settings, get_settings
from intent_service.database import Base
from intent_service.main import app as fastapi_app
from intent_service.models import WebhookEvent
from intent_service.routes import get_gateway
from intent_service.stripe_service import StripeGateway

# Setup test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_webhook_events.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)

TEST_SETTINGS = Settings(
    stripe_secret_key="sk_test_123",
    stripe_publishable_key="pk_test_123",
    stripe_webhook_secret="whsec_test",
    demo_customer_id="cus_demo",
)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def stored_events():
    def load():
        db = TestingSessionLocal()
        try:
            return db.query(WebhookEvent).order_by(WebhookEvent.id).all()
        finally:
            db.close()
    return load


@pytest.fixture
def gateway(mocker):
    return mocker.create_autospec(StripeGateway, instance=True)


@pytest.fixture
def client(monkeypatch, gateway):
    # Webhook events go to the test database
    monkeypatch.setattr("intent_service.webhooks.SessionLocal", TestingSessionLocal)
    fastapi_app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
    fastapi_app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()
