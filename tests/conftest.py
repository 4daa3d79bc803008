import os

# must be set before anything imports app.core.config
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SEED_DEMO_DATA"] = "true"
os.environ["ENABLE_PAYMENTS"] = "false"
os.environ["STRIPE_API_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = ""

import pytest
from fastapi.testclient import TestClient

from app.db.base import Base
from app.db.seed import DEMO_PASSWORD
from app.db.session import SessionLocal, engine
from app.main import create_app
from app.services.payments import PaymentGateway

ADMIN_EMAIL = "admin@believefundraising.com"
COACH_EMAIL = "coach.johnson@lincolnhigh.edu"
STUDENT_EMAIL = "alex.thompson@student.lincolnhigh.edu"


@pytest.fixture(autouse=True)
def _fresh_db():
    Base.metadata.drop_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    with SessionLocal() as session:
        yield session


@pytest.fixture()
def gateway():
    """Gateway with the payments stack disabled."""
    return PaymentGateway(api_key=None)


@pytest.fixture()
def enabled_gateway():
    return PaymentGateway(api_key="sk_test_123")


@pytest.fixture()
def make_client():
    clients = []

    def _make(gateway=None, event_store=None):
        client = TestClient(create_app(gateway=gateway, event_store=event_store))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture()
def client(make_client, gateway):
    return make_client(gateway=gateway)


@pytest.fixture()
def login():
    def _login(client, email: str, password: str = DEMO_PASSWORD) -> dict:
        response = client.post(
            "/api/auth/login", json={"email": email, "password": password}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login


@pytest.fixture()
def admin_headers(client, login):
    return login(client, ADMIN_EMAIL)


@pytest.fixture()
def coach_headers(client, login):
    return login(client, COACH_EMAIL)


@pytest.fixture()
def student_headers(client, login):
    return login(client, STUDENT_EMAIL)
