"""
Shared fixtures: in-memory database, API client and authenticated users.
"""
import os
import tempfile

# Configure before the app modules read their environment
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENAI_API_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="takatrack-uploads-")

import httpx
import pytest
from fastapi.testclient import TestClient

import models
from database import engine, SessionLocal
from main import app, init_db
from services.llm_gateway import LLMGateway, get_llm_gateway


@pytest.fixture(autouse=True)
def fresh_database():
    """Recreate every table and the seed data for each test."""
    models.Base.metadata.drop_all(bind=engine)
    init_db()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    """Get FastAPI test client."""
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email="user@example.com", name="Test User", password="password123"):
    response = client.post("/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    body = response.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]


@pytest.fixture
def user(client):
    """(auth headers, user payload) for a freshly registered user."""
    return register(client)


@pytest.fixture
def auth_headers(user):
    return user[0]


@pytest.fixture
def other_headers(client):
    return register(client, email="other@example.com", name="Other User")[0]


@pytest.fixture
def admin_headers(client, db):
    headers, payload = register(client, email="admin@example.com", name="Admin User")
    admin_user = db.query(models.User).filter(models.User.user_id == payload["user_id"]).first()
    admin_user.roles.append(db.query(models.Role).filter(models.Role.name == "admin").first())
    db.commit()
    return headers


def category_id(db, name):
    return db.query(models.Category).filter(models.Category.name == name).first().category_id


def make_gateway(handler, max_retries=1):
    """Gateway whose HTTP traffic goes to `handler` instead of the network."""
    return LLMGateway(
        api_key="test-key",
        base_url="https://llm.test/v1",
        model="test-model",
        timeout=1,
        max_retries=max_retries,
        backoff_seconds=0,
        transport=httpx.MockTransport(handler),
    )


def completion(content, total_tokens=42):
    return {"choices": [{"message": {"content": content}}], "usage": {"total_tokens": total_tokens}}


@pytest.fixture
def use_gateway():
    """Install a gateway for the AI endpoints: use_gateway(handler)."""
    def install(handler, max_retries=1):
        gateway = make_gateway(handler, max_retries)
        app.dependency_overrides[get_llm_gateway] = lambda: gateway
        return gateway
    return install
