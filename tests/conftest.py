import sys
import os
import tempfile
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))

os.environ["TESTING"] = "true"
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["ALLOW_SCHEMA_INIT"] = "true"
os.environ["MIGRATIONS_DIR"] = os.path.join(ROOT_DIR, "migrations")
os.environ["LOCAL_UPLOAD_DIR"] = tempfile.mkdtemp(prefix="toeqbank-uploads-")
os.environ["DO_SPACES_KEY"] = ""
os.environ["DO_SPACES_SECRET"] = ""
os.environ["BOOTSTRAP_ADMIN_USERNAME"] = "admin"
os.environ["BOOTSTRAP_ADMIN_EMAIL"] = "admin@test.com"
os.environ["BOOTSTRAP_ADMIN_PASSWORD"] = "adminpass123"

import uuid
import pytest
from fastapi.testclient import TestClient

from app.core import security
from app.core.config import settings
import main

ADMIN_PASSWORD = "adminpass123"
DEFAULT_PASSWORD = "testpass123"

# hashing cost is irrelevant to behaviour under test
security.BCRYPT_ROUNDS = 4


def _token_from(body):
    token = body.get("data", {}).get("token", {}).get("access_token")
    assert token, f"Login failed or token missing: {body}"
    return token


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture(scope="function")
def client(database_url, monkeypatch):
    # every test gets its own database file
    monkeypatch.setattr(settings, "DATABASE_URL", database_url)
    with TestClient(main.app) as test_client:
        yield test_client


def login(client, username, password=DEFAULT_PASSWORD):
    response = client.post("/auth/login", json={"username": username, "password": password})
    return _token_from(response.json())


@pytest.fixture
def admin_token(client):
    return login(client, "admin", ADMIN_PASSWORD)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def user_factory(client, admin_headers):
    """Create a user through the admin API and return (user, headers)."""
    def _create_user(is_reviewer=False, is_image_contributor=False, is_admin=False, **overrides):
        username = overrides.pop("username", f"user_{uuid.uuid4().hex[:10]}")
        payload = {
            "username": username,
            "email": f"{username}@test.com",
            "password": DEFAULT_PASSWORD,
            "is_admin": is_admin,
            "is_reviewer": is_reviewer,
            "is_image_contributor": is_image_contributor,
            "exam_category": settings.DEFAULT_EXAM_CATEGORY,
            "exam_type": settings.DEFAULT_EXAM_TYPE,
        }
        payload.update(overrides)
        response = client.post("/admin/users", headers=admin_headers, json=payload)
        assert response.status_code == 201, response.text
        token = login(client, username)
        return response.json()["data"], {"Authorization": f"Bearer {token}"}
    return _create_user


@pytest.fixture
def user_headers(user_factory):
    return user_factory()[1]


@pytest.fixture
def reviewer_headers(user_factory):
    return user_factory(is_reviewer=True)[1]


@pytest.fixture
def contributor(user_factory):
    return user_factory(is_image_contributor=True)


@pytest.fixture
def question_payload():
    def _payload(**overrides):
        payload = {
            "question": "Which view best shows the left atrial appendage?",
            "choice_a": "Mid-esophageal four chamber",
            "choice_b": "Mid-esophageal two chamber",
            "choice_c": "Transgastric short axis",
            "correct_answer": "B",
            "explanation": "The appendage is seen at the top of the two chamber view.",
        }
        payload.update(overrides)
        return payload
    return _payload


@pytest.fixture
def png_bytes():
    return b"\x89PNG\r\n\x1a\n" + os.urandom(64)
