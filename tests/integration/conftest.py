"""
Integration test conftest -- FastAPI TestClient and logged-in sessions.
"""
import os
import sys
import pytest
from unittest.mock import patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

# Force SQLite for integration tests
os.environ["DATABASE_URL"] = ""
os.environ["SECRET_KEY"] = "integration-test-secret-key"

from starlette.testclient import TestClient


@pytest.fixture(scope="session")
def client(test_db):
    """Create a TestClient for the FastAPI app."""
    from consultdesk.main import app
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def sent_mail():
    """Capture every email the background tasks try to deliver."""
    sent = []

    def fake_send(to, subject, text, html=None):
        sent.append({"to": to, "subject": subject, "text": text})
        return True

    with patch("consultdesk.notifications.send_email", side_effect=fake_send):
        yield sent


@pytest.fixture
def login(client, db):
    """Return a helper that logs in as an account and leaves its cookie on the client."""
    def _login(email, password):
        client.cookies.clear()
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()["user"]

    yield _login
    client.cookies.clear()


@pytest.fixture
def admin_session(login):
    from consultdesk.accounts import create_account
    create_account("admin", "System Administrator", "admin@consultdesk.local", "Admin@123")
    return login("admin@consultdesk.local", "Admin@123")
