"""
Root conftest.py -- shared fixtures for all test levels.
"""
import os
import sys
import pytest

# Ensure consultdesk is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Force SQLite for testing (never hit production PostgreSQL)
os.environ["DATABASE_URL"] = ""
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["MAIL_API_URL"] = ""

TABLES = ["sessions", "order_index", "messages", "wallets", "leads", "services", "accounts", "sequences"]


@pytest.fixture(scope="session")
def test_db(tmp_path_factory):
    """Initialize a throwaway SQLite database for the whole test session."""
    import consultdesk.config as config
    import consultdesk.database as database_mod

    test_db_path = tmp_path_factory.mktemp("db") / "test_consultdesk.db"
    config.DATABASE_PATH = test_db_path
    database_mod.DATABASE_PATH = test_db_path

    database_mod.init_database()
    yield test_db_path


@pytest.fixture
def db(test_db):
    """Empty every table before the test so ids start again at 001."""
    from consultdesk.database import get_db

    with get_db() as conn:
        cursor = conn.cursor()
        for table in TABLES:
            cursor.execute(f"DELETE FROM {table}")
    return test_db


class RecordingTransport:
    """Mail transport double: records every message instead of sending it."""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def __call__(self, to, subject, text, html=None):
        if self.fail:
            raise RuntimeError("mail API down")
        self.sent.append({"to": to, "subject": subject, "text": text})
        return True

    def subjects(self):
        return [m["subject"] for m in self.sent]


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def outbox(transport):
    from consultdesk.notifications import Outbox
    return Outbox(transport=transport)
