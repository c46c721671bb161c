"""
Unit tests for consultdesk/dependencies.py -- session lookup and role guards.
"""
import os
import sys
import pytest
from unittest.mock import patch, MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from fastapi import HTTPException

from consultdesk.dependencies import get_current_user, require_auth, require_role, require_admin, require_staff

pytestmark = pytest.mark.unit

ADMIN = {"_id": "ADM001", "name": "Admin", "role": "admin"}
EMPLOYEE = {"_id": "EMP001", "name": "Ravi", "role": "employee"}
CUSTOMER = {"_id": "CUS001", "name": "Asha", "role": "customer"}


def _make_request(cookie_value=None):
    """Create a mock Request object with optional session cookie."""
    request = MagicMock()
    request.cookies = {"consultdesk_session": cookie_value} if cookie_value else {}
    return request


class TestGetCurrentUser:
    def test_no_cookie_returns_none(self):
        assert get_current_user(_make_request()) is None

    @patch("consultdesk.dependencies.validate_session")
    @patch("consultdesk.dependencies.deserialize_session")
    def test_valid_cookie_returns_user(self, mock_deser, mock_validate):
        mock_deser.return_value = "session-123"
        mock_validate.return_value = EMPLOYEE
        assert get_current_user(_make_request("valid-token")) == EMPLOYEE
        mock_validate.assert_called_once_with("session-123")

    @patch("consultdesk.dependencies.validate_session")
    @patch("consultdesk.dependencies.deserialize_session")
    def test_invalid_token_returns_none(self, mock_deser, mock_validate):
        mock_deser.return_value = None
        assert get_current_user(_make_request("bad-token")) is None
        mock_validate.assert_not_called()


class TestRequireAuth:
    @patch("consultdesk.dependencies.get_current_user")
    def test_authenticated_returns_user(self, mock_get_user):
        mock_get_user.return_value = CUSTOMER
        assert require_auth(_make_request()) == CUSTOMER

    @patch("consultdesk.dependencies.get_current_user")
    def test_unauthenticated_raises_401(self, mock_get_user):
        mock_get_user.return_value = None
        with pytest.raises(HTTPException) as exc:
            require_auth(_make_request())
        assert exc.value.status_code == 401


class TestRequireRole:
    def test_allowed_role_passes(self):
        assert require_admin(ADMIN) == ADMIN

    def test_other_role_raises_403(self):
        with pytest.raises(HTTPException) as exc:
            require_admin(EMPLOYEE)
        assert exc.value.status_code == 403

    def test_staff_guard_accepts_manager(self):
        manager = {"_id": "EMP002", "role": "manager"}
        assert require_staff(manager) == manager

    def test_staff_guard_rejects_customer(self):
        with pytest.raises(HTTPException):
            require_staff(CUSTOMER)

    def test_factory_builds_independent_guards(self):
        customer_only = require_role("customer")
        assert customer_only(CUSTOMER) == CUSTOMER
        with pytest.raises(HTTPException):
            customer_only(ADMIN)
