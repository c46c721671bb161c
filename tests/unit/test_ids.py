"""
Unit tests for consultdesk/ids.py -- sequence ids, order ids, referral codes.
"""
import os
import re
import sys
import pytest
from unittest.mock import patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from consultdesk.errors import ValidationError
from consultdesk.ids import (
    generate_id,
    current_sequence,
    generate_order_id,
    generate_package_id,
    generate_referral_code,
    generate_username,
)

pytestmark = pytest.mark.unit


class TestGenerateId:
    def test_first_id_is_padded(self, db):
        assert generate_id("EMP") == "EMP001"

    def test_sequential(self, db):
        ids = [generate_id("SER") for _ in range(3)]
        assert ids == ["SER001", "SER002", "SER003"]

    def test_prefixes_are_independent(self, db):
        assert generate_id("EMP") == "EMP001"
        assert generate_id("CUS") == "CUS001"
        assert generate_id("EMP") == "EMP002"

    def test_grows_past_three_digits(self, db):
        from consultdesk.database import get_db
        with get_db() as conn:
            conn.execute("INSERT INTO sequences (prefix, seq) VALUES (?, ?)", ("LEAD", 999))
        assert generate_id("LEAD") == "LEAD1000"

    def test_no_reuse(self, db):
        ids = {generate_id("CUS") for _ in range(50)}
        assert len(ids) == 50
        assert current_sequence("CUS") == 50

    @pytest.mark.parametrize("prefix", ["", None, "   "])
    def test_empty_prefix_rejected_before_storage(self, prefix):
        with patch("consultdesk.ids.get_db") as mock_db:
            with pytest.raises(ValidationError):
                generate_id(prefix)
            mock_db.assert_not_called()

    def test_current_sequence_unused_prefix(self, db):
        assert current_sequence("ZZZ") == 0


class TestOtherIds:
    def test_order_id_format(self):
        assert re.match(r"^ORD\d{13}\d{3}$", generate_order_id())

    def test_order_ids_differ(self):
        assert len({generate_order_id() for _ in range(20)}) > 1

    def test_package_id(self):
        assert generate_package_id().startswith("PKG")

    def test_referral_code(self):
        code = generate_referral_code()
        assert re.match(r"^[0-9A-F]{6}$", code)

    def test_username_from_email(self):
        username = generate_username("asha.rao@example.com")
        assert re.match(r"^asha\.rao\d{1,3}$", username)
