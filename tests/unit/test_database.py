"""
Unit tests for consultdesk/database.py -- document storage, version checks, order index.
"""
import os
import sys
import pytest
from datetime import datetime, date

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from consultdesk.database import (
    PostgresCursorWrapper,
    find_customer_id_for_order,
    find_documents,
    find_order_entries,
    index_customer_orders,
    insert_document,
    json_serial,
    load_document,
    update_document,
)
from consultdesk.errors import ConcurrentModification, NotFound

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from __mocks__.fixtures import make_customer, make_order

pytestmark = pytest.mark.unit


class TestJsonSerial:
    def test_datetime(self):
        assert json_serial(datetime(2024, 4, 1, 10, 0)) == "2024-04-01T10:00:00"

    def test_date(self):
        assert json_serial(date(2024, 4, 1)) == "2024-04-01"

    def test_other_types_rejected(self):
        with pytest.raises(TypeError):
            json_serial(object())


class TestDocuments:
    def test_insert_and_load(self, db):
        insert_document("wallets", {"_id": "CUS001", "balance": 0})
        doc = load_document("wallets", "CUS001")
        assert doc == {"_id": "CUS001", "balance": 0, "version": 1}

    def test_load_missing(self, db):
        assert load_document("wallets", "NOPE") is None
        assert load_document("wallets", None) is None

    def test_update_bumps_version(self, db):
        doc = insert_document("wallets", {"_id": "CUS001", "balance": 0})
        doc["balance"] = 50
        update_document("wallets", doc)
        assert doc["version"] == 2
        assert load_document("wallets", "CUS001")["balance"] == 50

    def test_stale_write_rejected(self, db):
        insert_document("wallets", {"_id": "CUS001", "balance": 0})
        first = load_document("wallets", "CUS001")
        second = load_document("wallets", "CUS001")
        first["balance"] = 10
        update_document("wallets", first)
        second["balance"] = 20
        with pytest.raises(ConcurrentModification):
            update_document("wallets", second)
        assert load_document("wallets", "CUS001")["balance"] == 10

    def test_update_missing(self, db):
        with pytest.raises(NotFound):
            update_document("wallets", {"_id": "GHOST", "version": 1})

    def test_unknown_column_rejected(self, db):
        with pytest.raises(ValueError):
            insert_document("wallets", {"_id": "X"}, role="customer")

    def test_find_by_column(self, db):
        insert_document("leads", {"_id": "LEAD001"}, email="a@x.com", status="new")
        insert_document("leads", {"_id": "LEAD002"}, email="b@x.com", status="assigned")
        found = find_documents("leads", "status = ?", ("assigned",))
        assert [d["_id"] for d in found] == ["LEAD002"]


class TestOrderIndex:
    def test_index_and_lookup(self, db):
        customer = make_customer(orders=[
            make_order("ORD1", service_id="SER001"),
            make_order("ORD2", service_id="SER002", employee_id="EMP001"),
        ])
        index_customer_orders(customer)
        assert find_customer_id_for_order("ORD2") == "CUS001"
        assert find_customer_id_for_order("ORD9") is None

    def test_reindex_replaces_rows(self, db):
        customer = make_customer(orders=[make_order("ORD1")])
        index_customer_orders(customer)
        customer["services"] = [make_order("ORD2")]
        index_customer_orders(customer)
        assert find_customer_id_for_order("ORD1") is None
        assert find_customer_id_for_order("ORD2") == "CUS001"

    def test_unassigned_filter(self, db):
        index_customer_orders(make_customer(orders=[
            make_order("ORD1", service_id="SER002"),
            make_order("ORD2", service_id="SER002", employee_id="EMP001"),
            make_order("ORD3", service_id="SER001"),
        ]))
        entries = find_order_entries(service_id="SER002", unassigned=True)
        assert [e["order_id"] for e in entries] == ["ORD1"]
        assert entries[0]["customer_id"] == "CUS001"

    def test_exclude_statuses(self, db):
        index_customer_orders(make_customer(orders=[
            make_order("ORD1"), make_order("ORD2", status="completed"),
        ]))
        entries = find_order_entries(exclude_statuses=["completed", "Cancelled"])
        assert [e["order_id"] for e in entries] == ["ORD1"]


class TestPostgresCursorWrapper:
    def test_placeholders_rewritten(self):
        from unittest.mock import MagicMock
        raw = MagicMock()
        PostgresCursorWrapper(raw).execute("SELECT * FROM accounts WHERE id = ?", ("A",))
        raw.execute.assert_called_once_with("SELECT * FROM accounts WHERE id = %s", ("A",))

    def test_insert_or_ignore(self):
        from unittest.mock import MagicMock
        raw = MagicMock()
        PostgresCursorWrapper(raw).execute("INSERT OR IGNORE INTO sequences (prefix, seq) VALUES (?, 0)", ("EMP",))
        sql = raw.execute.call_args[0][0]
        assert sql.startswith("INSERT INTO sequences")
        assert sql.endswith("ON CONFLICT DO NOTHING")
