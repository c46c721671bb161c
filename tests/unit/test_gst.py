"""
Unit tests for GST splitting and order construction in consultdesk/payments.py.
"""
import os
import sys
import pytest
from datetime import timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from consultdesk.payments import build_order, split_gst

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from __mocks__.fixtures import NOW, make_package, make_service

pytestmark = pytest.mark.unit


class TestSplitGst:
    def test_included_intrastate(self):
        tax = split_gst(1180, 18)
        assert tax["baseAmount"] == 1000
        assert tax["cgst"] == 90
        assert tax["sgst"] == 90
        assert tax["igst"] == 0

    def test_included_interstate(self):
        tax = split_gst(1180, 18, is_interstate=True)
        assert tax["igst"] == 180
        assert tax["cgst"] == tax["sgst"] == 0

    def test_added_on_top(self):
        tax = split_gst(1000, 18, included=False)
        assert tax["baseAmount"] == 1000
        assert tax["cgst"] + tax["sgst"] == 180

    def test_zero_rate(self):
        tax = split_gst(500, 0)
        assert tax["baseAmount"] == 500
        assert tax["cgst"] == tax["sgst"] == tax["igst"] == 0


class TestBuildOrder:
    def test_due_date_from_package(self):
        service = make_service(packages=[make_package("P1", processing_days=5)])
        order = build_order(service, service["packages"][0], {"amount": 1180}, purchased_at=NOW)
        assert order["status"] == "In Process"
        assert order["dueDate"] == (NOW + timedelta(days=5)).isoformat()
        assert order["packageId"] == "P1"
        assert order["cgst"] == 90

    def test_price_falls_back_to_package(self):
        service = make_service(packages=[make_package("P1", sale_price=590)])
        order = build_order(service, service["packages"][0], {}, purchased_at=NOW)
        assert order["price"] == 590
        assert order["paymentMethod"] == "cash"

    def test_no_package_uses_seven_days(self):
        service = make_service(packages=[])
        order = build_order(service, None, {"amount": 100}, purchased_at=NOW)
        assert order["dueDate"] == (NOW + timedelta(days=7)).isoformat()
        assert "packageId" not in order
