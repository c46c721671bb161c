"""
Integration tests for consultdesk/leads.py -- lead intake through conversion.
"""
import os
import sys
import pytest
from datetime import timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "integration-test-secret-key")

from consultdesk import accounts, leads
from consultdesk.auth import verify_password
from consultdesk.due_dates import parse_datetime, utcnow
from consultdesk.errors import Forbidden, InvalidTransition, NotFound, ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from __mocks__.fixtures import create_customer, create_employee, create_service

pytestmark = pytest.mark.integration


@pytest.fixture
def service(db):
    return create_service(processing_days=10)


@pytest.fixture
def employee(service):
    return create_employee(services_handled=[service["_id"]])


def new_lead(service, email="neha@example.com", outbox=None):
    return leads.create_lead("Neha Jain", email, "9876543210", service["_id"],
                             message="Need help with ITR", outbox=outbox)


def accepted_lead(service, employee, email="neha@example.com"):
    lead = new_lead(service, email=email)
    leads.assign_to_employee(lead["_id"], employee["_id"])
    return leads.accept(lead["_id"], employee["_id"])


class TestCreateLead:
    def test_creates_new_lead(self, service, outbox):
        lead = new_lead(service, outbox=outbox)
        assert lead["_id"].startswith("LEAD")
        assert lead["status"] == "new"
        assert lead["assignedToEmployee"] is None
        assert leads.get_lead(lead["_id"])["email"] == "neha@example.com"
        assert len(outbox) >= 1

    def test_email_is_normalized(self, service):
        lead = new_lead(service, email="  Neha@Example.COM ")
        assert lead["email"] == "neha@example.com"

    def test_duplicate_lead_email_rejected(self, service):
        new_lead(service)
        with pytest.raises(ValidationError):
            new_lead(service)

    def test_guest_with_existing_account_rejected(self, service):
        create_customer(email="neha@example.com")
        with pytest.raises(ValidationError):
            new_lead(service)

    def test_signed_in_customer_allowed(self, service):
        create_customer(email="neha@example.com")
        lead = leads.create_lead("Neha Jain", "neha@example.com", "9876543210", service["_id"],
                                 existing_account_allowed=True)
        assert lead["status"] == "new"

    def test_missing_fields(self, service):
        with pytest.raises(ValidationError):
            leads.create_lead("Neha Jain", "", "9876543210", service["_id"])

    def test_unknown_service(self, db):
        with pytest.raises(NotFound):
            leads.create_lead("Neha Jain", "neha@example.com", "9876543210", "SER999")

    def test_invalid_source(self, service):
        with pytest.raises(ValidationError):
            leads.create_lead("Neha Jain", "neha@example.com", "9876543210", service["_id"], source="fax")


class TestTransitions:
    def test_assign_sets_owner(self, service, employee, outbox):
        lead = new_lead(service)
        assigned = leads.assign_to_employee(lead["_id"], employee["_id"], outbox=outbox)
        assert assigned["status"] == "assigned"
        assert assigned["assignedToEmployee"] == employee["_id"]
        assert assigned["assignedAt"]
        assert len(outbox) == 1

    def test_assign_twice_rejected(self, service, employee):
        lead = new_lead(service)
        leads.assign_to_employee(lead["_id"], employee["_id"])
        with pytest.raises(InvalidTransition):
            leads.assign_to_employee(lead["_id"], employee["_id"])

    def test_assign_unknown_employee(self, service):
        lead = new_lead(service)
        with pytest.raises(NotFound):
            leads.assign_to_employee(lead["_id"], "EMP999")
        assert leads.get_lead(lead["_id"])["status"] == "new"

    def test_accept(self, service, employee):
        lead = accepted_lead(service, employee)
        assert lead["status"] == "accepted"
        assert lead["acceptedAt"]

    def test_accept_by_other_employee_forbidden(self, service, employee):
        other = create_employee(name="Meera Shah")
        lead = new_lead(service)
        leads.assign_to_employee(lead["_id"], employee["_id"])
        with pytest.raises(Forbidden):
            leads.accept(lead["_id"], other["_id"])
        assert leads.get_lead(lead["_id"])["status"] == "assigned"

    def test_accept_before_assignment(self, service, employee):
        lead = new_lead(service)
        with pytest.raises(Forbidden):
            leads.accept(lead["_id"], employee["_id"])

    def test_decline_default_reason(self, service, employee):
        lead = new_lead(service)
        leads.assign_to_employee(lead["_id"], employee["_id"])
        declined = leads.decline(lead["_id"], employee["_id"])
        assert declined["status"] == "declined"
        assert declined["declineReason"] == leads.DEFAULT_DECLINE_REASON

    def test_decline_with_reason(self, service, employee):
        lead = new_lead(service)
        leads.assign_to_employee(lead["_id"], employee["_id"])
        declined = leads.decline(lead["_id"], employee["_id"], reason="Out of scope")
        assert declined["declineReason"] == "Out of scope"

    def test_declined_lead_cannot_be_accepted(self, service, employee):
        lead = new_lead(service)
        leads.assign_to_employee(lead["_id"], employee["_id"])
        leads.decline(lead["_id"], employee["_id"])
        with pytest.raises(InvalidTransition):
            leads.accept(lead["_id"], employee["_id"])
        assert leads.get_lead(lead["_id"])["status"] == "declined"

    def test_send_back(self, service, employee, outbox):
        lead = accepted_lead(service, employee)
        sent = leads.send_back(lead["_id"], note="Confirm the package", outbox=outbox)
        assert sent["status"] == "assigned"
        assert sent["adminNote"] == "Confirm the package"
        assert sent["sentBackAt"]
        assert len(outbox) == 1
        # The employee can accept again
        assert leads.accept(lead["_id"], employee["_id"])["status"] == "accepted"

    def test_send_back_requires_accepted(self, service, employee):
        lead = new_lead(service)
        with pytest.raises(InvalidTransition):
            leads.send_back(lead["_id"])

    def test_unknown_lead(self, db):
        with pytest.raises(NotFound):
            leads.get_lead("LEAD999")


class TestConvert:
    def test_new_customer_gets_account_order_and_mirror(self, service, employee, outbox):
        lead = accepted_lead(service, employee)
        before = utcnow()
        result = leads.convert(lead["_id"], {"amount": 1180, "method": "upi"}, outbox=outbox)

        customer = accounts.get_account(result["account"]["_id"])
        assert customer["role"] == "customer"
        assert customer["email"] == "neha@example.com"
        assert result["temporaryPassword"]
        assert verify_password(result["temporaryPassword"], customer["passwordHash"])
        assert accounts.get_wallet(customer["_id"]) is not None

        order = customer["services"][0]
        assert order["orderId"] == result["orderId"]
        assert order["status"] == "In Process"
        assert order["employeeId"] == employee["_id"]
        purchased = parse_datetime(order["purchasedAt"])
        due = parse_datetime(order["dueDate"])
        assert due - purchased == timedelta(days=10)
        assert abs((due - (before + timedelta(days=10))).total_seconds()) < 60

        assert customer["paymentHistory"][0]["paymentId"] == f"CNV-{lead['_id']}"

        mirror = accounts.get_account(employee["_id"])["assignedCustomers"]
        assert [c["_id"] for c in mirror] == [customer["_id"]]

        stored = leads.get_lead(lead["_id"])
        assert stored["status"] == "converted"
        assert stored["convertedToOrderId"] == result["orderId"]
        assert stored["convertedToCustomerId"] == customer["_id"]
        assert stored["convertedAt"]
        # Welcome mail plus both sides of the assignment
        assert len(outbox) == 3

    def test_due_date_counts_from_conversion(self, service, employee):
        lead = accepted_lead(service, employee)
        result = leads.convert(lead["_id"])
        order = accounts.get_account(result["account"]["_id"])["services"][0]
        converted_at = parse_datetime(leads.get_lead(lead["_id"])["convertedAt"])
        assert parse_datetime(order["purchasedAt"]) == converted_at
        assert parse_datetime(order["dueDate"]) == converted_at + timedelta(days=10)

    def test_service_without_packages_uses_default_days(self, employee):
        bare = create_service(name="Tax Notice Reply", packages=[])
        lead = accepted_lead(bare, employee)
        result = leads.convert(lead["_id"])
        order = accounts.get_account(result["account"]["_id"])["services"][0]
        assert "packageId" not in order
        assert order["processingDays"] == 7
        assert parse_datetime(order["dueDate"]) - parse_datetime(order["purchasedAt"]) == timedelta(days=7)

    def test_convert_twice_rejected(self, service, employee):
        lead = accepted_lead(service, employee)
        leads.convert(lead["_id"])
        with pytest.raises(InvalidTransition):
            leads.convert(lead["_id"])
        customer = accounts.find_account_by_email("neha@example.com")
        assert len(customer["services"]) == 1

    def test_convert_requires_accepted(self, service, employee):
        lead = new_lead(service)
        leads.assign_to_employee(lead["_id"], employee["_id"])
        with pytest.raises(InvalidTransition):
            leads.convert(lead["_id"])
        assert accounts.find_account_by_email("neha@example.com") is None
        assert leads.get_lead(lead["_id"])["status"] == "assigned"

    def test_existing_customer_reused(self, service, employee, outbox):
        existing = create_customer(email="neha@example.com")
        lead = leads.create_lead("Neha Jain", "neha@example.com", "9876543210", service["_id"],
                                 existing_account_allowed=True)
        leads.assign_to_employee(lead["_id"], employee["_id"])
        leads.accept(lead["_id"], employee["_id"])

        result = leads.convert(lead["_id"], outbox=outbox)
        assert result["account"]["_id"] == existing["_id"]
        assert result["temporaryPassword"] is None
        assert len(accounts.get_account(existing["_id"])["services"]) == 1

    def test_staff_email_not_reused(self, service, employee):
        create_employee(name="Neha Jain", email="neha@example.com")
        lead = leads.create_lead("Neha Jain", "neha@example.com", "9876543210", service["_id"],
                                 existing_account_allowed=True)
        leads.assign_to_employee(lead["_id"], employee["_id"])
        leads.accept(lead["_id"], employee["_id"])
        with pytest.raises(ValidationError):
            leads.convert(lead["_id"])
        assert leads.get_lead(lead["_id"])["status"] == "accepted"

    def test_unknown_package(self, service, employee):
        lead = accepted_lead(service, employee)
        with pytest.raises(NotFound):
            leads.convert(lead["_id"], {"packageId": "PKGNOPE"})
        assert leads.get_lead(lead["_id"])["status"] == "accepted"


class TestListing:
    def test_filter_by_status(self, service, employee):
        first = new_lead(service, email="one@example.com")
        new_lead(service, email="two@example.com")
        leads.assign_to_employee(first["_id"], employee["_id"])

        assert [l["_id"] for l in leads.list_leads("assigned")] == [first["_id"]]
        assert len(leads.list_leads()) == 2
        assert [l["_id"] for l in leads.employee_leads(employee["_id"])] == [first["_id"]]

    def test_invalid_status_filter(self, db):
        with pytest.raises(ValidationError):
            leads.list_leads("archived")
