"""
Service-inquiry leads and their conversion into customers with a first order.

    new -> assigned -> accepted -> converted
                    -> declined
    accepted -> assigned (sent back by admin)

declined and converted are terminal.
"""
import logging

from consultdesk import accounts, catalog, notifications
from consultdesk.assignment import build_customer_snapshot, upsert_mirror
from consultdesk.auth import generate_password
from consultdesk.config import (
    PREFIX_LEAD, LEAD_SOURCES, DEFAULT_DECLINE_REASON, DEFAULT_SEND_BACK_NOTE, TEMP_PASSWORD_LENGTH,
)
from consultdesk.database import insert_document, update_document, load_document, find_documents
from consultdesk.due_dates import utcnow
from consultdesk.errors import Forbidden, InvalidTransition, NotFound, ValidationError
from consultdesk.ids import generate_id, generate_username
from consultdesk.payments import build_order, record_payment
from consultdesk.roles import ROLE_CUSTOMER

logger = logging.getLogger(__name__)

LEAD_NEW = "new"
LEAD_ASSIGNED = "assigned"
LEAD_ACCEPTED = "accepted"
LEAD_DECLINED = "declined"
LEAD_CONVERTED = "converted"

LEAD_STATUSES = [LEAD_NEW, LEAD_ASSIGNED, LEAD_ACCEPTED, LEAD_DECLINED, LEAD_CONVERTED]


def _columns(lead: dict) -> dict:
    return {
        "email": lead["email"],
        "status": lead["status"],
        "assigned_to": lead.get("assignedToEmployee"),
    }


def save_lead(lead: dict) -> dict:
    return update_document("leads", lead, **_columns(lead))


def get_lead(lead_id: str) -> dict:
    lead = load_document("leads", lead_id)
    if not lead:
        raise NotFound(f"Lead {lead_id} not found")
    return lead


def _require_status(lead: dict, required: str):
    if lead["status"] != required:
        raise InvalidTransition(current=lead["status"], required=required)


def _require_owner(lead: dict, employee_id: str):
    if lead.get("assignedToEmployee") != employee_id:
        raise Forbidden(f"Lead {lead['_id']} is not assigned to you")


def create_lead(name: str, email: str, mobile: str, service_id: str, message: str = None,
                source: str = "website", existing_account_allowed: bool = False,
                outbox: notifications.Outbox = None) -> dict:
    """
    Record a service inquiry. Guests may not open a lead for an email that
    already has an account; signed-in customers pass existing_account_allowed.
    """
    if not name or not email or not mobile or not service_id:
        raise ValidationError("Missing required fields")
    if source not in LEAD_SOURCES:
        raise ValidationError(f"Invalid source '{source}'")
    service = catalog.get_service(service_id)

    email = accounts.normalize_email(email)
    if find_documents("leads", "email = ?", (email,)):
        raise ValidationError("A lead with this email already exists. Our team will contact you soon.")
    if not existing_account_allowed and accounts.find_account_by_email(email):
        raise ValidationError("An account with this email already exists. "
                              "Please login to your account to request services.")

    lead = {
        "_id": generate_id(PREFIX_LEAD),
        "name": name.strip(),
        "email": email,
        "mobile": mobile,
        "serviceId": service_id,
        "message": message,
        "source": source,
        "status": LEAD_NEW,
        "assignedToEmployee": None,
        "createdAt": utcnow().isoformat(),
    }
    insert_document("leads", lead, **_columns(lead))
    logger.info("New lead %s for %s from %s", lead["_id"], service_id, email)

    if outbox is not None:
        notifications.lead_received(outbox, lead, service)
    return lead


def assign_to_employee(lead_id: str, employee_id: str, outbox: notifications.Outbox = None) -> dict:
    lead = get_lead(lead_id)
    _require_status(lead, LEAD_NEW)
    employee = accounts.find_account(employee_id)
    if not employee or employee.get("role") not in ("employee", "manager"):
        raise NotFound(f"Employee {employee_id} not found")

    lead["status"] = LEAD_ASSIGNED
    lead["assignedToEmployee"] = employee_id
    lead["assignedAt"] = utcnow().isoformat()
    save_lead(lead)

    if outbox is not None:
        notifications.lead_assigned(outbox, lead, employee)
    return lead


def accept(lead_id: str, employee_id: str) -> dict:
    lead = get_lead(lead_id)
    _require_owner(lead, employee_id)
    _require_status(lead, LEAD_ASSIGNED)
    lead["status"] = LEAD_ACCEPTED
    lead["acceptedAt"] = utcnow().isoformat()
    return save_lead(lead)


def decline(lead_id: str, employee_id: str, reason: str = None) -> dict:
    lead = get_lead(lead_id)
    _require_owner(lead, employee_id)
    _require_status(lead, LEAD_ASSIGNED)
    lead["status"] = LEAD_DECLINED
    lead["declinedAt"] = utcnow().isoformat()
    lead["declineReason"] = (reason or "").strip() or DEFAULT_DECLINE_REASON
    return save_lead(lead)


def send_back(lead_id: str, note: str = None, outbox: notifications.Outbox = None) -> dict:
    """Admin returns an accepted lead to its employee for another look."""
    lead = get_lead(lead_id)
    _require_status(lead, LEAD_ACCEPTED)
    lead["status"] = LEAD_ASSIGNED
    lead["adminNote"] = (note or "").strip() or DEFAULT_SEND_BACK_NOTE
    lead["sentBackAt"] = utcnow().isoformat()
    save_lead(lead)

    employee = accounts.find_account(lead.get("assignedToEmployee"))
    if employee and outbox is not None:
        notifications.lead_sent_back(outbox, lead, employee)
    return lead


def convert(lead_id: str, payment_details: dict = None, outbox: notifications.Outbox = None) -> dict:
    """
    Turn an accepted lead into a customer account with its first order.

    An existing account with the lead's email is reused; otherwise a new
    customer is created with a temporary password and an empty wallet.
    Returns {'account', 'orderId', 'temporaryPassword'} (the password only
    for a new account).
    """
    outbox = outbox if outbox is not None else notifications.Outbox()
    payment_details = dict(payment_details or {})
    lead = get_lead(lead_id)
    _require_status(lead, LEAD_ACCEPTED)

    service = catalog.get_service(lead["serviceId"])
    package = catalog.get_package(service, payment_details.get("packageId"))
    employee_id = lead.get("assignedToEmployee")
    employee = accounts.find_account(employee_id) if employee_id else None

    temporary_password = None
    customer = accounts.find_account_by_email(lead["email"])
    if customer:
        if customer["role"] != ROLE_CUSTOMER:
            raise ValidationError(f"{lead['email']} belongs to a {customer['role']} account")
        logger.info("Lead %s: reusing existing account %s", lead_id, customer["_id"])
    else:
        temporary_password = generate_password(TEMP_PASSWORD_LENGTH)
        customer = accounts.create_account(
            ROLE_CUSTOMER, lead["name"], lead["email"], temporary_password,
            mobile=lead.get("mobile"), username=generate_username(lead["email"]),
        )
        accounts.create_wallet(customer)

    stored_payment = lead.get("paymentDetails") or {}
    if not payment_details.get("amount") and stored_payment.get("amount"):
        payment = {**stored_payment, **{k: v for k, v in payment_details.items() if v}}
        payment["reference"] = payment.get("reference") or f"LEAD-{lead_id}"
    else:
        payment = payment_details
        if payment.get("amount"):
            payment["reference"] = payment.get("reference") or f"CNV-{lead_id}"

    now = utcnow()
    order = build_order(service, package, payment, employee_id=employee["_id"] if employee else None,
                        purchased_at=now)
    accounts.add_order(customer, order)
    if payment.get("amount"):
        record_payment(customer, payment["reference"], payment["amount"], payment.get("method") or "cash")
    snapshot = build_customer_snapshot(customer) if employee else None
    accounts.save_account(customer)

    if employee:
        upsert_mirror(employee, snapshot)
        accounts.save_account(employee)

    lead["status"] = LEAD_CONVERTED
    lead["convertedToOrderId"] = order["orderId"]
    lead["convertedToCustomerId"] = customer["_id"]
    lead["convertedAt"] = now.isoformat()
    save_lead(lead)

    if temporary_password:
        notifications.customer_welcome(outbox, customer, temporary_password, order, service)
    else:
        notifications.order_confirmed(outbox, customer, order, service)
    if employee:
        notifications.customer_assigned(outbox, customer, employee, order["orderId"])

    logger.info("Lead %s converted to order %s for %s", lead_id, order["orderId"], customer["_id"])
    return {"account": customer, "orderId": order["orderId"], "temporaryPassword": temporary_password}


def list_leads(status: str = None) -> list:
    if status:
        if status not in LEAD_STATUSES:
            raise ValidationError(f"Invalid lead status '{status}'")
        return find_documents("leads", "status = ?", (status,), order_by="created_at DESC")
    return find_documents("leads", order_by="created_at DESC")


def employee_leads(employee_id: str) -> list:
    return find_documents("leads", "assigned_to = ?", (employee_id,), order_by="created_at DESC")
