"""
Outgoing email notifications.

State-changing operations never send mail themselves. They queue messages on
an Outbox, and the caller dispatches the outbox once the write has been
committed (the API layer hands it to a FastAPI background task). Delivery
goes through a transactional-mail HTTP API; any failure is logged and
swallowed so it can never undo or block a lifecycle transition.
"""
import html as html_lib
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from consultdesk.config import (
    MAIL_API_URL, MAIL_API_TOKEN, MAIL_FROM, MAIL_FROM_NAME, MAIL_TIMEOUT,
    ADMIN_EMAIL, FRONTEND_URL,
)

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    to: str
    subject: str
    text: str
    html: Optional[str] = None


def send_email(to: str, subject: str, text: str, html: str = None) -> bool:
    """
    Deliver one message through the mail API.
    Returns True on success; never raises.
    """
    if not to:
        logger.warning("Skipping email '%s': no recipient", subject)
        return False
    if not MAIL_API_URL:
        logger.info("Mail API not configured; would send '%s' to %s", subject, to)
        return False

    payload = {
        "from": {"address": MAIL_FROM, "name": MAIL_FROM_NAME},
        "to": [{"email_address": {"address": to}}],
        "subject": subject,
        "textbody": text,
        "htmlbody": html or _text_to_html(text),
    }
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "Authorization": MAIL_API_TOKEN,
    }
    try:
        response = requests.post(MAIL_API_URL, json=payload, headers=headers, timeout=MAIL_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error("Failed to send email '%s' to %s: %s", subject, to, e)
        return False

    logger.info("Email '%s' sent to %s", subject, to)
    return True


def _text_to_html(text: str) -> str:
    paragraphs = [html_lib.escape(p).replace("\n", "<br>") for p in (text or "").split("\n\n")]
    return "".join(f"<p>{p}</p>" for p in paragraphs)


class Outbox:
    """Messages queued by an operation, delivered after it commits."""

    def __init__(self, transport: Callable = None):
        self.messages = []
        self._transport = transport

    def queue(self, to: str, subject: str, text: str, html: str = None):
        self.messages.append(EmailMessage(to, subject, text, html))

    def __len__(self):
        return len(self.messages)

    def dispatch(self) -> int:
        """Send every queued message. Returns how many were delivered."""
        transport = self._transport or send_email
        delivered = 0
        pending, self.messages = self.messages, []
        for message in pending:
            try:
                if transport(message.to, message.subject, message.text, message.html):
                    delivered += 1
            except Exception:
                logger.exception("Notification transport failed for '%s' to %s", message.subject, message.to)
        return delivered


# ============================================================
# Message builders
# ============================================================

def customer_assigned(outbox: Outbox, customer: dict, employee: dict, order_id: str = None):
    order_ref = f" (order #{order_id})" if order_id else ""
    outbox.queue(
        customer.get("email"),
        "Employee Assigned to Your Order",
        f"Hello {customer.get('name')},\n\n"
        f"{employee.get('name')} has been assigned to assist you with your service{order_ref}.\n\n"
        f"Employee Name: {employee.get('name')}\nEmployee Email: {employee.get('email')}",
    )
    outbox.queue(
        employee.get("email"),
        "New Customer Assigned",
        f"Hello {employee.get('name')},\n\n"
        f"A customer has been assigned to you{order_ref}.\n\n"
        f"Customer Name: {customer.get('name')}\nCustomer Email: {customer.get('email')}",
    )


def lead_received(outbox: Outbox, lead: dict, service: dict):
    if ADMIN_EMAIL:
        outbox.queue(
            ADMIN_EMAIL,
            "New Service Inquiry Lead",
            f"Name: {lead['name']}\nEmail: {lead['email']}\nMobile: {lead.get('mobile')}\n"
            f"Service: {service.get('name')}\nMessage: {lead.get('message') or 'N/A'}\n\n"
            "Please check the admin dashboard to process this lead.",
        )
    outbox.queue(
        lead["email"],
        "Thank You for Your Inquiry",
        f"Dear {lead['name']},\n\nThank you for your interest in our {service.get('name')} service. "
        "Our team will contact you shortly.",
    )


def lead_assigned(outbox: Outbox, lead: dict, employee: dict):
    outbox.queue(
        employee.get("email"),
        f"New Lead Assigned: {lead['name']}",
        f"Dear {employee.get('name')},\n\nYou've been assigned a new lead.\n\n"
        f"Name: {lead['name']}\nEmail: {lead['email']}\nPhone: {lead.get('mobile') or 'Not provided'}",
    )


def lead_sent_back(outbox: Outbox, lead: dict, employee: dict):
    outbox.queue(
        employee.get("email"),
        "Lead Requires Review",
        f"Dear {employee.get('name')},\n\nLead {lead['_id']} ({lead['name']}) has been sent back for review.\n\n"
        f"Note: {lead.get('adminNote')}",
    )


def customer_welcome(outbox: Outbox, customer: dict, temporary_password: str, order: dict, service: dict):
    outbox.queue(
        customer["email"],
        "Welcome - Your Account & Order Details",
        f"Welcome {customer['name']}!\n\nYour account has been created.\n\n"
        f"Email: {customer['email']}\nPassword: {temporary_password}\n\n"
        f"Log in at {FRONTEND_URL}/customers/login and change your password.\n\n"
        f"Order ID: {order['orderId']}\nService: {service.get('name')}\nDue Date: {order.get('dueDate', '')[:10]}",
    )


def order_confirmed(outbox: Outbox, customer: dict, order: dict, service: dict):
    outbox.queue(
        customer["email"],
        "New Order Confirmation",
        f"Hello {customer['name']},\n\nYour order has been confirmed.\n\n"
        f"Order ID: {order['orderId']}\nService: {service.get('name')}\nDue Date: {order.get('dueDate', '')[:10]}",
    )


def l1_review_requested(outbox: Outbox, supervisor: dict, employee: dict, order_id: str):
    outbox.queue(
        supervisor.get("email"),
        "New Order Review Request",
        f"Hello {supervisor.get('name')},\n\nOrder #{order_id} from {employee.get('name')} requires your review.\n\n"
        f"{FRONTEND_URL}/employee/l1/review/{order_id}",
    )


def l1_review_completed(outbox: Outbox, employee: dict, order_id: str, decision: str, note: str = None):
    text = f"Hello {employee.get('name')},\n\nYour order #{order_id} was {decision} by your L1 reviewer."
    if note:
        text += f"\n\nReviewer note: {note}"
    outbox.queue(employee.get("email"), f"Order Review {decision.capitalize()}", text)


def manager_assigned(outbox: Outbox, manager: dict, employee: dict):
    outbox.queue(
        manager.get("email"),
        "New Employee Assigned",
        f"Hello {manager.get('name')},\n\n{employee.get('name')} ({employee.get('email')}) now reports to you.",
    )
    outbox.queue(
        employee.get("email"),
        "Your New Manager",
        f"Hello {employee.get('name')},\n\nYour manager is now {manager.get('name')} ({manager.get('email')}).",
    )


def account_created(outbox: Outbox, account: dict, password: str):
    outbox.queue(
        account["email"],
        "Welcome to the Team",
        f"Hello {account['name']},\n\nYour {account['role']} account has been created.\n\n"
        f"Username: {account.get('username')}\nPassword: {password}\n\n"
        "Please change your password after your first login.",
    )
