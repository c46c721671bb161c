"""
Order creation from successful payments.

The payment gateway itself is external; this module only consumes a
confirmed payment, records it on the customer, creates the order with its
due date and GST split, and binds an employee.
"""
import logging
from typing import Protocol, Optional

from consultdesk import accounts, catalog, notifications
from consultdesk.assignment import AssignmentResult, auto_assign
from consultdesk.due_dates import compute_due_date, resolve_processing_days, utcnow
from consultdesk.errors import LifecycleError, ValidationError
from consultdesk.ids import generate_order_id
from consultdesk.orders import OrderStatus

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    """External payment provider; only the lookup used here is part of the contract."""

    def fetch_order(self, reference: str) -> dict:
        """Return {'amount', 'status', 'method', ...} for a gateway reference."""


def split_gst(amount, gst_rate, is_interstate: bool = False, included: bool = True) -> dict:
    """
    Split tax for an amount. With included=True the amount already contains
    GST and the tax is backed out of it.
    """
    amount = float(amount or 0)
    rate = float(gst_rate or 0)
    if included:
        base = amount / (1 + rate / 100) if rate else amount
        tax = amount - base
    else:
        base = amount
        tax = amount * rate / 100
    if is_interstate:
        igst, cgst, sgst = tax, 0.0, 0.0
    else:
        igst, cgst, sgst = 0.0, tax / 2, tax / 2
    return {
        "baseAmount": round(base, 2),
        "igst": round(igst, 2),
        "cgst": round(cgst, 2),
        "sgst": round(sgst, 2),
        "gstRate": gst_rate,
        "gstIncluded": included,
    }


def build_order(service: dict, package: Optional[dict], payment: dict = None, employee_id: str = None,
                purchased_at=None) -> dict:
    """A new 'In Process' order with its due date derived from the package."""
    payment = payment or {}
    purchased_at = purchased_at or utcnow()
    order = {
        "orderId": generate_order_id(),
        "serviceId": service["_id"],
        "activated": True,
        "purchasedAt": purchased_at.isoformat(),
        "employeeId": employee_id,
        "status": OrderStatus.IN_PROCESS.value,
        "documents": [],
        "queries": [],
        "feedback": [],
    }
    if package:
        order["packageId"] = package.get("_id")
        order["packageName"] = package.get("name")
    days = resolve_processing_days(service, order)
    order["processingDays"] = days
    order["dueDate"] = compute_due_date(purchased_at, days).isoformat()

    price = payment.get("amount")
    if price in (None, "") and package:
        price = package.get("salePrice") or package.get("actualPrice")
    price = float(price or 0)
    is_interstate = bool(payment.get("isInterstate"))
    tax = split_gst(price, service.get("gstRate"), is_interstate)
    order.update({
        "price": price,
        "paymentMethod": payment.get("method") or "cash",
        "paymentReference": payment.get("reference") or "",
        "isInterstate": is_interstate,
        "gstRate": tax["gstRate"],
        "gstIncluded": tax["gstIncluded"],
        "igst": tax["igst"],
        "cgst": tax["cgst"],
        "sgst": tax["sgst"],
    })
    return order


def record_payment(customer: dict, payment_id: str, amount, method: str = None, status: str = "success"):
    """Append to the customer's payment history (in memory)."""
    customer.setdefault("paymentHistory", []).append({
        "paymentId": payment_id,
        "amount": float(amount or 0),
        "date": utcnow().isoformat(),
        "status": status,
        "paymentMethod": method or "online",
    })


def record_payment_success(customer_id: str, service_id: str, package_id: str = None, payment: dict = None,
                           outbox: notifications.Outbox = None) -> dict:
    """
    Turn a confirmed payment into an order and try to assign an employee.
    Returns {'orderId', 'order', 'assignment'}.
    """
    outbox = outbox if outbox is not None else notifications.Outbox()
    payment = payment or {}
    if not payment.get("reference"):
        raise ValidationError("Payment reference is required")

    customer = accounts.get_account(customer_id, role="customer")
    service = catalog.get_service(service_id)
    if not service.get("isActive", True):
        raise ValidationError(f"Service {service_id} is not active")
    package = catalog.get_package(service, package_id)

    for order in customer.get("services") or []:
        if order.get("paymentReference") == payment["reference"]:
            # Gateway callbacks can repeat; the first one already created the order
            return {"orderId": order["orderId"], "order": order, "assignment": None}

    order = build_order(service, package, payment)
    accounts.add_order(customer, order)
    record_payment(customer, payment["reference"], order["price"], payment.get("method"))
    accounts.save_account(customer)
    notifications.order_confirmed(outbox, customer, order, service)
    logger.info("Payment %s created order %s for %s", payment["reference"], order["orderId"], customer_id)

    # The order is already stored; an assignment failure is reported, not raised
    try:
        assignment = auto_assign(customer_id, service_id, order_id=order["orderId"], outbox=outbox)
    except LifecycleError as e:
        logger.warning("Order %s created but not assigned: %s", order["orderId"], e.message)
        assignment = AssignmentResult(
            success=False, customer_id=customer_id, order_id=order["orderId"],
            message=e.message, error=e.code,
        )
    if assignment.success:
        order["employeeId"] = assignment.employee_id
    return {"orderId": order["orderId"], "order": order, "assignment": assignment}
