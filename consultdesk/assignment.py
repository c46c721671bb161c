"""
Customer <-> employee assignment.

Setting an order's employeeId is always paired with an upsert of the full
customer snapshot into that employee's assignedCustomers list, so an
employee dashboard reads in a single lookup. The two documents are written
one after the other without a shared transaction: the customer first, then
the employee mirror. Because the mirror write is an upsert keyed on the
customer id, re-running a half-applied assignment only repairs the mirror.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from consultdesk import accounts, notifications
from consultdesk.config import CUSTOMER_PROFILE_FIELDS
from consultdesk.database import find_order_entries
from consultdesk.errors import LifecycleError, NotFound, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class AssignmentResult:
    """Outcome of binding one customer's order to an employee."""
    success: bool
    customer_id: Optional[str] = None
    employee_id: Optional[str] = None
    order_id: Optional[str] = None
    message: str = ""
    error: Optional[str] = None
    already_assigned: bool = False

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "customerId": self.customer_id,
            "employeeId": self.employee_id,
            "orderId": self.order_id,
            "message": self.message,
            "error": self.error,
            "alreadyAssigned": self.already_assigned,
        }


# ============================================================
# Snapshot / mirror
# ============================================================

def _snapshot_order(order: dict) -> dict:
    return {
        "orderId": order.get("orderId"),
        "serviceId": order.get("serviceId"),
        "packageId": order.get("packageId"),
        "packageName": order.get("packageName"),
        "activated": order.get("activated", True),
        "purchasedAt": order.get("purchasedAt"),
        "employeeId": order.get("employeeId"),
        "status": order.get("status"),
        "dueDate": order.get("dueDate"),
        "delayReason": order.get("delayReason"),
        "documents": [
            {
                "filename": doc.get("filename"),
                "originalName": doc.get("originalName"),
                "path": doc.get("path"),
                "mimetype": doc.get("mimetype"),
                "size": doc.get("size"),
                "uploadedAt": doc.get("uploadedAt"),
            }
            for doc in order.get("documents") or []
        ],
        "queries": [
            {
                "query": q.get("query"),
                "status": q.get("status"),
                "replies": [
                    {
                        "employeeId": r.get("employeeId"),
                        "response": r.get("response"),
                        "createdAt": r.get("createdAt"),
                    }
                    for r in q.get("replies") or []
                ],
                "attachments": [
                    {"filePath": a.get("filePath"), "originalName": a.get("originalName")}
                    for a in q.get("attachments") or []
                ],
                "createdAt": q.get("createdAt"),
            }
            for q in order.get("queries") or []
        ],
        "feedback": [
            {"feedback": fb.get("feedback"), "rating": fb.get("rating"), "createdAt": fb.get("createdAt")}
            for fb in order.get("feedback") or []
        ],
    }


def build_customer_snapshot(customer: dict) -> dict:
    """Denormalized copy of a customer stored inside an employee document."""
    snapshot = {
        "_id": customer["_id"],
        "name": customer.get("name"),
        "email": customer.get("email"),
        "role": customer.get("role"),
        "mobile": customer.get("mobile") or None,
        "username": customer.get("username") or None,
        "isActive": bool(customer.get("isActive")),
        "isProfileComplete": bool(customer.get("isProfileComplete")),
        "services": [_snapshot_order(o) for o in customer.get("services") or []],
        "paymentHistory": [
            {
                "paymentId": p.get("paymentId"),
                "amount": p.get("amount"),
                "date": p.get("date"),
                "status": p.get("status"),
                "paymentMethod": p.get("paymentMethod"),
            }
            for p in customer.get("paymentHistory") or []
        ],
    }
    for name in CUSTOMER_PROFILE_FIELDS:
        snapshot.setdefault(name, customer.get(name) or None)
    return snapshot


def upsert_mirror(employee: dict, snapshot: dict) -> bool:
    """
    Replace the employee's copy of this customer, or append it.
    Returns True when a new entry was added.
    """
    mirror = employee.setdefault("assignedCustomers", [])
    for i, entry in enumerate(mirror):
        if entry.get("_id") == snapshot["_id"]:
            mirror[i] = snapshot
            return False
    mirror.append(snapshot)
    return True


def _write_mirror(employee_id: str, customer: dict):
    employee = accounts.get_account(employee_id)
    upsert_mirror(employee, build_customer_snapshot(customer))
    accounts.save_account(employee)
    return employee


def resync_customer_mirrors(customer: dict) -> list:
    """
    Refresh the snapshot held by every employee referenced by the customer's
    orders. Failures are logged per employee and returned; the customer
    document is the source of truth and a later resync repairs the mirror.
    """
    failed = []
    employee_ids = []
    for order in customer.get("services") or []:
        eid = order.get("employeeId")
        if eid and eid not in employee_ids:
            employee_ids.append(eid)
    for eid in employee_ids:
        try:
            _write_mirror(eid, customer)
        except LifecycleError as e:
            logger.warning("Mirror resync of customer %s on %s failed: %s", customer["_id"], eid, e)
            failed.append(eid)
    return failed


def detach_stale_mirror(customer: dict, employee_id: str) -> bool:
    """Drop the customer from an employee's mirror once none of its orders point there."""
    if any(o.get("employeeId") == employee_id for o in customer.get("services") or []):
        return False
    employee = accounts.find_account(employee_id)
    if not employee:
        return False
    before = len(employee.get("assignedCustomers") or [])
    employee["assignedCustomers"] = [
        c for c in employee.get("assignedCustomers") or [] if c.get("_id") != customer["_id"]
    ]
    if len(employee["assignedCustomers"]) == before:
        return False
    try:
        accounts.save_account(employee)
    except LifecycleError as e:
        logger.warning("Could not detach customer %s from %s: %s", customer["_id"], employee_id, e)
        return False
    return True


# ============================================================
# Assignment operations
# ============================================================

def _assign_loaded(customer: dict, employee: dict, order: dict,
                   outbox: notifications.Outbox) -> AssignmentResult:
    previous = order.get("employeeId")
    already = previous == employee["_id"]

    # The snapshot is built before any write so a customer that cannot be
    # mirrored is never left pointing at the employee
    order["employeeId"] = employee["_id"]
    snapshot = build_customer_snapshot(customer)
    if not already:
        accounts.save_account(customer)

    upsert_mirror(employee, snapshot)
    accounts.save_account(employee)

    if previous and not already:
        detach_stale_mirror(customer, previous)

    if not already:
        notifications.customer_assigned(outbox, customer, employee, order.get("orderId"))

    logger.info("Order %s of %s assigned to %s", order.get("orderId"), customer["_id"], employee["_id"])
    return AssignmentResult(
        success=True,
        customer_id=customer["_id"],
        employee_id=employee["_id"],
        order_id=order.get("orderId"),
        message="Already assigned; mirror refreshed" if already else "Assigned successfully",
        already_assigned=already,
    )


def _load_employee(employee_id: str) -> dict:
    employee = accounts.find_account(employee_id)
    if not employee or employee.get("role") not in ("employee", "manager"):
        raise NotFound(f"Employee {employee_id} not found")
    return employee


def assign(customer_id: str, service_id: str, employee_id: str, order_id: str = None,
           outbox: notifications.Outbox = None) -> AssignmentResult:
    """
    Bind a customer's order to an employee and mirror the customer onto them.

    The order is the one with order_id when given, otherwise the first order
    for service_id. Raises NotFound / OrderNotFound.
    """
    from consultdesk import catalog

    outbox = outbox if outbox is not None else notifications.Outbox()
    if not customer_id or not employee_id or not (service_id or order_id):
        raise ValidationError("Customer, employee and service or order are required")
    customer = accounts.get_account(customer_id, role="customer")
    employee = _load_employee(employee_id)
    if service_id and not order_id:
        catalog.get_service(service_id)
    order = accounts.find_order(customer, order_id=order_id, service_id=service_id)
    return _assign_loaded(customer, employee, order, outbox)


def assign_order(order_id: str, employee_id: str, outbox: notifications.Outbox = None) -> AssignmentResult:
    """Assign by order id, resolving the customer through the order index."""
    from consultdesk.orders import load_order

    outbox = outbox if outbox is not None else notifications.Outbox()
    if not order_id or not employee_id:
        raise ValidationError("Order ID and Employee ID are required")
    customer, order = load_order(order_id)
    employee = _load_employee(employee_id)
    return _assign_loaded(customer, employee, order, outbox)


def select_employee(service_id: str):
    """
    Pick an active employee handling the service: fewest mirrored customers
    first, then lowest id.
    """
    candidates = accounts.find_employees_for_service(service_id)
    if not candidates:
        return None
    return min(candidates, key=lambda e: (len(e.get("assignedCustomers") or []), e["_id"]))


def auto_assign(customer_id: str, service_id: str, employee_id: str = None, order_id: str = None,
                outbox: notifications.Outbox = None) -> AssignmentResult:
    """Assign to the given employee, or to one selected for the service."""
    if employee_id:
        return assign(customer_id, service_id, employee_id, order_id=order_id, outbox=outbox)
    employee = select_employee(service_id)
    if not employee:
        logger.info("No employee available for %s; order of %s left unassigned", service_id, customer_id)
        return AssignmentResult(
            success=False, customer_id=customer_id, order_id=order_id,
            message="No employee available", error="no_employee",
        )
    return assign(customer_id, service_id, employee["_id"], order_id=order_id, outbox=outbox)


def backfill_unassigned(service_id: str, employee_id: str,
                        outbox: notifications.Outbox = None) -> list:
    """
    Assign every unassigned order for a service to one employee.
    One result per order; a failure on one never stops the rest.
    """
    outbox = outbox if outbox is not None else notifications.Outbox()
    employee = _load_employee(employee_id)

    results = []
    for entry in find_order_entries(service_id=service_id, unassigned=True):
        try:
            customer = accounts.get_account(entry["customer_id"], role="customer")
            order = accounts.find_order(customer, order_id=entry["order_id"])
            if order.get("serviceId") != service_id:
                raise ValidationError(f"Order {entry['order_id']} is malformed: service mismatch")
            # Re-read the employee so each write sees the previous mirror update
            employee = _load_employee(employee_id)
            results.append(_assign_loaded(customer, employee, order, outbox))
        except LifecycleError as e:
            logger.warning("Backfill of %s for %s failed: %s", entry["order_id"], service_id, e.message)
            results.append(AssignmentResult(
                success=False, customer_id=entry["customer_id"], employee_id=employee_id,
                order_id=entry["order_id"], message=e.message, error=e.code,
            ))
        except Exception as e:
            logger.exception("Backfill of %s for %s failed on a malformed record", entry["order_id"], service_id)
            results.append(AssignmentResult(
                success=False, customer_id=entry["customer_id"], employee_id=employee_id,
                order_id=entry["order_id"], message=f"Malformed order: {e}", error="malformed_order",
            ))

    logger.info("Backfill %s -> %s: %d assigned, %d failed", service_id, employee_id,
                sum(1 for r in results if r.success), sum(1 for r in results if not r.success))
    return results
