"""
Order lifecycle: status enum, transition table and the operations that move
an order through it (document upload, L1 review escalation, status override,
queries, feedback, delay reason).

Orders are embedded in the customer document's "services" list and are
addressed by orderId through the order index.
"""
import logging
from enum import Enum

from consultdesk import accounts, catalog, notifications
from consultdesk.accounts import find_order
from consultdesk.assignment import detach_stale_mirror, resync_customer_mirrors
from consultdesk.database import find_customer_id_for_order, find_order_entries
from consultdesk.due_dates import compute_due_date, resolve_processing_days, utcnow
from consultdesk.errors import (
    Forbidden, InvalidStatus, InvalidTransition, NotFound, OrderClosed, OrderNotFound,
    ValidationError,
)

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    IN_PROCESS = "In Process"
    PENDING_L1_REVIEW = "pending-l1-review"
    REVISION = "in-process"
    COMPLETED = "completed"
    CANCELLED = "Cancelled"

    def __str__(self):
        return self.value


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

ALLOWED_TRANSITIONS = {
    OrderStatus.IN_PROCESS: {
        OrderStatus.PENDING_L1_REVIEW, OrderStatus.REVISION,
        OrderStatus.COMPLETED, OrderStatus.CANCELLED,
    },
    OrderStatus.REVISION: {
        OrderStatus.PENDING_L1_REVIEW, OrderStatus.IN_PROCESS,
        OrderStatus.COMPLETED, OrderStatus.CANCELLED,
    },
    OrderStatus.PENDING_L1_REVIEW: {
        OrderStatus.COMPLETED, OrderStatus.REVISION, OrderStatus.CANCELLED,
    },
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

# Spellings seen in stored data and client payloads. The exact value
# "in-process" is the revision state; every other spelling of "in process"
# is the initial state.
STATUS_ALIASES = {
    "in process": OrderStatus.IN_PROCESS,
    "inprocess": OrderStatus.IN_PROCESS,
    "pending l1 review": OrderStatus.PENDING_L1_REVIEW,
    "pending review": OrderStatus.PENDING_L1_REVIEW,
    "rejected": OrderStatus.REVISION,
    "revision": OrderStatus.REVISION,
    "revision requested": OrderStatus.REVISION,
    "completed": OrderStatus.COMPLETED,
    "complete": OrderStatus.COMPLETED,
    "cancelled": OrderStatus.CANCELLED,
    "canceled": OrderStatus.CANCELLED,
}

REVIEW_DECISIONS = ("approved", "rejected")


def normalize_status(value) -> OrderStatus:
    """Map a stored or submitted status onto OrderStatus, or raise InvalidStatus."""
    if isinstance(value, OrderStatus):
        return value
    if value is None:
        raise InvalidStatus("Status is required")
    raw = str(value).strip()
    for status in OrderStatus:
        if raw == status.value:
            return status
    key = " ".join(raw.lower().replace("_", " ").replace("-", " ").split())
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    allowed = ", ".join(s.value for s in OrderStatus)
    raise InvalidStatus(f"Invalid status '{value}'. Allowed: {allowed}")


def is_terminal(value) -> bool:
    try:
        return normalize_status(value) in TERMINAL_STATUSES
    except InvalidStatus:
        return False


def validate_transition(current, target) -> OrderStatus:
    """Check target is reachable from current; returns the normalized target."""
    current = normalize_status(current)
    target = normalize_status(target)
    if current in TERMINAL_STATUSES:
        raise OrderClosed(f"Order is {current.value} and can no longer change")
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(current=current.value, required=[s.value for s in ALLOWED_TRANSITIONS[current]])
    return target


# ============================================================
# Lookup helpers
# ============================================================

def load_order(order_id: str):
    """Return (customer, order) for an order id."""
    if not order_id:
        raise ValidationError("Order ID is required")
    customer_id = find_customer_id_for_order(order_id)
    if not customer_id:
        raise OrderNotFound(f"Order {order_id} not found")
    customer = accounts.get_account(customer_id, role="customer")
    return customer, find_order(customer, order_id=order_id)


def _ensure_open(order: dict):
    if is_terminal(order.get("status")):
        raise OrderClosed(f"Order {order.get('orderId')} is {order.get('status')}")


def _require_assigned(order: dict, actor: dict = None):
    """Employees may only act on their own orders; managers and admins on any."""
    if actor and actor.get("role") == "employee" and order.get("employeeId") != actor.get("_id"):
        raise Forbidden(f"Order {order.get('orderId')} is not assigned to you")


def _commit(customer: dict):
    accounts.save_account(customer)
    resync_customer_mirrors(customer)


# ============================================================
# Lifecycle operations
# ============================================================

def upload_documents(order_id: str, files: list, now=None, customer_id: str = None) -> dict:
    """
    Record uploaded document metadata on an order and restart its clock:
    dueDate = upload time + processing days.
    """
    if not files:
        raise ValidationError("No files uploaded")
    customer, order = load_order(order_id)
    if customer_id and customer["_id"] != customer_id:
        raise Forbidden(f"Order {order_id} does not belong to you")
    _ensure_open(order)

    uploaded_at = (now or utcnow()).isoformat()
    records = []
    for f in files:
        if not f.get("filename") or not f.get("path"):
            raise ValidationError("Each document needs a filename and path")
        records.append({
            "filename": f["filename"],
            "originalName": f.get("originalName") or f["filename"],
            "path": f["path"],
            "mimetype": f.get("mimetype") or "application/octet-stream",
            "size": int(f.get("size") or 0),
            "uploadedAt": uploaded_at,
        })

    service = catalog.find_service(order.get("serviceId"))
    days = resolve_processing_days(service, order)
    order.setdefault("documents", []).extend(records)
    order["dueDate"] = compute_due_date(uploaded_at, days).isoformat()
    order["processingDays"] = days
    _commit(customer)

    logger.info("Order %s: %d document(s) uploaded, due %s", order_id, len(records), order["dueDate"])
    return {"documents": records, "dueDate": order["dueDate"], "order": order}


def send_for_l1_review(order_id: str, employee_id: str, outbox: notifications.Outbox = None) -> dict:
    """Escalate an order to the acting employee's L1 supervisor."""
    outbox = outbox if outbox is not None else notifications.Outbox()
    customer, order = load_order(order_id)
    current = normalize_status(order.get("status"))
    if current in TERMINAL_STATUSES:
        raise OrderClosed(f"Order {order_id} is {current.value}")
    if current == OrderStatus.PENDING_L1_REVIEW:
        raise InvalidTransition(f"Order {order_id} is already pending L1 review",
                                current=current.value, required="not pending-l1-review")

    employee = accounts.get_account(employee_id)
    if employee["role"] not in ("employee", "manager"):
        raise Forbidden(f"{employee_id} is not an employee")
    _require_assigned(order, employee)
    supervisor_id = employee.get("L1EmpCode")
    if not supervisor_id:
        raise ValidationError(f"Employee {employee_id} has no L1 supervisor configured")

    previous_employee = order.get("employeeId")
    order["status"] = OrderStatus.PENDING_L1_REVIEW.value
    order["sentForReviewAt"] = utcnow().isoformat()
    order["l1ReviewerId"] = supervisor_id
    order["employeeId"] = employee_id
    _commit(customer)
    if previous_employee and previous_employee != employee_id:
        detach_stale_mirror(customer, previous_employee)

    supervisor = accounts.find_account(supervisor_id)
    if supervisor:
        notifications.l1_review_requested(outbox, supervisor, employee, order_id)
    else:
        logger.warning("L1 supervisor %s of %s not found; review request not emailed", supervisor_id, employee_id)

    return order


def complete_l1_review(order_id: str, decision: str, l1_employee_id: str, note: str = None,
                       outbox: notifications.Outbox = None) -> dict:
    """Approve (-> completed) or reject (-> in-process) an order pending L1 review."""
    outbox = outbox if outbox is not None else notifications.Outbox()
    decision = (decision or "").strip().lower()
    if decision not in REVIEW_DECISIONS:
        raise ValidationError(f"Decision must be one of: {', '.join(REVIEW_DECISIONS)}")

    customer, order = load_order(order_id)
    current = normalize_status(order.get("status"))
    if current != OrderStatus.PENDING_L1_REVIEW:
        raise InvalidTransition(current=current.value, required=OrderStatus.PENDING_L1_REVIEW.value)

    employee = accounts.find_account(order.get("employeeId"))
    if not employee:
        raise NotFound(f"Employee {order.get('employeeId')} on order {order_id} not found")
    if not l1_employee_id or employee.get("L1EmpCode") != l1_employee_id:
        raise Forbidden(f"{l1_employee_id} is not the L1 reviewer for order {order_id}")

    now = utcnow().isoformat()
    order["reviewedAt"] = now
    order["reviewedBy"] = l1_employee_id
    if decision == "approved":
        order["status"] = OrderStatus.COMPLETED.value
        order["completedAt"] = now
    else:
        order["status"] = OrderStatus.REVISION.value
        order["reviewNote"] = note or "Revision requested by L1 reviewer"
    _commit(customer)

    notifications.l1_review_completed(outbox, employee, order_id, decision, note)
    return order


def update_status(order_id: str, new_status, actor: dict = None) -> dict:
    """Direct status change by an admin or the assigned employee."""
    target = normalize_status(new_status)
    customer, order = load_order(order_id)

    _require_assigned(order, actor)

    target = validate_transition(order.get("status"), target)
    order["status"] = target.value
    if target == OrderStatus.COMPLETED:
        order["completedAt"] = utcnow().isoformat()
    if target == OrderStatus.CANCELLED:
        order["cancelledAt"] = utcnow().isoformat()
    _commit(customer)
    logger.info("Order %s status -> %s", order_id, target.value)
    return order


def set_delay_reason(order_id: str, reason: str, actor: dict = None) -> dict:
    if not reason or not reason.strip():
        raise ValidationError("Delay reason is required")
    customer, order = load_order(order_id)
    _require_assigned(order, actor)
    _ensure_open(order)
    order["delayReason"] = reason.strip()
    _commit(customer)
    return order


def raise_query(order_id: str, query: str, customer_id: str = None, attachments: list = None) -> dict:
    if not query or not query.strip():
        raise ValidationError("Query text is required")
    customer, order = load_order(order_id)
    if customer_id and customer["_id"] != customer_id:
        raise Forbidden(f"Order {order_id} does not belong to you")
    entry = {
        "query": query.strip(),
        "status": "pending",
        "replies": [],
        "attachments": attachments or [],
        "createdAt": utcnow().isoformat(),
    }
    order.setdefault("queries", []).append(entry)
    _commit(customer)
    return entry


def reply_to_query(order_id: str, query_index: int, employee_id: str, response: str,
                   resolve: bool = False) -> dict:
    if not response or not response.strip():
        raise ValidationError("Response is required")
    customer, order = load_order(order_id)
    if order.get("employeeId") != employee_id:
        raise Forbidden(f"Order {order_id} is not assigned to you")
    queries = order.get("queries") or []
    if query_index < 0 or query_index >= len(queries):
        raise NotFound(f"Query {query_index} not found on order {order_id}")
    query = queries[query_index]
    query.setdefault("replies", []).append({
        "employeeId": employee_id,
        "response": response.strip(),
        "createdAt": utcnow().isoformat(),
    })
    query["status"] = "resolved" if resolve else "responded"
    _commit(customer)
    return query


def submit_feedback(order_id: str, feedback: str, rating: int, customer_id: str = None) -> dict:
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationError("Rating must be a number between 1 and 5")
    if rating < 1 or rating > 5:
        raise ValidationError("Rating must be a number between 1 and 5")
    customer, order = load_order(order_id)
    if customer_id and customer["_id"] != customer_id:
        raise Forbidden(f"Order {order_id} does not belong to you")
    entry = {"feedback": (feedback or "").strip(), "rating": rating, "createdAt": utcnow().isoformat()}
    order.setdefault("feedback", []).append(entry)
    _commit(customer)
    return entry


def pending_reviews(l1_employee_id: str) -> list:
    """Orders waiting on this reviewer, with their customer id."""
    pending = []
    for entry in find_order_entries():
        if entry["status"] != OrderStatus.PENDING_L1_REVIEW.value:
            continue
        customer = accounts.find_account(entry["customer_id"])
        if not customer:
            continue
        for order in customer.get("services") or []:
            if order.get("orderId") == entry["order_id"] and order.get("l1ReviewerId") == l1_employee_id:
                pending.append({"customerId": customer["_id"], "customerName": customer.get("name"), **order})
    return pending
