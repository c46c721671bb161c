"""
Account documents for admins, managers, employees and customers.
"""
import logging

from consultdesk import notifications
from consultdesk.auth import generate_password, hash_password
from consultdesk.config import (
    ROLE_ID_PREFIXES, CUSTOMER_PROFILE_FIELDS, DEFAULT_PROCESSING_DAYS,
)
from consultdesk.database import (
    get_db, insert_document, update_document, load_document, find_documents,
    index_customer_orders,
)
from consultdesk.due_dates import utcnow
from consultdesk.errors import NotFound, OrderNotFound, ValidationError, InvalidTransition
from consultdesk.ids import generate_id, generate_referral_code
from consultdesk.roles import ALL_ROLES, ROLE_CUSTOMER, ROLE_EMPLOYEE, ROLE_MANAGER, ROLE_ADMIN

logger = logging.getLogger(__name__)

# Fields callers may never set through create/update payloads
PROTECTED_FIELDS = {"_id", "role", "email", "passwordHash", "version", "services",
                    "assignedCustomers", "paymentHistory", "isActive", "activeFrom", "activeTill"}


def _columns(account: dict) -> dict:
    return {
        "role": account["role"],
        "email": account["email"],
        "is_active": 1 if account.get("isActive") else 0,
    }


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_account(account: dict) -> dict:
    """Account as returned over the API (no password hash)."""
    return {k: v for k, v in account.items() if k != "passwordHash"}


def find_account(account_id: str, role: str = None):
    """Account by id (optionally constrained to a role), or None."""
    account = load_document("accounts", account_id)
    if account and role and account.get("role") != role:
        return None
    return account


def get_account(account_id: str, role: str = None) -> dict:
    account = find_account(account_id, role)
    if not account:
        label = (role or "account").capitalize()
        raise NotFound(f"{label} {account_id} not found")
    return account


def find_account_by_email(email: str):
    rows = find_documents("accounts", "email = ?", (normalize_email(email),))
    return rows[0] if rows else None


def list_accounts(role: str = None, active_only: bool = False) -> list:
    conditions, params = [], []
    if role:
        conditions.append("role = ?")
        params.append(role)
    if active_only:
        conditions.append("is_active = 1")
    return find_documents("accounts", " AND ".join(conditions), tuple(params))


def save_account(account: dict) -> dict:
    """Persist an account; customer orders are re-indexed in the same transaction."""
    with get_db() as conn:
        update_document("accounts", account, conn=conn, **_columns(account))
        if account.get("role") == ROLE_CUSTOMER:
            index_customer_orders(account, conn=conn)
    return account


def _apply_active_flag(account: dict, active: bool):
    now = utcnow().isoformat()
    account["isActive"] = bool(active)
    if active:
        account["activeFrom"] = now
        account["activeTill"] = None
    else:
        account["activeTill"] = now


def create_account(role: str, name: str, email: str, password: str = None,
                   is_active: bool = True, **fields) -> dict:
    """
    Create an account with a role-prefixed id and a bcrypt password hash.
    Returns the stored document; the plain password is never stored.
    """
    if role not in ALL_ROLES:
        raise ValidationError(f"Invalid role '{role}'")
    if not name or not email:
        raise ValidationError("Name and email are required")
    email = normalize_email(email)
    if find_account_by_email(email):
        raise ValidationError("User already exists with this email")

    account = {k: v for k, v in fields.items() if k not in PROTECTED_FIELDS}
    account.update({
        "_id": generate_id(ROLE_ID_PREFIXES[role]),
        "name": name.strip(),
        "email": email,
        "role": role,
        "passwordHash": hash_password(password or generate_password()),
        "isProfileComplete": bool(fields.get("isProfileComplete", False)),
        "referralCode": fields.get("referralCode") or generate_referral_code(),
        "createdAt": utcnow().isoformat(),
    })
    account.setdefault("username", email.split("@")[0])
    _apply_active_flag(account, is_active)

    if role == ROLE_CUSTOMER:
        account["services"] = []
        account["paymentHistory"] = []
        account.setdefault("customerCreateDate", account["createdAt"])
    if role in (ROLE_EMPLOYEE, ROLE_MANAGER):
        account["assignedCustomers"] = []
        account["servicesHandled"] = list(fields.get("servicesHandled") or [])
    if role == ROLE_MANAGER:
        account["assignedEmployees"] = []

    with get_db() as conn:
        insert_document("accounts", account, conn=conn, **_columns(account))
        if role == ROLE_CUSTOMER:
            index_customer_orders(account, conn=conn)
    logger.info("Created %s account %s (%s)", role, account["_id"], email)
    return account


def create_wallet(account: dict) -> dict:
    """Empty wallet companion record for a customer."""
    wallet = {
        "_id": account["_id"],
        "userId": account["_id"],
        "referralCode": account.get("referralCode"),
        "balance": 0,
        "referralEarnings": 0,
        "transactions": [],
        "withdrawalRequests": [],
    }
    existing = load_document("wallets", account["_id"])
    if existing:
        return existing
    return insert_document("wallets", wallet)


def get_wallet(account_id: str):
    return load_document("wallets", account_id)


def create_employee(name: str, email: str, password: str, services_handled: list,
                    l1_emp_code: str = None, designation: str = None,
                    outbox: notifications.Outbox = None, **fields):
    """
    Onboard an employee and hand them every unassigned customer order for
    the services they handle. Returns (employee, assignment results).
    """
    from consultdesk.assignment import backfill_unassigned

    if not services_handled:
        raise ValidationError("At least one handled service is required")
    if not password:
        raise ValidationError("Password is required")
    l1_name = None
    if l1_emp_code:
        supervisor = get_account(l1_emp_code)
        l1_name = supervisor["name"]

    employee = create_account(
        ROLE_EMPLOYEE, name, email, password,
        servicesHandled=services_handled,
        L1EmpCode=l1_emp_code, L1Name=l1_name,
        designation=designation, **fields
    )
    if outbox is not None:
        notifications.account_created(outbox, employee, password)

    results = []
    for service_id in services_handled:
        results.extend(backfill_unassigned(service_id, employee["_id"], outbox=outbox))
    return employee, results


def create_manager(admin: dict, name: str, email: str, password: str,
                   outbox: notifications.Outbox = None, **fields) -> dict:
    """Managers report to the admin who creates them (both L1 and L2)."""
    if not admin or admin.get("role") != ROLE_ADMIN:
        raise ValidationError("Managers must be created by an admin")
    manager = create_account(
        ROLE_MANAGER, name, email, password,
        L1EmpCode=admin["_id"], L1Name=admin["name"],
        L2EmpCode=admin["_id"], L2Name=admin["name"],
        isProfileComplete=True, **fields
    )
    if outbox is not None:
        notifications.account_created(outbox, manager, password)
    return manager


def assign_employee_to_manager(manager_id: str, employee_id: str,
                               outbox: notifications.Outbox = None):
    manager = get_account(manager_id, role=ROLE_MANAGER)
    employee = get_account(employee_id, role=ROLE_EMPLOYEE)

    employee["L1EmpCode"] = manager["_id"]
    employee["L1Name"] = manager["name"]
    employee["assignedManagerId"] = manager["_id"]
    save_account(employee)

    if employee_id not in manager.setdefault("assignedEmployees", []):
        manager["assignedEmployees"].append(employee_id)
        save_account(manager)

    if outbox is not None:
        notifications.manager_assigned(outbox, manager, employee)
    return manager, employee


def promote_to_manager(employee_id: str) -> dict:
    employee = get_account(employee_id)
    if employee["role"] != ROLE_EMPLOYEE:
        raise InvalidTransition(f"Cannot promote: user is already a {employee['role']}, not an employee",
                                current=employee["role"], required=ROLE_EMPLOYEE)
    if not employee.get("isActive"):
        raise ValidationError("Cannot promote inactive employee. Please activate the employee first.")
    employee["role"] = ROLE_MANAGER
    employee.setdefault("assignedEmployees", [])
    return save_account(employee)


def set_active(account_id: str, active: bool) -> dict:
    """Toggle the active flag; activeFrom/activeTill only move on a real change."""
    account = get_account(account_id)
    if bool(account.get("isActive")) != bool(active):
        _apply_active_flag(account, active)
        save_account(account)
        if account["role"] == ROLE_CUSTOMER:
            from consultdesk.assignment import resync_customer_mirrors
            resync_customer_mirrors(account)
    return account


def update_customer_profile(customer_id: str, fields: dict) -> dict:
    """Edit customer profile fields and refresh every employee mirror of them."""
    from consultdesk.assignment import resync_customer_mirrors

    customer = get_account(customer_id, role=ROLE_CUSTOMER)
    allowed = set(CUSTOMER_PROFILE_FIELDS) | {"name", "lastname", "username"}
    allowed -= {"activeFrom", "activeTill", "customerCreateDate"}
    unknown = set(fields) - allowed
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    customer.update(fields)
    customer["isProfileComplete"] = all(customer.get(f) for f in ("name", "mobile", "pan", "address"))
    save_account(customer)
    resync_customer_mirrors(customer)
    return customer


def find_order(customer: dict, order_id: str = None, service_id: str = None) -> dict:
    """
    Locate an order on a customer by order id, or the first order for a
    service when only service_id is given.
    """
    for order in customer.get("services", []):
        if order_id and order.get("orderId") == order_id:
            return order
        if not order_id and service_id and order.get("serviceId") == service_id:
            return order
    ref = order_id or f"service {service_id}"
    raise OrderNotFound(f"Order for {ref} not found on customer {customer.get('_id')}")


def add_order(customer: dict, order: dict) -> dict:
    """Append a new order to a customer (in memory; caller saves)."""
    order.setdefault("activated", True)
    order.setdefault("employeeId", None)
    order.setdefault("documents", [])
    order.setdefault("queries", [])
    order.setdefault("feedback", [])
    order.setdefault("processingDays", DEFAULT_PROCESSING_DAYS)
    customer.setdefault("services", []).append(order)
    return order


def find_employees_for_service(service_id: str) -> list:
    """Active employees whose handled services include service_id."""
    return [
        e for e in list_accounts(role=ROLE_EMPLOYEE, active_only=True)
        if service_id in (e.get("servicesHandled") or [])
    ]
