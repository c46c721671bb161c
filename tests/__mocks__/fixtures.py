"""
Shared test fixtures -- document builders and store helpers for unit and
integration tests.
"""
from datetime import datetime, timedelta, timezone


NOW = datetime(2024, 4, 1, 10, 0, tzinfo=timezone.utc)


# ── Plain documents (no database) ────────────────────────────────────

def make_package(_id="PKGBASIC", name="Basic", processing_days=7, sale_price=999, actual_price=1499):
    return {
        "_id": _id,
        "name": name,
        "description": None,
        "actualPrice": actual_price,
        "salePrice": sale_price,
        "features": [],
        "processingDays": processing_days,
    }


def make_service(_id="SER001", name="ITR Filing", packages=None, gst_rate=18, is_active=True):
    return {
        "_id": _id,
        "category": "Income Tax",
        "name": name,
        "hsncode": "998231",
        "currency": "INR",
        "gstRate": gst_rate,
        "isActive": is_active,
        "packages": [make_package()] if packages is None else packages,
        "requiredDocuments": [],
    }


def make_order(order_id="ORD1", service_id="SER001", package_id="PKGBASIC", status="In Process",
               employee_id=None, purchased_at=NOW, processing_days=7):
    return {
        "orderId": order_id,
        "serviceId": service_id,
        "packageId": package_id,
        "activated": True,
        "purchasedAt": purchased_at.isoformat(),
        "employeeId": employee_id,
        "status": status,
        "dueDate": (purchased_at + timedelta(days=processing_days)).isoformat(),
        "processingDays": processing_days,
        "documents": [],
        "queries": [],
        "feedback": [],
    }


def make_customer(_id="CUS001", name="Asha Rao", email="asha@example.com", orders=None, **fields):
    customer = {
        "_id": _id,
        "name": name,
        "email": email,
        "role": "customer",
        "isActive": True,
        "isProfileComplete": False,
        "passwordHash": "not-a-real-hash",
        "services": orders or [],
        "paymentHistory": [],
    }
    customer.update(fields)
    return customer


def make_employee(_id="EMP001", name="Ravi Kumar", email="ravi@example.com", services_handled=None,
                  l1_emp_code=None, assigned_customers=None):
    return {
        "_id": _id,
        "name": name,
        "email": email,
        "role": "employee",
        "isActive": True,
        "servicesHandled": services_handled or ["SER001"],
        "L1EmpCode": l1_emp_code,
        "assignedCustomers": assigned_customers or [],
    }


def service_payload(name="ITR Filing", processing_days=7, packages=None):
    """Body accepted by catalog.create_service."""
    return {
        "category": "Income Tax",
        "name": name,
        "hsncode": "998231",
        "gstRate": 18,
        "packages": packages if packages is not None else [
            {"name": "Basic", "actualPrice": 1499, "salePrice": 999, "processingDays": processing_days},
        ],
    }


# ── Stored records (need the db fixture) ─────────────────────────────

def create_service(name="ITR Filing", processing_days=7, packages=None):
    from consultdesk import catalog
    return catalog.create_service(service_payload(name, processing_days, packages))


def create_employee(name="Ravi Kumar", email=None, services_handled=None, l1_emp_code=None,
                    password="Employee@123"):
    """Employee without the onboarding backfill."""
    from consultdesk import accounts
    email = email or f"{name.lower().replace(' ', '.')}@example.com"
    return accounts.create_account(
        "employee", name, email, password,
        servicesHandled=services_handled or [], L1EmpCode=l1_emp_code,
    )


def create_customer(name="Asha Rao", email=None, password="Customer@123", **fields):
    from consultdesk import accounts
    email = email or f"{name.lower().replace(' ', '.')}@example.com"
    return accounts.create_account("customer", name, email, password, **fields)


def add_order(customer, service, status="In Process", employee_id=None, purchased_at=NOW,
              package=None):
    """Attach an order built from the service's terms and save the customer."""
    from consultdesk import accounts
    from consultdesk.payments import build_order

    package = package or (service["packages"][0] if service.get("packages") else None)
    order = build_order(service, package, {"amount": 1180}, employee_id=employee_id,
                        purchased_at=purchased_at)
    order["status"] = status
    accounts.add_order(customer, order)
    accounts.save_account(customer)
    return order
