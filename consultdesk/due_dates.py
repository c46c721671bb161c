"""
Due-date derivation and the catalog-edit recalculation sweep.

dueDate = base + processingDays + extensionDays, where the base is the
order's purchasedAt (or the time of the latest document upload). Only orders
outside the terminal statuses are ever recomputed.
"""
import logging
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Optional

from consultdesk.config import DEFAULT_PROCESSING_DAYS
from consultdesk.errors import LifecycleError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value) -> Optional[datetime]:
    """Parse a stored timestamp (ISO string or datetime) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_iso(value) -> Optional[str]:
    dt = parse_datetime(value)
    return dt.isoformat() if dt else None


def compute_due_date(base_date, processing_days: int, extension_days: int = 0) -> datetime:
    """base_date + processing_days + extension_days."""
    base = parse_datetime(base_date)
    if base is None:
        raise ValueError("base_date is required")
    return base + timedelta(days=int(processing_days) + int(extension_days or 0))


def _positive_days(value) -> Optional[int]:
    try:
        days = int(value)
    except (TypeError, ValueError):
        return None
    return days if days > 0 else None


def find_package(service: dict, package_id: str = None) -> Optional[dict]:
    """Package by id, else the service's first package, else None."""
    packages = (service or {}).get("packages") or []
    if package_id:
        for package in packages:
            if package.get("_id") == package_id:
                return package
    return packages[0] if packages else None


def resolve_processing_days(service: dict = None, order: dict = None) -> int:
    """
    Processing days for an order: its package on the service, the service's
    first package, the order's cached value, then the default of 7.
    """
    order = order or {}
    if service:
        package = find_package(service, order.get("packageId"))
        days = _positive_days(package.get("processingDays")) if package else None
        if days:
            return days
        days = _positive_days(service.get("processingDays"))
        if days:
            return days
    days = _positive_days(order.get("processingDays"))
    if days:
        return days
    return DEFAULT_PROCESSING_DAYS


def days_delayed(order: dict, now: datetime = None) -> int:
    """Whole days an open order is past its due date (0 if on time or closed)."""
    from consultdesk.orders import is_terminal

    due = parse_datetime(order.get("dueDate"))
    if due is None or is_terminal(order.get("status")):
        return 0
    now = parse_datetime(now) or utcnow()
    delta = (now - due).total_seconds()
    if delta <= 0:
        return 0
    return math.ceil(delta / 86400)


@dataclass
class SweepResult:
    """Outcome of recomputing one order during a catalog sweep."""
    order_id: str
    customer_id: str
    success: bool
    skipped: bool = False
    due_date: Optional[str] = None
    message: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def _order_on_packages(service: dict, order: dict, package_ids: set) -> bool:
    """
    Whether an order is on one of package_ids, judged by its stored packageId.
    An order whose package is missing from the service runs on the first
    package, so it also matches when that first package is listed.
    """
    package_id = order.get("packageId")
    if package_id in package_ids:
        return True
    current = {p.get("_id") for p in service.get("packages") or []}
    if package_id in current:
        return False
    first = find_package(service)
    return bool(first) and first.get("_id") in package_ids


def recalculate_due_dates(service: dict, extension_days: int = 0, package_ids=None) -> list:
    """
    Recompute dueDate for every open order of a service from its original
    purchasedAt, the current package processing days and extension_days.

    package_ids limits the sweep to orders whose stored packageId is one of
    the edited (or removed) packages; an order whose package is gone from the
    service also follows an edit of the first package, which it falls back
    to. Orders on untouched packages keep their due date. Completed and
    cancelled orders are reported as skipped. Each customer is written independently; a failure on one
    customer is recorded and the sweep moves on.
    """
    from consultdesk import accounts
    from consultdesk.assignment import resync_customer_mirrors
    from consultdesk.database import find_order_entries
    from consultdesk.orders import is_terminal

    service_id = service["_id"]
    package_ids = set(package_ids) if package_ids else None
    extension_days = int(extension_days or 0)

    entries_by_customer = {}
    for entry in find_order_entries(service_id=service_id):
        entries_by_customer.setdefault(entry["customer_id"], []).append(entry["order_id"])

    results = []
    for customer_id, order_ids in entries_by_customer.items():
        try:
            customer = accounts.get_account(customer_id, role="customer")
        except LifecycleError as e:
            logger.warning("Due-date sweep could not load customer %s: %s", customer_id, e)
            results.extend(SweepResult(oid, customer_id, False, message=e.message) for oid in order_ids)
            continue

        customer_results = []
        for order in customer.get("services", []):
            if order.get("serviceId") != service_id:
                continue
            order_id = order.get("orderId")
            if is_terminal(order.get("status")):
                customer_results.append(SweepResult(
                    order_id, customer_id, True, skipped=True,
                    due_date=order.get("dueDate"), message=f"Skipped: order is {order.get('status')}"
                ))
                continue
            if package_ids is not None and not _order_on_packages(service, order, package_ids):
                continue
            try:
                days = resolve_processing_days(service, order)
                due = compute_due_date(order.get("purchasedAt"), days, extension_days)
            except (ValueError, TypeError) as e:
                customer_results.append(SweepResult(order_id, customer_id, False, message=str(e)))
                continue
            order["dueDate"] = due.isoformat()
            order["processingDays"] = days
            customer_results.append(SweepResult(order_id, customer_id, True, due_date=order["dueDate"]))

        if any(r.success and not r.skipped for r in customer_results):
            try:
                accounts.save_account(customer)
            except LifecycleError as e:
                logger.warning("Due-date sweep could not save customer %s: %s", customer_id, e)
                for r in customer_results:
                    if r.success and not r.skipped:
                        r.success = False
                        r.due_date = None
                        r.message = e.message
            else:
                resync_customer_mirrors(customer)
        results.extend(customer_results)

    logger.info("Due-date sweep on %s: %d updated, %d skipped, %d failed",
                service_id,
                sum(1 for r in results if r.success and not r.skipped),
                sum(1 for r in results if r.skipped),
                sum(1 for r in results if not r.success))
    return results
