"""
Service catalog: services with purchasable packages.
"""
import logging

from consultdesk.config import DEFAULT_CURRENCY, DEFAULT_GST_RATE, DEFAULT_PROCESSING_DAYS, PREFIX_SERVICE
from consultdesk.database import insert_document, update_document, load_document, find_documents
from consultdesk.due_dates import find_package, recalculate_due_dates, utcnow
from consultdesk.errors import NotFound, ValidationError
from consultdesk.ids import generate_id, generate_package_id

logger = logging.getLogger(__name__)

REQUIRED_SERVICE_FIELDS = ("category", "name", "hsncode")


def _gst_rate(value) -> float:
    if value is None or value == "":
        return DEFAULT_GST_RATE
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise ValidationError("GST rate must be a number")
    if rate < 0 or rate > 100:
        raise ValidationError("GST rate must be between 0 and 100")
    return int(rate) if rate.is_integer() else rate


def _processing_days(value) -> int:
    if value is None or value == "":
        return DEFAULT_PROCESSING_DAYS
    try:
        days = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Processing days must be a whole number")
    if days <= 0:
        raise ValidationError("Processing days must be positive")
    return days


def normalize_packages(packages) -> list:
    """Drop empty entries, assign ids and default processing days."""
    if not isinstance(packages, list):
        return []
    result = []
    for pkg in packages:
        if not pkg:
            continue
        result.append({
            "_id": pkg.get("_id") or generate_package_id(),
            "name": pkg.get("name"),
            "description": pkg.get("description"),
            "actualPrice": pkg.get("actualPrice"),
            "salePrice": pkg.get("salePrice"),
            "features": list(pkg.get("features") or []),
            "processingDays": _processing_days(pkg.get("processingDays")),
        })
    return result


def _validate(data: dict):
    missing = [f for f in REQUIRED_SERVICE_FIELDS if not data.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def create_service(data: dict) -> dict:
    _validate(data)
    service = {
        "_id": generate_id(PREFIX_SERVICE),
        "category": data["category"],
        "name": data["name"],
        "description": data.get("description"),
        "hsncode": data["hsncode"],
        "currency": data.get("currency") or DEFAULT_CURRENCY,
        "gstRate": _gst_rate(data.get("gstRate")),
        "isActive": data.get("isActive", True) is not False,
        "hasStaticPage": bool(data.get("hasStaticPage", False)),
        "packages": normalize_packages(data.get("packages")),
        "requiredDocuments": list(data.get("requiredDocuments") or []),
        "createdAt": utcnow().isoformat(),
    }
    insert_document("services", service, is_active=1 if service["isActive"] else 0)
    logger.info("Created service %s (%s)", service["_id"], service["name"])
    return service


def find_service(service_id: str):
    return load_document("services", service_id)


def get_service(service_id: str) -> dict:
    service = find_service(service_id)
    if not service:
        raise NotFound(f"Service {service_id} not found")
    return service


def list_services(active_only: bool = False) -> list:
    if active_only:
        return find_documents("services", "is_active = 1")
    return find_documents("services")


def save_service(service: dict) -> dict:
    return update_document("services", service, is_active=1 if service.get("isActive") else 0)


def update_service(service_id: str, data: dict, extension_days: int = 0):
    """
    Replace a service's catalog terms.

    When any package's processing days change, or extension_days is given,
    every open order of the affected packages gets its due date recomputed
    from its original purchase date. Returns (service, sweep results).
    """
    _validate(data)
    try:
        extension_days = int(extension_days or 0)
    except (TypeError, ValueError):
        raise ValidationError("Extension days must be a whole number")
    if extension_days < 0:
        raise ValidationError("Extension days cannot be negative")

    service = get_service(service_id)
    old_days = {p["_id"]: p.get("processingDays") for p in service.get("packages") or []}

    service.update({
        "category": data["category"],
        "name": data["name"],
        "description": data.get("description", service.get("description")),
        "hsncode": data["hsncode"],
        "currency": data.get("currency") or DEFAULT_CURRENCY,
        "gstRate": _gst_rate(data.get("gstRate", service.get("gstRate"))),
        "packages": normalize_packages(data.get("packages")),
        "requiredDocuments": list(data.get("requiredDocuments") or []),
        "updatedAt": utcnow().isoformat(),
    })
    save_service(service)

    changed = {
        p["_id"] for p in service["packages"]
        if p["_id"] in old_days and old_days[p["_id"]] != p["processingDays"]
    }
    # Orders on removed packages fall back to the first package
    changed |= set(old_days) - {p["_id"] for p in service["packages"]}

    sweep = []
    if extension_days > 0:
        sweep = recalculate_due_dates(service, extension_days)
    elif changed:
        sweep = recalculate_due_dates(service, 0, package_ids=changed)
    return service, sweep


def toggle_service_activation(service_id: str) -> dict:
    service = get_service(service_id)
    service["isActive"] = not service.get("isActive", True)
    save_service(service)
    logger.info("Service %s is now %s", service_id, "active" if service["isActive"] else "inactive")
    return service


def get_package(service: dict, package_id: str = None) -> dict:
    """Selected package, or the first one; raises when package_id is unknown."""
    package = find_package(service, package_id)
    if package_id and (not package or package.get("_id") != package_id):
        raise NotFound(f"Package {package_id} not found on service {service['_id']}")
    return package
