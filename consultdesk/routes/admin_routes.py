"""
Admin routes: catalog, accounts, lead pipeline, order assignment and export.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import StreamingResponse

from consultdesk import accounts, assignment, catalog, leads, notifications, orders, reports
from consultdesk.dependencies import require_admin
from consultdesk.errors import ValidationError
from consultdesk.schemas import (
    ActiveFlag, AssignRequest, EmployeeCreate, LeadAssign, LeadConvert, LeadSendBack,
    ManagerCreate, ServiceIn, ServiceUpdate, StatusUpdate,
)

router = APIRouter()


# ============================================================
# Services
# ============================================================

@router.get("/services")
async def list_services(user: dict = Depends(require_admin)):
    return {"success": True, "services": catalog.list_services()}


@router.post("/services", status_code=201)
async def create_service(body: ServiceIn, user: dict = Depends(require_admin)):
    service = catalog.create_service(body.model_dump(by_alias=True))
    return {"success": True, "service": service}


@router.put("/services/{service_id}")
async def update_service(service_id: str, body: ServiceUpdate, user: dict = Depends(require_admin)):
    """Edit a service; due dates of open orders are recomputed when terms change."""
    data = body.model_dump(by_alias=True)
    extension_days = data.pop("extensionDays", 0)
    service, sweep = catalog.update_service(service_id, data, extension_days)
    return {
        "success": True,
        "service": service,
        "updatedOrders": sum(1 for r in sweep if r.success and not r.skipped),
        "failedOrders": sum(1 for r in sweep if not r.success),
        "sweep": [r.to_dict() for r in sweep],
    }


@router.post("/services/{service_id}/toggle")
async def toggle_service(service_id: str, user: dict = Depends(require_admin)):
    service = catalog.toggle_service_activation(service_id)
    return {"success": True, "service": service}


# ============================================================
# Accounts
# ============================================================

@router.get("/accounts")
async def list_accounts(role: Optional[str] = None, user: dict = Depends(require_admin)):
    return {
        "success": True,
        "accounts": [accounts.public_account(a) for a in accounts.list_accounts(role=role)],
    }


@router.post("/employees", status_code=201)
async def create_employee(body: EmployeeCreate, background_tasks: BackgroundTasks,
                          user: dict = Depends(require_admin)):
    """Create an employee; unassigned orders for their services are handed over."""
    outbox = notifications.Outbox()
    employee, results = accounts.create_employee(
        body.name, body.email, body.password, body.servicesHandled,
        l1_emp_code=body.L1EmpCode, designation=body.designation,
        outbox=outbox, mobile=body.mobile,
    )
    background_tasks.add_task(outbox.dispatch)
    return {
        "success": True,
        "employee": accounts.public_account(employee),
        "assignedCustomers": sum(1 for r in results if r.success),
        "assignmentResults": [r.to_dict() for r in results],
    }


@router.post("/managers", status_code=201)
async def create_manager(body: ManagerCreate, background_tasks: BackgroundTasks,
                         user: dict = Depends(require_admin)):
    outbox = notifications.Outbox()
    admin = accounts.get_account(user["_id"])
    manager = accounts.create_manager(admin, body.name, body.email, body.password,
                                      outbox=outbox, mobile=body.mobile)
    background_tasks.add_task(outbox.dispatch)
    return {"success": True, "manager": accounts.public_account(manager)}


@router.post("/managers/{manager_id}/employees/{employee_id}")
async def assign_employee_to_manager(manager_id: str, employee_id: str, background_tasks: BackgroundTasks,
                                     user: dict = Depends(require_admin)):
    outbox = notifications.Outbox()
    manager, employee = accounts.assign_employee_to_manager(manager_id, employee_id, outbox=outbox)
    background_tasks.add_task(outbox.dispatch)
    return {
        "success": True,
        "manager": accounts.public_account(manager),
        "employee": accounts.public_account(employee),
    }


@router.post("/employees/{employee_id}/promote")
async def promote_employee(employee_id: str, user: dict = Depends(require_admin)):
    manager = accounts.promote_to_manager(employee_id)
    return {"success": True, "manager": accounts.public_account(manager)}


@router.post("/accounts/{account_id}/active")
async def set_active(account_id: str, body: ActiveFlag, user: dict = Depends(require_admin)):
    account = accounts.set_active(account_id, body.isActive)
    return {"success": True, "account": accounts.public_account(account)}


# ============================================================
# Leads
# ============================================================

@router.get("/leads")
async def list_leads(status: Optional[str] = None, user: dict = Depends(require_admin)):
    return {"success": True, "leads": leads.list_leads(status)}


@router.post("/leads/{lead_id}/assign")
async def assign_lead(lead_id: str, body: LeadAssign, background_tasks: BackgroundTasks,
                      user: dict = Depends(require_admin)):
    outbox = notifications.Outbox()
    lead = leads.assign_to_employee(lead_id, body.employeeId, outbox=outbox)
    background_tasks.add_task(outbox.dispatch)
    return {"success": True, "lead": lead}


@router.post("/leads/{lead_id}/send-back")
async def send_back_lead(lead_id: str, body: LeadSendBack, background_tasks: BackgroundTasks,
                         user: dict = Depends(require_admin)):
    outbox = notifications.Outbox()
    lead = leads.send_back(lead_id, body.note, outbox=outbox)
    background_tasks.add_task(outbox.dispatch)
    return {"success": True, "lead": lead}


@router.post("/leads/{lead_id}/convert", status_code=201)
async def convert_lead(lead_id: str, body: LeadConvert, background_tasks: BackgroundTasks,
                       user: dict = Depends(require_admin)):
    outbox = notifications.Outbox()
    result = leads.convert(lead_id, body.paymentDetails.model_dump(), outbox=outbox)
    background_tasks.add_task(outbox.dispatch)
    response = {
        "success": True,
        "account": accounts.public_account(result["account"]),
        "orderId": result["orderId"],
    }
    if result["temporaryPassword"]:
        response["temporaryPassword"] = result["temporaryPassword"]
    return response


# ============================================================
# Orders
# ============================================================

@router.post("/assign")
async def assign_customer(body: AssignRequest, background_tasks: BackgroundTasks,
                          user: dict = Depends(require_admin)):
    """Assign by customer + service (optionally order), or by order id alone."""
    outbox = notifications.Outbox()
    if body.customerId:
        result = assignment.assign(body.customerId, body.serviceId, body.employeeId,
                                   order_id=body.orderId, outbox=outbox)
    elif body.orderId:
        result = assignment.assign_order(body.orderId, body.employeeId, outbox=outbox)
    else:
        raise ValidationError("Either customerId or orderId is required")
    background_tasks.add_task(outbox.dispatch)
    return result.to_dict()


@router.post("/services/{service_id}/backfill/{employee_id}")
async def backfill(service_id: str, employee_id: str, background_tasks: BackgroundTasks,
                   user: dict = Depends(require_admin)):
    outbox = notifications.Outbox()
    results = assignment.backfill_unassigned(service_id, employee_id, outbox=outbox)
    background_tasks.add_task(outbox.dispatch)
    return {
        "success": True,
        "assigned": sum(1 for r in results if r.success),
        "failed": sum(1 for r in results if not r.success),
        "results": [r.to_dict() for r in results],
    }


@router.put("/orders/{order_id}/status")
async def override_status(order_id: str, body: StatusUpdate, user: dict = Depends(require_admin)):
    order = orders.update_status(order_id, body.status, actor=user)
    return {"success": True, "order": order}


@router.get("/orders/export")
async def export_orders(user: dict = Depends(require_admin)):
    """Export all orders to Excel."""
    output = reports.export_orders_workbook()
    filename = f"Orders_Export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"

    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
