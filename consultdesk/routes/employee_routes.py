"""
Employee routes: assigned customers, leads, order work and L1 review.
Managers use the same routes.
"""
from fastapi import APIRouter, BackgroundTasks, Depends

from consultdesk import accounts, leads, notifications, orders
from consultdesk.dependencies import require_staff
from consultdesk.schemas import DelayReason, LeadDecline, QueryReply, ReviewDecision, StatusUpdate

router = APIRouter()


@router.get("/customers")
async def assigned_customers(user: dict = Depends(require_staff)):
    """The employee's mirror of assigned customers, read in one lookup."""
    employee = accounts.get_account(user["_id"])
    return {"success": True, "customers": employee.get("assignedCustomers") or []}


@router.get("/leads")
async def my_leads(user: dict = Depends(require_staff)):
    return {"success": True, "leads": leads.employee_leads(user["_id"])}


@router.post("/leads/{lead_id}/accept")
async def accept_lead(lead_id: str, user: dict = Depends(require_staff)):
    return {"success": True, "lead": leads.accept(lead_id, user["_id"])}


@router.post("/leads/{lead_id}/decline")
async def decline_lead(lead_id: str, body: LeadDecline, user: dict = Depends(require_staff)):
    return {"success": True, "lead": leads.decline(lead_id, user["_id"], body.reason)}


@router.put("/orders/{order_id}/status")
async def update_status(order_id: str, body: StatusUpdate, user: dict = Depends(require_staff)):
    order = orders.update_status(order_id, body.status, actor=user)
    return {"success": True, "order": order}


@router.post("/orders/{order_id}/delay-reason")
async def delay_reason(order_id: str, body: DelayReason, user: dict = Depends(require_staff)):
    order = orders.set_delay_reason(order_id, body.reason, actor=user)
    return {"success": True, "order": order}


@router.post("/orders/{order_id}/queries/{query_index}/reply")
async def reply_to_query(order_id: str, query_index: int, body: QueryReply,
                         user: dict = Depends(require_staff)):
    query = orders.reply_to_query(order_id, query_index, user["_id"], body.response, resolve=body.resolve)
    return {"success": True, "query": query}


@router.post("/orders/{order_id}/send-for-review")
async def send_for_review(order_id: str, background_tasks: BackgroundTasks,
                          user: dict = Depends(require_staff)):
    outbox = notifications.Outbox()
    order = orders.send_for_l1_review(order_id, user["_id"], outbox=outbox)
    background_tasks.add_task(outbox.dispatch)
    return {"success": True, "order": order}


@router.get("/reviews")
async def pending_reviews(user: dict = Depends(require_staff)):
    """Orders waiting on the current user as L1 reviewer."""
    return {"success": True, "orders": orders.pending_reviews(user["_id"])}


@router.post("/orders/{order_id}/review")
async def review_order(order_id: str, body: ReviewDecision, background_tasks: BackgroundTasks,
                       user: dict = Depends(require_staff)):
    outbox = notifications.Outbox()
    order = orders.complete_l1_review(order_id, body.decision, user["_id"], body.note, outbox=outbox)
    background_tasks.add_task(outbox.dispatch)
    return {"success": True, "order": order}
