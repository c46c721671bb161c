"""
Customer routes: own orders, document uploads, queries, feedback, payments.
"""
from fastapi import APIRouter, BackgroundTasks, Depends

from consultdesk import accounts, notifications, orders, payments
from consultdesk.dependencies import require_customer
from consultdesk.due_dates import days_delayed
from consultdesk.schemas import DocumentUpload, FeedbackCreate, PaymentSuccess, ProfileUpdate, QueryCreate

router = APIRouter()


@router.get("/orders")
async def my_orders(user: dict = Depends(require_customer)):
    customer = accounts.get_account(user["_id"])
    result = []
    for order in customer.get("services") or []:
        result.append({**order, "daysDelayed": days_delayed(order)})
    return {"success": True, "orders": result}


@router.get("/profile")
async def profile(user: dict = Depends(require_customer)):
    customer = accounts.get_account(user["_id"])
    return {"success": True, "customer": accounts.public_account(customer)}


@router.put("/profile")
async def update_profile(body: ProfileUpdate, user: dict = Depends(require_customer)):
    customer = accounts.update_customer_profile(user["_id"], body.model_dump(exclude_unset=True))
    return {"success": True, "customer": accounts.public_account(customer)}


@router.get("/wallet")
async def wallet(user: dict = Depends(require_customer)):
    return {"success": True, "wallet": accounts.get_wallet(user["_id"])}


@router.post("/orders/{order_id}/documents")
async def upload_documents(order_id: str, body: DocumentUpload, user: dict = Depends(require_customer)):
    """Record uploaded document metadata; the due date restarts from now."""
    files = [d.model_dump() for d in body.documents]
    result = orders.upload_documents(order_id, files, customer_id=user["_id"])
    return {"success": True, "documents": result["documents"], "dueDate": result["dueDate"]}


@router.post("/orders/{order_id}/queries", status_code=201)
async def raise_query(order_id: str, body: QueryCreate, user: dict = Depends(require_customer)):
    query = orders.raise_query(order_id, body.query, customer_id=user["_id"], attachments=body.attachments)
    return {"success": True, "query": query}


@router.post("/orders/{order_id}/feedback", status_code=201)
async def submit_feedback(order_id: str, body: FeedbackCreate, user: dict = Depends(require_customer)):
    entry = orders.submit_feedback(order_id, body.feedback, body.rating, customer_id=user["_id"])
    return {"success": True, "feedback": entry}


@router.post("/payments/success", status_code=201)
async def payment_success(body: PaymentSuccess, background_tasks: BackgroundTasks,
                          user: dict = Depends(require_customer)):
    """Confirmed payment: create the order and bind an employee."""
    outbox = notifications.Outbox()
    payment = body.model_dump(exclude={"serviceId", "packageId"})
    result = payments.record_payment_success(
        user["_id"], body.serviceId, body.packageId, payment, outbox=outbox
    )
    background_tasks.add_task(outbox.dispatch)
    assigned = result["assignment"]
    return {
        "success": True,
        "orderId": result["orderId"],
        "order": result["order"],
        "assignment": assigned.to_dict() if assigned else None,
    }
