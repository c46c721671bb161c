"""
Public lead routes: the service inquiry form.
"""
from fastapi import APIRouter, BackgroundTasks, Request

from consultdesk import catalog, leads, notifications
from consultdesk.dependencies import get_current_user
from consultdesk.schemas import LeadCreate

router = APIRouter()


@router.get("/services")
async def active_services():
    """Services open for inquiries."""
    return {"success": True, "services": catalog.list_services(active_only=True)}


@router.post("", status_code=201)
async def create_lead(body: LeadCreate, request: Request, background_tasks: BackgroundTasks):
    """Guests may not reuse an account email; signed-in users may."""
    user = get_current_user(request)
    outbox = notifications.Outbox()
    lead = leads.create_lead(
        body.name, body.email, body.mobile, body.serviceId,
        message=body.message, source=body.source,
        existing_account_allowed=user is not None, outbox=outbox,
    )
    background_tasks.add_task(outbox.dispatch)
    return {"success": True, "message": "Your inquiry has been submitted successfully", "lead": lead}
