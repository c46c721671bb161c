"""
Message routes: any signed-in account can message about a service.
"""
from typing import Optional

from fastapi import APIRouter, Depends

from consultdesk import messages
from consultdesk.dependencies import require_auth
from consultdesk.schemas import MessageCreate, MessageReply

router = APIRouter()


@router.post("/send", status_code=201)
async def send_message(body: MessageCreate, user: dict = Depends(require_auth)):
    message = messages.send_message(
        user, body.recipientId, body.content, body.service,
        order_id=body.orderId, files=[f.model_dump() for f in body.files],
    )
    return {"success": True, "message": message}


@router.get("")
async def list_messages(serviceId: Optional[str] = None, orderId: Optional[str] = None,
                        customerId: Optional[str] = None, user: dict = Depends(require_auth)):
    result = messages.list_messages(user, service_id=serviceId, order_id=orderId, customer_id=customerId)
    return {"success": True, "messages": result, "unread": messages.unread_count(user["_id"])}


@router.patch("/{message_id}/read")
async def mark_read(message_id: str, user: dict = Depends(require_auth)):
    return {"success": True, "message": messages.mark_read(message_id, user)}


@router.patch("/{message_id}/reply")
async def reply(message_id: str, body: MessageReply, user: dict = Depends(require_auth)):
    message = messages.reply(message_id, user, body.replyContent, files=[f.model_dump() for f in body.files])
    return {"success": True, "message": message}
