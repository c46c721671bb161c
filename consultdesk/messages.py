"""
Messages between customers and staff about a service, optionally tied to
one order. Replies are kept on the original message.
"""
import logging

from consultdesk import accounts, catalog
from consultdesk.config import PREFIX_MESSAGE
from consultdesk.database import (
    insert_document, update_document, load_document, find_documents, find_customer_id_for_order,
)
from consultdesk.due_dates import utcnow
from consultdesk.errors import Forbidden, NotFound, OrderNotFound, ValidationError
from consultdesk.ids import generate_id
from consultdesk.roles import ROLE_ADMIN, ROLE_CUSTOMER

logger = logging.getLogger(__name__)


def _columns(message: dict) -> dict:
    return {
        "sender": message["sender"],
        "recipient": message["recipient"],
        "service_id": message["service"],
        "order_id": message.get("orderId"),
        "is_read": 1 if message.get("isRead") else 0,
    }


def _files(files) -> list:
    result = []
    for f in files or []:
        if not f.get("fileUrl"):
            raise ValidationError("Each attachment needs a fileUrl")
        result.append({
            "fileUrl": f["fileUrl"],
            "fileName": f.get("fileName") or f["fileUrl"].rsplit("/", 1)[-1],
            "fileType": f.get("fileType") or "application/octet-stream",
        })
    return result


def save_message(message: dict) -> dict:
    return update_document("messages", message, **_columns(message))


def get_message(message_id: str) -> dict:
    message = load_document("messages", message_id)
    if not message:
        raise NotFound(f"Message {message_id} not found")
    return message


def _is_participant(message: dict, user: dict) -> bool:
    return user.get("role") == ROLE_ADMIN or user["_id"] in (message["sender"], message["recipient"])


def send_message(sender: dict, recipient_id: str, content: str, service_id: str,
                 order_id: str = None, files: list = None) -> dict:
    """
    Store a new message. A customer may only reference one of their own
    orders.
    """
    if not recipient_id or not content or not content.strip() or not service_id:
        raise ValidationError("Missing required fields: recipientId, content, or service")
    recipient = accounts.get_account(recipient_id)
    catalog.get_service(service_id)
    if order_id:
        customer_id = find_customer_id_for_order(order_id)
        if not customer_id:
            raise OrderNotFound(f"Order {order_id} not found")
        if sender.get("role") == ROLE_CUSTOMER and customer_id != sender["_id"]:
            raise Forbidden(f"Order {order_id} does not belong to you")

    message = {
        "_id": generate_id(PREFIX_MESSAGE),
        "sender": sender["_id"],
        "recipient": recipient["_id"],
        "content": content.strip(),
        "service": service_id,
        "orderId": order_id,
        "files": _files(files),
        "isRead": False,
        "isReplied": False,
        "replyContent": [],
        "createdAt": utcnow().isoformat(),
    }
    insert_document("messages", message, **_columns(message))
    logger.info("Message %s from %s to %s about %s", message["_id"], sender["_id"], recipient["_id"], service_id)
    return message


def list_messages(user: dict, service_id: str = None, order_id: str = None, customer_id: str = None) -> list:
    """
    Messages visible to the user, newest first, with sender and recipient
    names resolved. Admins see every conversation.
    """
    clauses, params = [], []
    if user.get("role") != ROLE_ADMIN:
        clauses.append("(sender = ? OR recipient = ?)")
        params += [user["_id"], user["_id"]]
    if service_id:
        clauses.append("service_id = ?")
        params.append(service_id)
    if order_id:
        clauses.append("order_id = ?")
        params.append(order_id)
    if customer_id:
        clauses.append("(sender = ? OR recipient = ?)")
        params += [customer_id, customer_id]
    messages = find_documents("messages", " AND ".join(clauses), tuple(params),
                              order_by="created_at DESC, id DESC")

    names = {}

    def party(account_id):
        if account_id not in names:
            account = accounts.find_account(account_id)
            names[account_id] = account["name"] if account else "Unknown"
        return {"_id": account_id, "name": names[account_id]}

    return [{**m, "sender": party(m["sender"]), "recipient": party(m["recipient"])} for m in messages]


def mark_read(message_id: str, user: dict) -> dict:
    message = get_message(message_id)
    if user.get("role") != ROLE_ADMIN and message["recipient"] != user["_id"]:
        raise Forbidden(f"Message {message_id} was not sent to you")
    if message.get("isRead"):
        return message
    message["isRead"] = True
    return save_message(message)


def reply(message_id: str, user: dict, content: str, files: list = None) -> dict:
    if not content or not content.strip():
        raise ValidationError("Reply content is missing")
    message = get_message(message_id)
    if not _is_participant(message, user):
        raise Forbidden(f"Message {message_id} is not part of your conversations")
    message.setdefault("replyContent", []).append({
        "repliedBy": user["_id"],
        "content": content.strip(),
        "files": _files(files),
        "isRead": False,
        "createdAt": utcnow().isoformat(),
    })
    message["isReplied"] = True
    message["isRead"] = True
    return save_message(message)


def unread_count(user_id: str) -> int:
    return len(find_documents("messages", "recipient = ? AND is_read = 0", (user_id,), order_by=""))
