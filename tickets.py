"""
Support tickets and their replies.

Replies live in their own ``ticket_reply`` collection and are removed
together with their ticket.
"""
from typing import Any, Dict, List, Optional

from database import collection, create_document, delete_document, get_document, get_documents, now, update_document
from errors import ForbiddenError, NotFoundError, ValidationError
from schemas import Ticket, TicketIn, TicketPriority, TicketReply, TicketStatus, TicketUpdate


def get_tickets(
    user_id: Optional[str] = None,
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    assigned_admin_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    filter_q: Dict[str, Any] = {}
    if user_id:
        filter_q["user_id"] = user_id
    if status:
        filter_q["status"] = TicketStatus(status).value
    if priority:
        filter_q["priority"] = TicketPriority(priority).value
    if assigned_admin_id:
        filter_q["assigned_admin_id"] = assigned_admin_id
    return get_documents("ticket", filter_q)


def get_ticket(ticket_id: str, user: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Ticket with its replies, oldest first. Non-admins only see their own."""
    ticket = _visible_ticket(ticket_id, user)
    ticket["replies"] = get_replies(ticket_id)
    return ticket


def _visible_ticket(ticket_id: str, user: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    ticket = get_document("ticket", {"id": ticket_id})
    if not ticket:
        raise NotFoundError("Ticket not found")
    if user is not None and not user.get("is_admin") and ticket["user_id"] != user["id"]:
        raise NotFoundError("Ticket not found")
    return ticket


def get_replies(ticket_id: str) -> List[Dict[str, Any]]:
    return get_documents("ticket_reply", {"ticket_id": ticket_id}, sort=[("created_at", 1), ("_id", 1)])


def get_ticket_replies(ticket_id: str, user: Dict[str, Any]) -> List[Dict[str, Any]]:
    _visible_ticket(ticket_id, user)
    return get_replies(ticket_id)


def open_ticket(user_id: str, data: TicketIn) -> Dict[str, Any]:
    if data.order_id and not get_document("order", {"id": data.order_id, "user_id": user_id}):
        raise ValidationError("Order not found for this user")
    ticket = Ticket(user_id=user_id, **data.model_dump())
    return create_document("ticket", ticket)


def update_ticket(ticket_id: str, changes: TicketUpdate) -> Dict[str, Any]:
    data = changes.model_dump(exclude_unset=True, mode="json")
    if data.get("assigned_admin_id"):
        admin = get_document("user", {"id": data["assigned_admin_id"]})
        if not admin or not admin.get("is_admin"):
            raise ValidationError("Assignee must be an admin")
    ticket = update_document("ticket", ticket_id, data)
    if not ticket:
        raise NotFoundError("Ticket not found")
    return ticket


def add_reply(ticket_id: str, user: Dict[str, Any], message: str) -> Dict[str, Any]:
    ticket = get_document("ticket", {"id": ticket_id})
    if not ticket:
        raise NotFoundError("Ticket not found")
    if not user.get("is_admin") and ticket["user_id"] != user["id"]:
        raise ForbiddenError("Not your ticket")
    reply = create_document("ticket_reply", TicketReply(ticket_id=ticket_id, user_id=user["id"], message=message))
    collection("ticket").update_one({"id": ticket_id}, {"$set": {"updated_at": now()}})
    return reply


def _own_reply(ticket_id: str, reply_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    """Replies can be changed by their author or an admin."""
    reply = get_document("ticket_reply", {"id": reply_id, "ticket_id": ticket_id})
    if not reply:
        raise NotFoundError("Reply not found")
    if not user.get("is_admin") and reply["user_id"] != user["id"]:
        raise ForbiddenError("Not your reply")
    return reply


def update_reply(ticket_id: str, reply_id: str, user: Dict[str, Any], message: str) -> Dict[str, Any]:
    _own_reply(ticket_id, reply_id, user)
    return update_document("ticket_reply", reply_id, {"message": message})


def delete_reply(ticket_id: str, reply_id: str, user: Dict[str, Any]) -> None:
    _own_reply(ticket_id, reply_id, user)
    delete_document("ticket_reply", reply_id)


def delete_ticket(ticket_id: str) -> None:
    res = collection("ticket").delete_one({"id": ticket_id})
    if res.deleted_count == 0:
        raise NotFoundError("Ticket not found")
    collection("ticket_reply").delete_many({"ticket_id": ticket_id})
