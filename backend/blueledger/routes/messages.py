# backend/blueledger/routes/messages.py
"""
Company message board.

Admins read every message of their company; a worker reads only the
messages they sent. Any member can post; only admins delete.
"""

from flask import Blueprint, g, request

from ..decorators import json_object, require_auth, require_role
from ..errors import InvalidArgument
from ..models import Role
from ..services import get_services
from ..services.snapshot_feed import MESSAGES
from .streaming import stream_collection

messages_bp = Blueprint("messages", __name__, url_prefix="/api/messages")


@messages_bp.get("")
@require_auth
def list_messages_route():
    """
    Query params:
    - limit: max messages to return (capped by MESSAGE_LIST_LIMIT)
    """
    limit = request.args.get("limit")
    if limit is not None:
        try:
            limit = int(limit)
        except ValueError:
            raise InvalidArgument("limit must be an integer")
    messages = get_services().messages.list_recent(g.caller.company_id, limit=limit, from_uid=_sender_scope())
    return {"messages": [m.to_dict() for m in messages], "count": len(messages)}


@messages_bp.post("")
@require_auth
@require_role(Role.ADMIN, Role.WORKER)
def post_message_route():
    data = json_object()
    message = get_services().messages.post(g.caller, data.get("text"))
    return {"message": message.to_dict()}, 201


@messages_bp.delete("/<message_id>")
@require_auth
@require_role(Role.ADMIN)
def delete_message_route(message_id: str):
    get_services().messages.delete(message_id, company_id=g.caller.company_id, actor_uid=g.caller.uid)
    return {"ok": True}


@messages_bp.get("/stream")
@require_auth
def stream_messages_route():
    return stream_collection(MESSAGES, filters={"from_uid": _sender_scope()})


def _sender_scope() -> str | None:
    return g.caller.uid if g.caller.role == Role.WORKER else None
