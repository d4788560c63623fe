# backend/blueledger/routes/workers.py
"""
Worker management routes (admins only).

The provisioning service re-reads the caller's profile itself, so these
routes pass only the authenticated uid; companyId and role in the request
body are never trusted.
"""

from flask import Blueprint, g, request

from ..decorators import json_object, require_auth, require_role
from ..models import Role
from ..services import get_services

workers_bp = Blueprint("workers", __name__, url_prefix="/api/workers")


@workers_bp.get("")
@require_auth
@require_role(Role.ADMIN)
def list_workers_route():
    """
    List workers of the caller's company.

    Query params:
    - mine: "1" to list only workers created by the caller
    """
    created_by = g.caller.uid if request.args.get("mine") == "1" else None
    workers = get_services().provisioning.list_workers(g.caller.company_id, created_by=created_by)
    return {"workers": [w.to_dict() for w in workers], "count": len(workers)}


@workers_bp.post("")
@require_auth
@require_role(Role.ADMIN)
def create_worker_route():
    """
    Create a worker in the caller's company.

    Request body:
    - name, email, tempPassword: required
    """
    data = json_object()
    worker_uid = get_services().provisioning.create_worker(
        g.caller.uid,
        data.get("name"),
        data.get("email"),
        data.get("tempPassword") or data.get("temp_password"),
    )
    return {"worker_uid": worker_uid}, 201


@workers_bp.delete("/<worker_uid>")
@require_auth
@require_role(Role.ADMIN)
def delete_worker_route(worker_uid: str):
    return get_services().provisioning.delete_worker(g.caller.uid, worker_uid)
