# backend/blueledger/routes/auth.py
"""
Authentication API routes.

Signup creates a new company with the caller as its admin. Workers never
sign up; admins provision them through /api/workers.
"""

from flask import Blueprint, g, request

from ..decorators import bearer_token, json_object, require_auth
from ..errors import InvalidArgument, Unauthenticated
from ..services import get_services
from ..time_utils import to_utc_z

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(uid: str) -> dict:
    services = get_services()
    session, token = services.sessions.create(
        uid,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    caller = services.sessions.resolve(token)
    return {
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "user": _caller_dict(caller),
    }


def _caller_dict(caller) -> dict:
    return {
        "uid": caller.uid,
        "name": caller.name,
        "email": caller.email,
        "role": caller.role,
        "company_id": caller.company_id,
    }


@auth_bp.post("/signup")
def signup_route():
    """
    Register a company and its first admin.

    Request body:
    - name, email, password, companyName: required
    """
    data = json_object()
    company, profile = get_services().companies.register(
        name=data.get("name"),
        email=data.get("email"),
        password=data.get("password"),
        company_name=data.get("companyName") or data.get("company_name"),
    )
    payload = _session_payload(profile.uid)
    payload["company"] = company.to_dict()
    return payload, 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password and return a bearer token.

    Failed attempts are recorded as LOGIN_FAILED security events.
    """
    data = json_object()
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        raise InvalidArgument("email and password are required.")

    services = get_services()
    identity = services.identities.authenticate(email, password)
    if identity is None:
        services.security_log.record("LOGIN_FAILED", False, reason=f"email={str(email).strip().lower()}")
        raise Unauthenticated("Invalid credentials.")

    services.security_log.record("LOGIN_SUCCESS", True, uid=identity.uid)
    return _session_payload(identity.uid)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    get_services().sessions.revoke(bearer_token(), reason="logout")
    return {"ok": True}


@auth_bp.get("/me")
@require_auth
def me_route():
    return {"user": _caller_dict(g.caller)}
