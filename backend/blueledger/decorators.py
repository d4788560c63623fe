# Overview: Request authentication and role decorators for API routes.

from functools import wraps

from flask import g, request

from .errors import InvalidArgument, PermissionDenied, Unauthenticated
from .services import get_services


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def json_object() -> dict:
    """Request body as a dict. A missing or empty body is {}; any other non-object is rejected."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidArgument("Request body must be a JSON object.")
    return data


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets g.caller (tenant_service.Caller). company_id and role on the caller
    come from the persisted profile; nothing in the request body can change
    them.

    Raises Unauthenticated (401) if:
    - No Authorization header
    - Invalid, revoked or expired token
    - Identity disabled or deleted
    - No profile for the identity
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            raise Unauthenticated("Login required.")

        g.caller = get_services().sessions.resolve(token)
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the caller's profile role to be one of `roles`.

    Must be applied after @require_auth. Denials are logged as ROLE_DENIED.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            caller = getattr(g, "caller", None)
            if caller is None:
                raise Unauthenticated("Login required.")

            if caller.role not in roles:
                get_services().security_log.record(
                    "ROLE_DENIED", False,
                    uid=caller.uid,
                    company_id=caller.company_id,
                    reason=f"Requires role: {', '.join(roles)}",
                )
                raise PermissionDenied(f"{' or '.join(r.capitalize() + 's' for r in roles)} only.")

            return f(*args, **kwargs)

        return decorated_function
    return decorator
