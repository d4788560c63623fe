# Overview: Append-only security event logging with tenant context.

"""
Security Event Logging with Multi-Tenant Support

Events include the caller's company_id so they can be filtered per tenant.

event_type examples:
- CROSS_TENANT_ACCESS_DENIED
- ROLE_DENIED
- LOGIN_FAILED
- LOGOUT
- COMPANY_CREATED
- WORKER_CREATED
- WORKER_DELETED
"""

from __future__ import annotations

from datetime import timedelta

from flask import has_request_context, request

from ..models import SecurityEvent
from ..time_utils import utcnow


class SecurityLog:
    def __init__(self, db):
        self.db = db

    def record(
        self,
        event_type: str,
        success: bool,
        *,
        uid: str | None = None,
        company_id: str | None = None,
        resource: str | None = None,
        action: str | None = None,
        reason: str | None = None,
    ) -> SecurityEvent:
        """
        Log security event to audit trail and commit it.

        Must be called outside any open ledger transaction: the event is
        committed on its own so a rolled-back operation still leaves a trace.
        """
        ip_address = None
        user_agent = None
        if has_request_context():
            ip_address = request.remote_addr
            user_agent = request.headers.get("User-Agent")
            if resource is None:
                resource = request.path
            if action is None:
                action = request.method

        event = SecurityEvent(
            uid=uid,
            company_id=company_id,
            event_type=event_type,
            resource=resource,
            action=action,
            success=success,
            reason=reason,
            ip_address=ip_address,
            user_agent=user_agent,
            occurred_at=utcnow(),
        )

        session = self.db.session
        session.add(event)
        session.commit()

        return event

    def list_for_company(self, company_id: str, *, limit: int = 100) -> list[SecurityEvent]:
        return (
            self.db.session.query(SecurityEvent)
            .filter(SecurityEvent.company_id == company_id)
            .order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc())
            .limit(limit)
            .all()
        )

    def cleanup(self, *, retention_days: int = 90) -> int:
        """Delete security events older than retention_days."""
        cutoff = utcnow() - timedelta(days=retention_days)
        deleted = (
            self.db.session.query(SecurityEvent)
            .filter(SecurityEvent.occurred_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.session.commit()
        return deleted
