from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SecurityEvent(db.Model):
    """
    Security event audit log with tenant context.

    MULTI-TENANT: company_id is recorded for tenant-scoped auditing. For
    cross-tenant denials it is the CALLER's company, never the target's.

    Append-only. Rows are only removed by the retention cleanup
    (flask maintenance cleanup-security-events).
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_uid_type", "uid", "event_type"),
        db.Index("ix_security_events_company_occurred", "company_id", "occurred_at"),
    )

    id = db.Column(db.Integer, primary_key=True)

    company_id = db.Column(db.String(32), nullable=True, index=True)  # Nullable for pre-auth events
    uid = db.Column(db.String(32), nullable=True, index=True)  # Nullable for anonymous

    # Event classification
    event_type = db.Column(db.String(64), nullable=False, index=True)  # CROSS_TENANT_ACCESS_DENIED, LOGIN_FAILED, etc.
    resource = db.Column(db.String(128), nullable=True)  # e.g., "product:3f2a..."
    action = db.Column(db.String(64), nullable=True)     # e.g., "SELL", "RESTOCK"

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "uid": self.uid,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
