from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .tenancy import new_id


class ProvisioningState:
    STARTED = "STARTED"
    IDENTITY_CREATED = "IDENTITY_CREATED"
    PROFILE_WRITTEN = "PROFILE_WRITTEN"
    IDENTITY_DISABLED = "IDENTITY_DISABLED"
    PROFILE_DELETED = "PROFILE_DELETED"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"

    TERMINAL = (COMMITTED, ROLLED_BACK)


class ProvisioningOperation(db.Model):
    """
    Saga log for worker provisioning.

    Identity store and profile collection are written in separate commits,
    so every step is recorded here first. A row left in a non-terminal state
    is the exact to-do list for `flask workers reconcile`.
    """
    __tablename__ = "provisioning_operations"
    __table_args__ = (
        db.Index("ix_provisioning_operations_state", "state"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    kind = db.Column(db.String(32), nullable=False)  # create_worker | delete_worker
    company_id = db.Column(db.String(32), nullable=False, index=True)
    actor_uid = db.Column(db.String(32), nullable=False)
    worker_uid = db.Column(db.String(32), nullable=True, index=True)
    worker_email = db.Column(db.String(255), nullable=True)
    # delete_worker: identity's disabled flag before the saga disabled it
    identity_was_disabled = db.Column(db.Boolean, nullable=True)

    state = db.Column(db.String(32), nullable=False, default=ProvisioningState.STARTED)
    error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "company_id": self.company_id,
            "actor_uid": self.actor_uid,
            "worker_uid": self.worker_uid,
            "worker_email": self.worker_email,
            "identity_was_disabled": self.identity_was_disabled,
            "state": self.state,
            "error": self.error,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
