from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .tenancy import new_id


class Role:
    ADMIN = "admin"
    WORKER = "worker"

    ALL = (ADMIN, WORKER)


class Identity(db.Model):
    """
    Identity store record (credentials), managed by the identity service only.

    Kept apart from Profile on purpose: the identity store and the profile
    collection are independent stores and are never written in one
    transaction (see provisioning_service).
    """
    __tablename__ = "identities"

    uid = db.Column(db.String(32), primary_key=True, default=new_id)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    display_name = db.Column(db.String(255), nullable=True)
    disabled = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "email": self.email,
            "display_name": self.display_name,
            "disabled": self.disabled,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class Profile(db.Model):
    """
    User profile keyed by identity uid.

    MULTI-TENANT: company_id and role are assigned server-side (signup for
    admins, provisioning for workers) and are never writable by the user.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        db.Index("ix_profiles_company_role", "company_id", "role"),
        db.CheckConstraint("role IN ('admin', 'worker')", name="ck_profiles_role"),
    )

    uid = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False)

    company_id = db.Column(db.String(32), db.ForeignKey("companies.id"), nullable=True, index=True)
    company_name = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.String(32), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "company_id": self.company_id,
            "company_name": self.company_name,
            "created_by": self.created_by,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class SessionToken(db.Model):
    """
    Bearer session tokens. Only the SHA-256 hash of the token is stored.
    """
    __tablename__ = "session_tokens"

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(32), db.ForeignKey("identities.uid", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
