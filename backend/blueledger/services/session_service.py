# Overview: Bearer session tokens; resolves a token to a Caller.

"""
Session Token Management

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute and idle timeouts
- Revocable on logout
- The Caller's company and role are read from the persisted profile on every
  validation, so a role or company change takes effect immediately
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta, timezone

from ..errors import Unauthenticated
from ..models import Identity, Profile, SessionToken
from ..time_utils import utcnow
from ..validation import ProfileSnapshot
from .tenant_service import Caller


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class SessionManager:
    def __init__(self, db, *, absolute_timeout: timedelta, idle_timeout: timedelta):
        self.db = db
        self.absolute_timeout = absolute_timeout
        self.idle_timeout = idle_timeout

    def create(self, uid: str, *, user_agent: str | None = None, ip_address: str | None = None) -> tuple[SessionToken, str]:
        """
        Create new session token for an identity.

        Returns (session_record, plaintext_token).
        Client receives plaintext_token, database stores only the hash.
        """
        plaintext_token = generate_token()
        now = utcnow()

        session_token = SessionToken(
            uid=uid,
            token_hash=hash_token(plaintext_token),
            created_at=now,
            last_used_at=now,
            expires_at=now + self.absolute_timeout,
            user_agent=user_agent,
            ip_address=ip_address,
            is_revoked=False,
        )
        self.db.session.add(session_token)
        self.db.session.commit()
        return session_token, plaintext_token

    def resolve(self, token: str | None) -> Caller:
        """
        Validate a plaintext token and return the Caller.

        Raises Unauthenticated if the token is unknown, revoked, expired or
        idle too long, if the identity is gone or disabled, or if no profile
        exists for it.
        """
        if not token:
            raise Unauthenticated("Login required.")

        session = self.db.session
        record = session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
        if record is None or record.is_revoked:
            raise Unauthenticated("Invalid or expired token.")

        now = utcnow()
        if now > _naive(record.expires_at) or now - _naive(record.last_used_at) > self.idle_timeout:
            self._revoke(record, "expired")
            raise Unauthenticated("Invalid or expired token.")

        identity = session.get(Identity, record.uid)
        if identity is None or identity.disabled:
            raise Unauthenticated("Account is disabled.")

        profile = session.get(Profile, record.uid)
        if profile is None:
            raise Unauthenticated("Profile not found.")
        snapshot = ProfileSnapshot.from_model(profile)

        record.last_used_at = now
        session.commit()

        return Caller(
            uid=snapshot.uid,
            company_id=snapshot.company_id,
            role=snapshot.role,
            name=snapshot.name or (identity.display_name or ""),
            email=snapshot.email or identity.email,
        )

    def revoke(self, token: str, reason: str = "logout") -> bool:
        record = self.db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
        if record is None or record.is_revoked:
            return False
        self._revoke(record, reason)
        return True

    def _revoke(self, record: SessionToken, reason: str) -> None:
        record.is_revoked = True
        record.revoked_at = utcnow()
        record.revoked_reason = reason
        self.db.session.commit()


def _naive(dt):
    # SQLite hands back naive datetimes; other backends may attach UTC.
    if dt is not None and dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt
