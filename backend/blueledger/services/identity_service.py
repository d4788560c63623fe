# Overview: Identity store (credentials); the only writer of the identities table.

"""
Identity Store

Plays the role of the external authentication provider: it owns email,
password hash, display name and the disabled flag, and knows nothing about
companies or roles. Profiles live in a separate store (profiles table) and
are never written in the same commit as an identity.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Emails are stored trimmed and lower-cased, unique across the store
- Disabled identities cannot authenticate
- Deleting an identity revokes its sessions
"""

from __future__ import annotations

import logging

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..errors import AlreadyExists, InvalidArgument, NotFound
from ..models import Identity, SessionToken
from ..time_utils import utcnow

logger = logging.getLogger("blueledger.identity")


def normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Length rules are enforced by callers (provisioning, signup); this only hashes.
    """
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt verification; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


class IdentityStore:
    def __init__(self, db, *, bcrypt_rounds: int = 12):
        self.db = db
        self.bcrypt_rounds = bcrypt_rounds

    def create(self, *, email: str, password: str, display_name: str, disabled: bool = False) -> Identity:
        email = normalize_email(email)
        if not email or "@" not in email:
            raise InvalidArgument("A valid email is required.")
        if not password:
            raise InvalidArgument("password is required.")

        session = self.db.session
        if session.query(Identity.uid).filter_by(email=email).first():
            raise AlreadyExists("The email address is already in use by another account.")

        identity = Identity(
            email=email,
            password_hash=hash_password(password, rounds=self.bcrypt_rounds),
            display_name=display_name,
            disabled=disabled,
        )
        session.add(identity)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise AlreadyExists("The email address is already in use by another account.")

        logger.info("identity %s created for %s", identity.uid, email)
        return identity

    def get(self, uid: str) -> Identity | None:
        if not uid:
            return None
        return self.db.session.get(Identity, uid)

    def set_disabled(self, uid: str, disabled: bool) -> Identity:
        identity = self.get(uid)
        if identity is None:
            raise NotFound("Identity not found.")
        identity.disabled = disabled
        self.db.session.commit()
        return identity

    def delete(self, uid: str) -> None:
        session = self.db.session
        identity = self.get(uid)
        if identity is None:
            raise NotFound("Identity not found.")
        session.query(SessionToken).filter_by(uid=uid).delete(synchronize_session=False)
        session.delete(identity)
        session.commit()
        logger.info("identity %s deleted", uid)

    def authenticate(self, email: str, password: str) -> Identity | None:
        """Return the identity for valid credentials, else None."""
        identity = self.db.session.query(Identity).filter_by(email=normalize_email(email)).first()
        if identity is None or identity.disabled:
            return None
        if not verify_password(password or "", identity.password_hash):
            return None
        identity.last_login_at = utcnow()
        self.db.session.commit()
        return identity
