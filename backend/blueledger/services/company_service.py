# Overview: Company (tenant) registration: identity + company + admin profile.

from __future__ import annotations

import logging

from ..errors import InvalidArgument, LedgerError
from ..models import Company, Profile, Role
from ..time_utils import utcnow
from ..validation import MAX_NAME_LENGTH, require_text
from .identity_service import IdentityStore, normalize_email
from .security_service import SecurityLog

logger = logging.getLogger("blueledger.companies")


class CompanyRegistry:
    """
    Creates tenants. The admin's identity is created first; the company and
    the admin profile are then written in one commit. If that commit fails the
    identity is deleted again, so a failed signup leaves nothing behind.
    """

    def __init__(self, db, identities: IdentityStore, security_log: SecurityLog, *, min_password_length: int = 6):
        self.db = db
        self.identities = identities
        self.security_log = security_log
        self.min_password_length = min_password_length

    def register(self, *, name, email, password, company_name) -> tuple[Company, Profile]:
        name = require_text(name, "name", max_length=MAX_NAME_LENGTH)
        company_name = require_text(company_name, "companyName", max_length=MAX_NAME_LENGTH)
        email = normalize_email(email)
        password = str(password or "")
        if not email:
            raise InvalidArgument("email is required")
        if len(password) < self.min_password_length:
            raise InvalidArgument(f"password must be at least {self.min_password_length} characters")

        identity = self.identities.create(email=email, password=password, display_name=name)

        session = self.db.session
        try:
            # Company id is the owner's uid
            company = Company(id=identity.uid, name=company_name, owner_uid=identity.uid)
            profile = Profile(
                uid=identity.uid,
                name=name,
                email=email,
                role=Role.ADMIN,
                company_id=company.id,
                company_name=company_name,
                created_by=None,
                is_active=True,
                created_at=utcnow(),
            )
            session.add(company)
            session.add(profile)
            session.commit()
        except Exception:
            session.rollback()
            logger.exception("company registration failed for %s; removing identity", email)
            try:
                self.identities.delete(identity.uid)
            except LedgerError:
                logger.warning("identity %s already gone during signup rollback", identity.uid)
            raise

        self.security_log.record(
            "COMPANY_CREATED", True,
            uid=identity.uid, company_id=company.id,
            resource=f"company:{company.id}", action="SIGNUP",
        )
        logger.info("company %s registered by %s", company.id, identity.uid)
        return company, profile

    def get(self, company_id: str) -> Company | None:
        return self.db.session.get(Company, company_id)

    def list_all(self) -> list[Company]:
        return self.db.session.query(Company).order_by(Company.created_at, Company.id).all()
