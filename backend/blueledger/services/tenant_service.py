"""
Tenant Isolation Guard

SECURITY INVARIANTS:
1. Every authenticated request carries a Caller whose company_id comes from
   the persisted profile, never from the request payload.
2. Every list query filters by company_id == caller.company_id.
3. Every single-record mutation re-checks company_id against the record as
   read inside its own transaction, even if the id came from a scoped list.
4. Cross-tenant attempts are logged as security events and surface as
   PermissionDenied with no partial mutation.

USAGE:
    with guard.reporting(caller_uid, company_id, action="SELL", resource=f"product:{pid}"):
        runner.run(unit)           # unit calls guard.require_same_company(...)

    products = guard.scoped(session.query(Product), Product, company_id).all()
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass

from ..errors import FailedPrecondition, PermissionDenied
from ..models import Role
from .security_service import SecurityLog


@dataclass(frozen=True)
class Caller:
    """Authenticated caller, resolved from identity + persisted profile."""
    uid: str
    company_id: str | None
    role: str
    name: str
    email: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class CrossTenantAccessDenied(PermissionDenied):
    """PermissionDenied raised by the guard itself; carries audit context."""

    def __init__(self, record_company_id: str | None, caller_company_id: str):
        super().__init__("Not your company.")
        self.record_company_id = record_company_id
        self.caller_company_id = caller_company_id


class TenantGuard:
    def __init__(self, security_log: SecurityLog):
        self.security_log = security_log

    @staticmethod
    def require_company(company_id: str | None) -> str:
        """
        Caller must belong to a company before touching tenant data.

        Raises FailedPrecondition rather than PermissionDenied: the problem
        is the caller's own profile, not the target.
        """
        if company_id is None or not str(company_id).strip():
            raise FailedPrecondition("Missing companyId in caller profile.")
        return str(company_id)

    def require_same_company(self, record_company_id: str | None, caller_company_id: str | None) -> None:
        """
        Core tenant isolation check. Call with the company_id of the record
        as freshly read inside the current transaction.
        """
        caller_company_id = self.require_company(caller_company_id)
        if record_company_id is None or str(record_company_id) != caller_company_id:
            raise CrossTenantAccessDenied(record_company_id, caller_company_id)

    @staticmethod
    def scoped(query, model, company_id: str | None):
        """Apply the mandatory company_id predicate to a query over `model`."""
        company_id = TenantGuard.require_company(company_id)
        return query.filter(model.company_id == company_id)

    @contextmanager
    def reporting(
        self,
        uid: str | None,
        company_id: str | None,
        *,
        action: str,
        resource: str,
    ):
        """
        Record guard denials raised inside the block as security events.

        The event is written after the block exits, i.e. after the failed
        transaction was rolled back, so it is not lost with it.
        """
        try:
            yield
        except CrossTenantAccessDenied as exc:
            self.security_log.record(
                "CROSS_TENANT_ACCESS_DENIED",
                False,
                uid=uid,
                company_id=company_id,
                resource=resource,
                action=action,
                reason=f"{resource} is not owned by the caller's company",
            )
            raise
