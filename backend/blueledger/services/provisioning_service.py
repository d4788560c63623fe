# Overview: Privileged worker provisioning (identity store + profile store) as a saga.

"""
Worker Provisioning

CreateWorker and DeleteWorker touch two independent stores: the identity
store (credentials) and the profile collection. They cannot share one
commit, so each operation is a saga recorded in provisioning_operations:

    create_worker: STARTED -> IDENTITY_CREATED -> PROFILE_WRITTEN -> COMMITTED
                                     \\-> (profile write failed) -> ROLLED_BACK
                                          identity deleted

    delete_worker: STARTED -> IDENTITY_DISABLED -> PROFILE_DELETED -> COMMITTED
                                     \\-> (profile delete failed) -> ROLLED_BACK
                                          identity re-enabled

Every authorization and input check runs before the first write, so a
rejected call leaves both stores untouched. A saga interrupted mid-way
(crash, failed compensation) stays in a non-terminal state and is finished
by reconcile_pending().
"""

from __future__ import annotations

import logging
from datetime import timedelta

from ..errors import (
    FailedPrecondition,
    InvalidArgument,
    LedgerError,
    NotFound,
    PermissionDenied,
    Unauthenticated,
)
from ..models import Identity, Profile, ProvisioningOperation, ProvisioningState, Role
from ..time_utils import utcnow
from ..validation import ProfileSnapshot
from .concurrency import TransactionRunner
from .identity_service import IdentityStore, normalize_email
from .security_service import SecurityLog
from .snapshot_feed import WORKERS, SnapshotFeed

logger = logging.getLogger("blueledger.provisioning")

CREATE_WORKER = "create_worker"
DELETE_WORKER = "delete_worker"


class WorkerProvisioning:
    def __init__(
        self,
        db,
        identities: IdentityStore,
        runner: TransactionRunner,
        security_log: SecurityLog,
        feed: SnapshotFeed | None = None,
        *,
        min_password_length: int = 6,
    ):
        self.db = db
        self.identities = identities
        self.runner = runner
        self.security_log = security_log
        self.feed = feed
        self.min_password_length = min_password_length

    # =========================================================================
    # CALLER RESOLUTION
    # =========================================================================

    def require_admin(self, caller_uid: str | None) -> ProfileSnapshot:
        """
        Resolve the caller's persisted profile and require an admin with a company.

        The role and company come from the stored profile, never from the
        request or a cached session value.
        """
        if not caller_uid:
            raise Unauthenticated("Login required.")

        profile = self._fresh_profile(caller_uid)
        if profile is None:
            raise PermissionDenied("Admin profile not found.")

        admin = ProfileSnapshot.from_model(profile)
        if admin.role != Role.ADMIN:
            self.security_log.record(
                "ROLE_DENIED", False,
                uid=caller_uid, company_id=admin.company_id,
                reason="worker provisioning requires admin role",
            )
            raise PermissionDenied("Admins only.")
        if not admin.company_id:
            raise FailedPrecondition("Admin companyId missing.")
        return admin

    # =========================================================================
    # CREATE
    # =========================================================================

    def create_worker(self, caller_uid: str | None, name, email, temp_password) -> str:
        """Create a worker identity and profile in the admin's company. Returns the worker uid."""
        admin = self.require_admin(caller_uid)

        name = str(name or "").strip()
        email = normalize_email(email)
        temp_password = str(temp_password or "").strip()

        if not name or not email or not temp_password:
            raise InvalidArgument("name, email, tempPassword are required.")
        if len(temp_password) < self.min_password_length:
            raise InvalidArgument(f"tempPassword must be at least {self.min_password_length} characters.")

        op = self._begin(CREATE_WORKER, admin, worker_email=email)

        try:
            identity = self.identities.create(email=email, password=temp_password, display_name=name)
        except LedgerError as exc:
            self._transition(op, ProvisioningState.ROLLED_BACK, error=exc.message)
            raise
        worker_uid = identity.uid
        self._transition(op, ProvisioningState.IDENTITY_CREATED, worker_uid=worker_uid)

        def write_profile(session) -> None:
            session.add(Profile(
                uid=worker_uid,
                name=name,
                email=email,
                role=Role.WORKER,
                company_id=admin.company_id,
                company_name=admin.company_name,
                created_by=admin.uid,
                is_active=True,
                created_at=utcnow(),
            ))

        try:
            self.runner.run(write_profile, label=f"write worker profile {worker_uid}")
        except Exception as exc:
            logger.exception("profile write failed for worker %s; rolling back identity", worker_uid)
            self._rollback_created_identity(op, worker_uid, exc)
            raise

        self._transition(op, ProvisioningState.PROFILE_WRITTEN)
        self._transition(op, ProvisioningState.COMMITTED)

        self.security_log.record(
            "WORKER_CREATED", True,
            uid=admin.uid, company_id=admin.company_id,
            resource=f"worker:{worker_uid}", action="CREATE_WORKER",
        )
        self._publish(admin.company_id)
        return worker_uid

    def _rollback_created_identity(self, op: ProvisioningOperation, worker_uid: str, cause: Exception) -> None:
        try:
            self.identities.delete(worker_uid)
        except Exception:
            self.db.session.rollback()
            logger.exception("compensation failed: identity %s left for reconcile", worker_uid)
            self._transition(op, ProvisioningState.IDENTITY_CREATED, error=f"profile write failed: {cause}; identity delete failed")
            return
        self._transition(op, ProvisioningState.ROLLED_BACK, error=f"profile write failed: {cause}")

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete_worker(self, caller_uid: str | None, worker_uid) -> dict:
        """Remove a worker's profile and identity. Only workers of the admin's own company."""
        admin = self.require_admin(caller_uid)

        worker_uid = str(worker_uid or "").strip()
        if not worker_uid:
            raise InvalidArgument("workerUid is required.")

        profile = self._fresh_profile(worker_uid)
        if profile is None:
            raise NotFound("Worker not found.")
        worker = ProfileSnapshot.from_model(profile)
        if worker.role != Role.WORKER:
            raise FailedPrecondition("Target user is not a worker.")
        if worker.company_id != admin.company_id:
            self.security_log.record(
                "CROSS_TENANT_ACCESS_DENIED", False,
                uid=admin.uid, company_id=admin.company_id,
                resource=f"worker:{worker_uid}", action="DELETE_WORKER",
                reason=f"worker:{worker_uid} is not owned by the caller's company",
            )
            raise PermissionDenied("Not your worker.")

        op = self._begin(DELETE_WORKER, admin, worker_uid=worker_uid, worker_email=worker.email)

        identity = self.identities.get(worker_uid)
        if identity is not None:
            op.identity_was_disabled = bool(identity.disabled)
            self.identities.set_disabled(worker_uid, True)
        self._transition(op, ProvisioningState.IDENTITY_DISABLED)

        def remove_profile(session) -> None:
            current = session.get(Profile, worker_uid, populate_existing=True)
            if current is None:
                return
            if current.role != Role.WORKER or current.company_id != admin.company_id:
                raise PermissionDenied("Not your worker.")
            session.delete(current)

        try:
            self.runner.run(remove_profile, label=f"delete worker profile {worker_uid}")
        except Exception as exc:
            logger.exception("profile delete failed for worker %s; re-enabling identity", worker_uid)
            self._restore_disabled(op)
            self._transition(op, ProvisioningState.ROLLED_BACK, error=f"profile delete failed: {exc}")
            raise
        self._transition(op, ProvisioningState.PROFILE_DELETED)

        try:
            if self.identities.get(worker_uid) is not None:
                self.identities.delete(worker_uid)
        except Exception as exc:
            self.db.session.rollback()
            # Identity stays disabled; reconcile_pending() finishes the delete.
            logger.exception("identity delete failed for worker %s; left disabled for reconcile", worker_uid)
            self._transition(op, ProvisioningState.PROFILE_DELETED, error=f"identity delete failed: {exc}")
        else:
            self._transition(op, ProvisioningState.COMMITTED)

        self.security_log.record(
            "WORKER_DELETED", True,
            uid=admin.uid, company_id=admin.company_id,
            resource=f"worker:{worker_uid}", action="DELETE_WORKER",
        )
        self._publish(admin.company_id)
        return {"ok": True}

    def _restore_disabled(self, op: ProvisioningOperation) -> None:
        """Put the identity's disabled flag back to what it was before the delete began."""
        self.db.session.rollback()
        if self.identities.get(op.worker_uid) is not None:
            self.identities.set_disabled(op.worker_uid, bool(op.identity_was_disabled))

    # =========================================================================
    # READS
    # =========================================================================

    def list_workers(self, company_id: str | None, *, created_by: str | None = None) -> list[Profile]:
        """Workers of one company, newest first; optionally only those created by one admin."""
        if not company_id:
            raise FailedPrecondition("Missing companyId in caller profile.")
        query = (
            self.db.session.query(Profile)
            .filter(Profile.company_id == company_id, Profile.role == Role.WORKER)
        )
        if created_by:
            query = query.filter(Profile.created_by == created_by)
        return query.order_by(Profile.created_at.desc(), Profile.uid).all()

    # =========================================================================
    # RECOVERY
    # =========================================================================

    def reconcile_pending(self, *, older_than: timedelta = timedelta(minutes=5)) -> list[ProvisioningOperation]:
        """
        Drive every non-terminal saga older than `older_than` to a terminal state.

        create_worker: profile present -> COMMITTED, otherwise the identity is
        deleted -> ROLLED_BACK.
        delete_worker: profile still present -> identity's prior disabled flag restored ->
        ROLLED_BACK, otherwise identity deleted -> COMMITTED.
        """
        cutoff = utcnow() - older_than
        pending = (
            self.db.session.query(ProvisioningOperation)
            .filter(ProvisioningOperation.state.notin_(ProvisioningState.TERMINAL))
            .filter(ProvisioningOperation.updated_at <= cutoff)
            .order_by(ProvisioningOperation.created_at)
            .all()
        )

        finished = []
        for op in pending:
            try:
                if op.kind == CREATE_WORKER:
                    self._reconcile_create(op)
                elif op.kind == DELETE_WORKER:
                    self._reconcile_delete(op)
                else:
                    logger.warning("unknown provisioning kind %r on %s", op.kind, op.id)
                    continue
            except Exception:
                self.db.session.rollback()
                logger.exception("reconcile failed for provisioning operation %s", op.id)
                continue
            finished.append(op)
        return finished

    def _reconcile_create(self, op: ProvisioningOperation) -> None:
        worker_uid = op.worker_uid
        if worker_uid is None and op.worker_email:
            identity = self.db.session.query(Identity).filter_by(email=op.worker_email).first()
            worker_uid = identity.uid if identity else None

        if worker_uid and self._fresh_profile(worker_uid) is not None:
            self._transition(op, ProvisioningState.COMMITTED, worker_uid=worker_uid)
            return
        if worker_uid and self.identities.get(worker_uid) is not None:
            self.identities.delete(worker_uid)
        self._transition(op, ProvisioningState.ROLLED_BACK, worker_uid=worker_uid, error=op.error or "reconciled: no profile")

    def _reconcile_delete(self, op: ProvisioningOperation) -> None:
        worker_uid = op.worker_uid
        if self._fresh_profile(worker_uid) is not None:
            if self.identities.get(worker_uid) is not None:
                self.identities.set_disabled(worker_uid, bool(op.identity_was_disabled))
            self._transition(op, ProvisioningState.ROLLED_BACK, error=op.error or "reconciled: profile still present")
            return
        if self.identities.get(worker_uid) is not None:
            self.identities.delete(worker_uid)
        self._transition(op, ProvisioningState.COMMITTED)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _fresh_profile(self, uid: str) -> Profile | None:
        return self.db.session.get(Profile, uid, populate_existing=True)

    def _begin(self, kind: str, admin: ProfileSnapshot, *, worker_uid: str | None = None, worker_email: str | None = None) -> ProvisioningOperation:
        now = utcnow()
        op = ProvisioningOperation(
            kind=kind,
            company_id=admin.company_id,
            actor_uid=admin.uid,
            worker_uid=worker_uid,
            worker_email=worker_email,
            state=ProvisioningState.STARTED,
            created_at=now,
            updated_at=now,
        )
        session = self.db.session
        session.add(op)
        session.commit()
        return op

    def _transition(self, op: ProvisioningOperation, state: str, *, worker_uid: str | None = None, error: str | None = None) -> None:
        op.state = state
        if worker_uid is not None:
            op.worker_uid = worker_uid
        if error is not None:
            op.error = error
        op.updated_at = utcnow()
        self.db.session.commit()
        logger.info("provisioning %s %s -> %s (worker=%s)", op.kind, op.id, state, op.worker_uid)

    def _publish(self, company_id: str | None) -> None:
        if self.feed is not None and company_id:
            self.feed.publish(company_id, WORKERS)
