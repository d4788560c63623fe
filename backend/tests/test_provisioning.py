# Overview: Pytest coverage for worker provisioning and its compensation paths.

"""
Worker Provisioning Tests

CreateWorker/DeleteWorker span the identity store and the profile store.
Checks here:
1. Every authorization and input failure happens before any write
2. A failed second step is compensated (identity removed or re-enabled)
3. Interrupted operations are finished by reconcile_pending()
"""

from datetime import timedelta

import pytest

from blueledger.errors import (
    AlreadyExists,
    FailedPrecondition,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    Unauthenticated,
)
from blueledger.extensions import db
from blueledger.models import (
    Identity,
    Profile,
    ProvisioningOperation,
    ProvisioningState,
    Role,
    SecurityEvent,
)

from blueledger.services.provisioning_service import CREATE_WORKER, DELETE_WORKER


def _identity_count():
    return db.session.query(Identity).count()


def _ops(kind=None):
    db.session.expire_all()
    query = db.session.query(ProvisioningOperation)
    if kind:
        query = query.filter_by(kind=kind)
    return query.order_by(ProvisioningOperation.created_at).all()


class FailingRunner:
    def run(self, unit, *, label="transaction"):
        raise RuntimeError("profile store unavailable")


class TestCreateWorker:
    def test_creates_identity_and_profile(self, services, tenant_a):
        uid = services.provisioning.create_worker(tenant_a.admin.uid, "Sam", " Sam@Acme.Test ", "secret1")

        identity = db.session.get(Identity, uid)
        profile = db.session.get(Profile, uid)
        assert identity.email == "sam@acme.test"
        assert identity.disabled is False
        assert profile.role == Role.WORKER
        assert profile.company_id == tenant_a.company_id
        assert profile.company_name == "Company Acme"
        assert profile.created_by == tenant_a.admin.uid

        [op] = _ops(CREATE_WORKER)
        assert op.state == ProvisioningState.COMMITTED
        assert op.worker_uid == uid

    def test_worker_can_log_in(self, services, tenant_a, worker_a):
        assert services.identities.authenticate("worker.a@acme.test", "Password123!").uid == worker_a.uid

    def test_worker_caller_denied_before_any_write(self, services, tenant_a, worker_a):
        before = _identity_count()
        with pytest.raises(PermissionDenied) as exc_info:
            services.provisioning.create_worker(worker_a.uid, "X", "x@acme.test", "secret1")
        assert exc_info.value.message == "Admins only."
        assert _identity_count() == before
        assert db.session.query(SecurityEvent).filter_by(event_type="ROLE_DENIED", uid=worker_a.uid).count() == 1

    def test_unknown_caller(self, services):
        with pytest.raises(PermissionDenied) as exc_info:
            services.provisioning.create_worker("nobody", "X", "x@acme.test", "secret1")
        assert exc_info.value.message == "Admin profile not found."

    def test_no_caller(self, services):
        with pytest.raises(Unauthenticated):
            services.provisioning.create_worker(None, "X", "x@acme.test", "secret1")

    def test_admin_without_company(self, services, tenant_a):
        profile = db.session.get(Profile, tenant_a.admin.uid)
        profile.company_id = None
        db.session.commit()
        before = _identity_count()

        with pytest.raises(FailedPrecondition) as exc_info:
            services.provisioning.create_worker(tenant_a.admin.uid, "X", "x@acme.test", "secret1")
        assert exc_info.value.message == "Admin companyId missing."
        assert _identity_count() == before

    @pytest.mark.parametrize("name,email,password,message", [
        ("", "x@acme.test", "secret1", "name, email, tempPassword are required."),
        ("X", "  ", "secret1", "name, email, tempPassword are required."),
        ("X", "x@acme.test", None, "name, email, tempPassword are required."),
        ("X", "x@acme.test", "12345", "tempPassword must be at least 6 characters."),
    ])
    def test_invalid_input(self, services, tenant_a, name, email, password, message):
        before = _identity_count()
        with pytest.raises(InvalidArgument) as exc_info:
            services.provisioning.create_worker(tenant_a.admin.uid, name, email, password)
        assert exc_info.value.message == message
        assert _identity_count() == before
        assert _ops(CREATE_WORKER) == []

    def test_duplicate_email(self, services, tenant_a, worker_a):
        with pytest.raises(AlreadyExists):
            services.provisioning.create_worker(tenant_a.admin.uid, "Again", "worker.a@acme.test", "secret1")
        states = [op.state for op in _ops(CREATE_WORKER)]
        assert states == [ProvisioningState.COMMITTED, ProvisioningState.ROLLED_BACK]

    def test_profile_failure_removes_identity(self, services, tenant_a, monkeypatch):
        before = _identity_count()
        monkeypatch.setattr(services.provisioning, "runner", FailingRunner())

        with pytest.raises(RuntimeError):
            services.provisioning.create_worker(tenant_a.admin.uid, "Lost", "lost@acme.test", "secret1")

        assert _identity_count() == before
        assert db.session.query(Identity).filter_by(email="lost@acme.test").first() is None
        [op] = _ops(CREATE_WORKER)
        assert op.state == ProvisioningState.ROLLED_BACK
        assert "profile store unavailable" in op.error


class TestDeleteWorker:
    def test_removes_profile_and_identity(self, services, tenant_a, worker_a):
        result = services.provisioning.delete_worker(tenant_a.admin.uid, worker_a.uid)

        assert result == {"ok": True}
        assert db.session.get(Profile, worker_a.uid) is None
        assert db.session.get(Identity, worker_a.uid) is None
        [op] = _ops(DELETE_WORKER)
        assert op.state == ProvisioningState.COMMITTED

    def test_other_company_worker_denied(self, services, tenant_a, tenant_b, worker_a):
        with pytest.raises(PermissionDenied) as exc_info:
            services.provisioning.delete_worker(tenant_b.admin.uid, worker_a.uid)

        assert exc_info.value.message == "Not your worker."
        assert db.session.get(Profile, worker_a.uid) is not None
        assert db.session.get(Identity, worker_a.uid).disabled is False
        assert db.session.query(SecurityEvent).filter_by(
            event_type="CROSS_TENANT_ACCESS_DENIED", uid=tenant_b.admin.uid,
        ).count() == 1

    def test_admin_target_rejected(self, services, tenant_a):
        with pytest.raises(FailedPrecondition) as exc_info:
            services.provisioning.delete_worker(tenant_a.admin.uid, tenant_a.admin.uid)
        assert exc_info.value.message == "Target user is not a worker."

    def test_unknown_worker(self, services, tenant_a):
        with pytest.raises(NotFound) as exc_info:
            services.provisioning.delete_worker(tenant_a.admin.uid, "ghost")
        assert exc_info.value.message == "Worker not found."

    def test_blank_worker_uid(self, services, tenant_a):
        with pytest.raises(InvalidArgument) as exc_info:
            services.provisioning.delete_worker(tenant_a.admin.uid, "  ")
        assert exc_info.value.message == "workerUid is required."

    def test_worker_cannot_delete(self, services, tenant_a, worker_a):
        other = services.provisioning.create_worker(tenant_a.admin.uid, "Other", "other@acme.test", "secret1")
        with pytest.raises(PermissionDenied):
            services.provisioning.delete_worker(worker_a.uid, other)
        assert db.session.get(Profile, other) is not None

    def test_profile_failure_reenables_identity(self, services, tenant_a, worker_a, monkeypatch):
        monkeypatch.setattr(services.provisioning, "runner", FailingRunner())

        with pytest.raises(RuntimeError):
            services.provisioning.delete_worker(tenant_a.admin.uid, worker_a.uid)

        db.session.expire_all()
        assert db.session.get(Profile, worker_a.uid) is not None
        assert db.session.get(Identity, worker_a.uid).disabled is False
        [op] = _ops(DELETE_WORKER)
        assert op.state == ProvisioningState.ROLLED_BACK

    def test_profile_failure_keeps_prior_disabled_flag(self, services, tenant_a, worker_a, monkeypatch):
        services.identities.set_disabled(worker_a.uid, True)
        monkeypatch.setattr(services.provisioning, "runner", FailingRunner())

        with pytest.raises(RuntimeError):
            services.provisioning.delete_worker(tenant_a.admin.uid, worker_a.uid)

        db.session.expire_all()
        assert db.session.get(Identity, worker_a.uid).disabled is True
        [op] = _ops(DELETE_WORKER)
        assert op.state == ProvisioningState.ROLLED_BACK
        assert op.identity_was_disabled is True

    def test_deleted_worker_sessions_revoked(self, services, tenant_a, worker_a):
        _, token = services.sessions.create(worker_a.uid)
        services.provisioning.delete_worker(tenant_a.admin.uid, worker_a.uid)
        with pytest.raises(Unauthenticated):
            services.sessions.resolve(token)


class TestListWorkers:
    def test_scoped_to_company(self, services, tenant_a, tenant_b, worker_a):
        services.provisioning.create_worker(tenant_b.admin.uid, "B Worker", "bw@beta.test", "secret1")

        workers_a = services.provisioning.list_workers(tenant_a.company_id)
        assert [w.uid for w in workers_a] == [worker_a.uid]

    def test_filter_by_creator(self, services, tenant_a, worker_a):
        assert len(services.provisioning.list_workers(tenant_a.company_id, created_by=tenant_a.admin.uid)) == 1
        assert services.provisioning.list_workers(tenant_a.company_id, created_by="someone-else") == []


class TestReconcile:
    def _stuck_op(self, services, tenant, kind, state, worker_uid=None, email=None):
        admin = services.provisioning.require_admin(tenant.admin.uid)
        op = services.provisioning._begin(kind, admin, worker_uid=worker_uid, worker_email=email)
        services.provisioning._transition(op, state)
        return op.id

    def test_create_with_orphan_identity_rolled_back(self, services, tenant_a):
        orphan = services.identities.create(email="orphan@acme.test", password="secret1", display_name="Orphan")
        op_id = self._stuck_op(services, tenant_a, CREATE_WORKER, ProvisioningState.IDENTITY_CREATED, orphan.uid)

        finished = services.provisioning.reconcile_pending(older_than=timedelta(0))

        assert [op.id for op in finished] == [op_id]
        assert db.session.get(Identity, orphan.uid) is None
        assert db.session.get(ProvisioningOperation, op_id).state == ProvisioningState.ROLLED_BACK

    def test_create_with_profile_committed(self, services, tenant_a, worker_a):
        op_id = self._stuck_op(services, tenant_a, CREATE_WORKER, ProvisioningState.PROFILE_WRITTEN, worker_a.uid)

        services.provisioning.reconcile_pending(older_than=timedelta(0))

        assert db.session.get(ProvisioningOperation, op_id).state == ProvisioningState.COMMITTED
        assert db.session.get(Identity, worker_a.uid) is not None

    def test_delete_with_profile_gone_finishes(self, services, tenant_a, worker_a):
        services.identities.set_disabled(worker_a.uid, True)
        db.session.delete(db.session.get(Profile, worker_a.uid))
        db.session.commit()
        op_id = self._stuck_op(services, tenant_a, DELETE_WORKER, ProvisioningState.PROFILE_DELETED, worker_a.uid)

        services.provisioning.reconcile_pending(older_than=timedelta(0))

        assert db.session.get(Identity, worker_a.uid) is None
        assert db.session.get(ProvisioningOperation, op_id).state == ProvisioningState.COMMITTED

    def test_delete_with_profile_present_reenables(self, services, tenant_a, worker_a):
        services.identities.set_disabled(worker_a.uid, True)
        op_id = self._stuck_op(services, tenant_a, DELETE_WORKER, ProvisioningState.IDENTITY_DISABLED, worker_a.uid)

        services.provisioning.reconcile_pending(older_than=timedelta(0))

        assert db.session.get(Identity, worker_a.uid).disabled is False
        assert db.session.get(ProvisioningOperation, op_id).state == ProvisioningState.ROLLED_BACK

    def test_recent_operations_left_alone(self, services, tenant_a, worker_a):
        self._stuck_op(services, tenant_a, CREATE_WORKER, ProvisioningState.IDENTITY_CREATED, worker_a.uid)
        assert services.provisioning.reconcile_pending(older_than=timedelta(hours=1)) == []

    def test_delete_rollback_keeps_identity_disabled_when_it_was(self, services, tenant_a, worker_a):
        services.identities.set_disabled(worker_a.uid, True)
        op_id = self._stuck_op(services, tenant_a, DELETE_WORKER, ProvisioningState.IDENTITY_DISABLED, worker_a.uid)
        op = db.session.get(ProvisioningOperation, op_id)
        op.identity_was_disabled = True
        db.session.commit()

        services.provisioning.reconcile_pending(older_than=timedelta(0))

        assert db.session.get(Identity, worker_a.uid).disabled is True
        assert db.session.get(ProvisioningOperation, op_id).state == ProvisioningState.ROLLED_BACK
