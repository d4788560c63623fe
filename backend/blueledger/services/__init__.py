"""
Service container.

create_app() builds one Services instance with the database handle injected
and stores it on app.extensions["blueledger"]. Routes reach services through
get_services(); tests may build their own with build_services().
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from .company_service import CompanyRegistry
from .concurrency import TransactionRunner
from .identity_service import IdentityStore
from .ledger_service import StockLedger
from .message_service import MessageBoard
from .provisioning_service import WorkerProvisioning
from .security_service import SecurityLog
from .session_service import SessionManager
from .snapshot_feed import MESSAGES, PRODUCTS, WORKERS, SnapshotFeed
from .tenant_service import TenantGuard

EXTENSION_KEY = "blueledger"


@dataclass
class Services:
    runner: TransactionRunner
    security_log: SecurityLog
    guard: TenantGuard
    feed: SnapshotFeed
    identities: IdentityStore
    sessions: SessionManager
    companies: CompanyRegistry
    ledger: StockLedger
    provisioning: WorkerProvisioning
    messages: MessageBoard


def build_services(db, config) -> Services:
    """Wire every service from a config mapping (Flask app.config or a plain dict)."""
    runner = TransactionRunner(
        db,
        max_attempts=config.get("LEDGER_TX_MAX_ATTEMPTS", 5),
        backoff_base=config.get("LEDGER_TX_BACKOFF_BASE", 0.02),
    )
    security_log = SecurityLog(db)
    guard = TenantGuard(security_log)
    feed = SnapshotFeed()
    identities = IdentityStore(db, bcrypt_rounds=config.get("BCRYPT_ROUNDS", 12))
    min_password = config.get("WORKER_MIN_PASSWORD_LENGTH", 6)

    services = Services(
        runner=runner,
        security_log=security_log,
        guard=guard,
        feed=feed,
        identities=identities,
        sessions=SessionManager(
            db,
            absolute_timeout=timedelta(hours=config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)),
            idle_timeout=timedelta(hours=config.get("SESSION_IDLE_TIMEOUT_HOURS", 2)),
        ),
        companies=CompanyRegistry(db, identities, security_log, min_password_length=min_password),
        ledger=StockLedger(db, runner, guard, feed, restock_max=config.get("RESTOCK_MAX_AMOUNT", 1_000_000)),
        provisioning=WorkerProvisioning(
            db, identities, runner, security_log, feed,
            min_password_length=min_password,
        ),
        messages=MessageBoard(db, runner, guard, feed, list_limit=config.get("MESSAGE_LIST_LIMIT", 200)),
    )

    def load_products(company_id: str) -> list[dict]:
        db.session.expire_all()
        return [p.to_dict() for p in services.ledger.list_products(company_id)]

    def load_messages(company_id: str, from_uid: str | None = None) -> list[dict]:
        db.session.expire_all()
        return [m.to_dict() for m in services.messages.list_recent(company_id, from_uid=from_uid)]

    def load_workers(company_id: str) -> list[dict]:
        db.session.expire_all()
        return [w.to_dict() for w in services.provisioning.list_workers(company_id)]

    feed.register(PRODUCTS, load_products)
    feed.register(MESSAGES, load_messages)
    feed.register(WORKERS, load_workers)
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
