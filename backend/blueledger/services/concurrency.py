# Overview: Single-record transaction runner; retries contention, never domain failures.

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import TransactionAborted

logger = logging.getLogger("blueledger.transactions")

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id compare-and-set on UPDATE covers SQLite.
    """
    return query.with_for_update()


class TransactionRunner:
    """
    Runs read-validate-compute-write units atomically against one session.

    The unit receives the session, must re-read everything it depends on, and
    must not commit. On StaleDataError (a concurrent commit bumped the row
    version) or OperationalError (lock timeout, deadlock) the session is rolled
    back and the whole unit runs again from a fresh read, up to max_attempts.
    Any other exception rolls back and propagates untouched.
    """

    def __init__(self, db, *, max_attempts: int = 5, backoff_base: float = 0.02):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.db = db
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base

    @property
    def session(self):
        return self.db.session

    def run(self, unit: Callable[..., T], *, label: str = "transaction") -> T:
        session = self.session
        last_exc: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = unit(session)
                session.commit()
                return result
            except (OperationalError, StaleDataError) as exc:
                session.rollback()
                last_exc = exc
                if attempt >= self.max_attempts:
                    break
                delay = self.backoff_base * (2 ** (attempt - 1))
                logger.info(
                    "%s contention on attempt %d/%d (%s); retrying in %.3fs",
                    label, attempt, self.max_attempts, type(exc).__name__, delay,
                )
                time.sleep(delay)
            except Exception:
                session.rollback()
                raise

        logger.warning("%s aborted after %d attempts", label, self.max_attempts)
        raise TransactionAborted(
            "The record is busy; please try again.",
            details={"attempts": self.max_attempts},
        ) from last_exc
