"""
Error taxonomy shared by the ledger, tenant guard and provisioning services.

Every error carries a stable machine code (rendered as "error" in JSON
responses), an HTTP status, and a human-readable message the UI can show as-is.
Services raise these; routes never build error payloads by hand.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all expected, user-visible failures."""

    code = "internal"
    http_status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class Unauthenticated(LedgerError):
    """No caller identity (missing, invalid or expired token)."""
    code = "unauthenticated"
    http_status = 401


class PermissionDenied(LedgerError):
    """Tenant mismatch or role mismatch."""
    code = "permission-denied"
    http_status = 403


class InvalidArgument(LedgerError):
    """Malformed or missing input."""
    code = "invalid-argument"
    http_status = 400


class FailedPrecondition(LedgerError):
    """The caller's own profile or the target is not in a usable state."""
    code = "failed-precondition"
    http_status = 412


class NotFound(LedgerError):
    code = "not-found"
    http_status = 404


class AlreadyExists(LedgerError):
    code = "already-exists"
    http_status = 409


class InsufficientStock(LedgerError):
    """Requested sale exceeds the quantity read inside the transaction."""
    code = "insufficient-stock"
    http_status = 409

    def __init__(self, available: int):
        super().__init__(f"Only {available} left.", details={"available": available})
        self.available = available


class TransactionAborted(LedgerError):
    """Contention retries exhausted; nothing was committed."""
    code = "aborted"
    http_status = 503


class DocumentSchemaError(FailedPrecondition):
    """A stored record does not match its schema or breaks a ledger invariant."""
