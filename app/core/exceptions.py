"""
Error taxonomy for the fee ledger.

Every failure a service raises is a LedgerError carrying a stable code and
the HTTP status it maps to. Only ConcurrentModificationError is meant to be
retried automatically by a caller.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all ledger errors."""
    code = "LEDGER_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidInputError(LedgerError):
    """Malformed or out-of-range caller data."""
    code = "INVALID_INPUT"
    http_status = 400


class ImmutableFieldError(InvalidInputError):
    """Attempt to change a write-once field."""
    code = "IMMUTABLE_FIELD"


class NotFoundError(LedgerError):
    """Referenced student, transaction or plan does not exist."""
    code = "NOT_FOUND"
    http_status = 404


class ConflictError(LedgerError):
    """Uniqueness violation, e.g. a second EMI plan for a student."""
    code = "CONFLICT"
    http_status = 409


class InvalidStatusTransitionError(ConflictError):
    """Transaction status change outside the allowed state machine."""
    code = "INVALID_STATUS_TRANSITION"


class ConcurrentModificationError(LedgerError):
    """Balance changed between read and conditional write; safe to retry."""
    code = "CONCURRENT_MODIFICATION"
    http_status = 409


class PersistenceError(LedgerError):
    """Storage layer unavailable or failed."""
    code = "PERSISTENCE_ERROR"
    http_status = 500
