# Overview: Error taxonomy for the inventory ledger; each error maps to an HTTP status.

from __future__ import annotations


class LedgerError(Exception):
    """Base class for expected ledger failures surfaced to the caller."""

    http_status = 500
    code = "INTERNAL"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(LedgerError, ValueError):
    """400-level input problem (malformed field, bad kind, bad reason, bad quantity)."""

    http_status = 400
    code = "VALIDATION_ERROR"


class NotFoundError(LedgerError):
    """Referenced entity does not exist (or the catalog reports it unusable)."""

    http_status = 404
    code = "NOT_FOUND"


class VoidedError(LedgerError):
    """Referenced entity has been soft-deleted."""

    http_status = 400
    code = "VOIDED"


class DuplicateRecordError(LedgerError):
    """A live stock record already exists for the (product, location, variant) tuple."""

    http_status = 409
    code = "DUPLICATE_RECORD"


class InsufficientStockError(LedgerError):
    """Movement or reversal would drive quantity on hand below zero."""

    http_status = 400
    code = "INSUFFICIENT_STOCK"


class HasStockError(LedgerError):
    """Void attempted on a stock record whose quantity is not zero."""

    http_status = 400
    code = "HAS_STOCK"


class AlreadyVoidedError(LedgerError):
    http_status = 400
    code = "ALREADY_VOIDED"


class ChainedReversalError(LedgerError):
    """Attempt to reverse an entry that is itself a reversal."""

    http_status = 400
    code = "CHAINED_REVERSAL"


class LedgerBusyError(LedgerError):
    """Lock contention outlasted every retry attempt. Safe for the caller to retry."""

    http_status = 409
    code = "BUSY"


class InternalError(LedgerError):
    http_status = 500
    code = "INTERNAL"
