# Overview: Typed error kinds raised by the stock ledger engines.

"""
Error taxonomy for the stock ledger core.

Engines raise one LedgerError subclass per failure kind and never pick a
transport status; the HTTP boundary (routes/errors.py) owns that mapping.

- NotFoundError: sale/transfer/branch absent or outside the business
- InvalidArgumentError: bad items, mismatched branch, foreign product, ...
- ConflictError: duplicate offline idempotency key, repeated opening balance
- InsufficientStockError: source branch holds less than requested
- InternalError: storage failed unexpectedly inside a unit of work
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"
    CONFLICT = "conflict"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INTERNAL = "internal"


class LedgerError(Exception):
    """Base class for every error the ledger core raises."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind.value,
            "details": self.details,
        }


class NotFoundError(LedgerError):
    kind = ErrorKind.NOT_FOUND


class InvalidArgumentError(LedgerError):
    kind = ErrorKind.INVALID_ARGUMENT


class ConflictError(LedgerError):
    kind = ErrorKind.CONFLICT


class InsufficientStockError(LedgerError):
    kind = ErrorKind.INSUFFICIENT_STOCK


class InternalError(LedgerError):
    kind = ErrorKind.INTERNAL
