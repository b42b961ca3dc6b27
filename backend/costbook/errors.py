# Overview: Error taxonomy shared by the ledger, costing and reporting services.

from __future__ import annotations


class BooksError(Exception):
    """Base for every rejection raised by the accounting core."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": str(self)}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BooksError):
    """400-level input problem. Raised before any write."""


class NotFoundError(BooksError):
    """Referenced row does not exist (or vanished under a concurrent writer)."""

    status_code = 404


class InsufficientStockError(BooksError):
    """Aggregated demand exceeds on-hand stock. Raised before any write."""

    status_code = 409


class UndefinedCostError(BooksError):
    """Item has no cost-bearing inbound history, so it cannot be sold."""

    status_code = 409


class ConcurrencyConflict(BooksError):
    """Optimistic version check failed and the row still exists."""

    status_code = 409
