# Overview: Typed error taxonomy for stock ledger operations.

"""
Stock Ledger Errors

Every business-rule violation raised by a service is a StockLedgerError
subclass. Each carries:
- message: user-facing text (names the product/location and the numbers)
- details: structured payload for clients and logs
- status_code: the HTTP class a transport layer should map it to

Store failures (SQLAlchemy errors) are NOT wrapped; they propagate as-is
after the service rolls back its transaction.
"""

from __future__ import annotations


class StockLedgerError(Exception):
    """Base class for stock ledger business errors."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "type": type(self).__name__}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(StockLedgerError):
    """404-level: referenced record does not exist."""

    status_code = 404


class LocationNotFoundError(NotFoundError):
    """Location missing or owned by another tenant."""


class AccessDeniedError(StockLedgerError):
    """403-level: caller's tenant does not own the record."""

    status_code = 403


class InvalidInputError(StockLedgerError, ValueError):
    """400-level input problem."""


class InvalidQuantityError(InvalidInputError):
    """Quantity is zero, negative, or not an integer."""


class InvalidItemsError(InvalidInputError):
    """One or more sale items reference missing, inactive or foreign products."""

    status_code = 404


class InvalidTransferError(InvalidInputError):
    """Transfer source and destination are the same location."""


class InsufficientStockError(StockLedgerError):
    """Requested outflow exceeds derived stock at the location."""

    def __init__(
        self,
        message: str,
        *,
        product_id: int,
        location_id: int,
        available: int,
        requested: int,
        product_name: str | None = None,
        location_name: str | None = None,
        details: dict | None = None,
    ):
        payload = {
            "product_id": product_id,
            "product_name": product_name,
            "location_id": location_id,
            "location_name": location_name,
            "available": available,
            "requested": requested,
            "shortfall": max(requested - max(available, 0), 0),
        }
        if details:
            payload.update(details)
        super().__init__(message, details=payload)
        self.product_id = product_id
        self.location_id = location_id
        self.available = available
        self.requested = requested

    @property
    def shortfall(self) -> int:
        return self.details["shortfall"]


class NegativeStockError(InsufficientStockError):
    """
    Derived stock is already negative at the location.

    This is a data-integrity signal, not an ordinary shortfall: details carry
    the row counts and sums that produced the negative value.
    """
