"""
Error taxonomy for the trading core.

Every failure a trade or recalculation can end in is one of these kinds.
Validation errors are raised before anything is mutated; conflict and
persistence errors are raised from the unit of work and always leave the
transaction rolled back. The public operations convert them into failed
results rather than letting them escape.
"""

import enum
from decimal import Decimal
from typing import Any


class ErrorKind(str, enum.Enum):
    """Kinds of trading failures, stable for callers to map to status codes."""

    INVALID_QUANTITY = "INVALID_QUANTITY"
    INVALID_PRICE = "INVALID_PRICE"
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    NO_HOLDINGS = "NO_HOLDINGS"
    INSUFFICIENT_HOLDINGS = "INSUFFICIENT_HOLDINGS"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"


class TradingError(Exception):
    """Base exception for all trading core errors."""

    kind: ErrorKind
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidQuantityError(TradingError):
    """Quantity was zero or negative - always a caller bug."""

    kind = ErrorKind.INVALID_QUANTITY

    def __init__(self, quantity: int):
        super().__init__(
            f"Quantity must be greater than 0, got {quantity}.",
            {"quantity": quantity},
        )


class InvalidPriceError(TradingError):
    """A share price update was zero or negative."""

    kind = ErrorKind.INVALID_PRICE

    def __init__(self, price: Decimal):
        super().__init__(
            f"Price must be greater than 0, got {price}.",
            {"price": str(price)},
        )


class NotFoundError(TradingError):
    """A referenced shareholder, share or broker does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} with ID {entity_id} was not found.",
            {"entity": entity, "id": entity_id},
        )
        self.entity = entity


class InsufficientInventoryError(TradingError):
    """More shares requested than the share's available inventory."""

    kind = ErrorKind.INSUFFICIENT_INVENTORY

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Not enough shares available: requested {requested}, available {available}.",
            {"requested": requested, "available": available},
        )


class NoHoldingsError(TradingError):
    """Sell against a share the shareholder does not own."""

    kind = ErrorKind.NO_HOLDINGS

    def __init__(self, shareholder_id: int, share_id: int):
        super().__init__(
            "Shareholder owns no shares of this company.",
            {"shareholder_id": shareholder_id, "share_id": share_id},
        )


class InsufficientHoldingsError(TradingError):
    """Sell of more shares than the holding contains."""

    kind = ErrorKind.INSUFFICIENT_HOLDINGS

    def __init__(self, held: int, requested: int):
        super().__init__(
            f"Not enough shares held: held {held}, requested {requested}.",
            {"held": held, "requested": requested},
        )


class ConcurrencyConflictError(TradingError):
    """A concurrent writer changed a row between our read and our write."""

    kind = ErrorKind.CONCURRENCY_CONFLICT
    retryable = True

    def __init__(self, message: str = "The data was modified concurrently, please retry."):
        super().__init__(message)


class PersistenceFailureError(TradingError):
    """The datastore failed for infrastructure reasons."""

    kind = ErrorKind.PERSISTENCE_FAILURE

    def __init__(self, message: str = "The operation could not be saved."):
        super().__init__(message)
