"""Result objects returned by the trading core.

Callers must check ``success``: failures are reported through the result,
never raised.
"""

from dataclasses import dataclass, field
from typing import Any

from sharesphere.errors import ErrorKind, TradingError
from sharesphere.models import Holding, Trade


@dataclass
class OperationResult:
    """Outcome shared by trades and recalculations."""

    success: bool
    message: str
    error: ErrorKind | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class TradeResult(OperationResult):
    """Outcome of a buy or sell.

    On success ``trade`` is the journaled trade. ``holding`` is the created or
    updated holding, or None when a sell exhausted it.
    """

    trade: Trade | None = None
    holding: Holding | None = None

    @classmethod
    def ok(
        cls,
        message: str,
        trade: Trade,
        holding: Holding | None,
        **details: Any,
    ) -> "TradeResult":
        return cls(success=True, message=message, trade=trade, holding=holding, details=details)

    @classmethod
    def failure(cls, error: TradingError) -> "TradeResult":
        return cls(success=False, message=error.message, error=error.kind, details=error.details)


@dataclass
class RecalculationResult(OperationResult):
    """Outcome of a price update or valuation recalculation."""

    share_id: int | None = None
    shareholder_ids: list[int] = field(default_factory=list)

    @classmethod
    def ok(
        cls,
        message: str,
        share_id: int,
        shareholder_ids: list[int],
        **details: Any,
    ) -> "RecalculationResult":
        return cls(
            success=True,
            message=message,
            share_id=share_id,
            shareholder_ids=shareholder_ids,
            details=details,
        )

    @classmethod
    def failure(cls, error: TradingError, share_id: int | None = None) -> "RecalculationResult":
        return cls(
            success=False,
            message=error.message,
            error=error.kind,
            details=error.details,
            share_id=share_id,
        )
