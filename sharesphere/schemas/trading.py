"""Pydantic schemas for trade requests and results."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from sharesphere.models import Holding, Trade
from sharesphere.services.results import RecalculationResult, TradeResult


# ============================================================================
# Enums (matching model enums)
# ============================================================================


class TradeType(str, Enum):
    """Buy or sell."""

    BUY = "BUY"
    SELL = "SELL"


# ============================================================================
# Request schemas
# ============================================================================


class TradeRequest(BaseModel):
    """What a caller must supply to buy or sell.

    Quantity is not range-checked here: the engine reports
    INVALID_QUANTITY itself.
    """

    shareholder_id: int = Field(..., description="Trading shareholder")
    share_id: int = Field(..., description="Share being traded")
    broker_id: int = Field(..., description="Broker executing the trade")
    quantity: int = Field(..., description="Number of shares")


# ============================================================================
# Response schemas
# ============================================================================


class TradeResponse(BaseModel):
    """Response schema for a journaled trade."""

    id: str
    trade_type: TradeType
    shareholder_id: int
    company_id: int
    share_id: int
    broker_id: int
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    timestamp: datetime

    @classmethod
    def from_trade(cls, trade: Trade) -> "TradeResponse":
        return cls(
            id=trade.id,
            trade_type=trade.trade_type.value,
            shareholder_id=trade.shareholder_id,
            company_id=trade.company_id,
            share_id=trade.share_id,
            broker_id=trade.broker_id,
            quantity=trade.quantity,
            unit_price=trade.unit_price,
            total_amount=trade.total_amount,
            timestamp=trade.timestamp,
        )


class HoldingResponse(BaseModel):
    """Response schema for a single holding."""

    shareholder_id: int
    share_id: int
    amount: int

    model_config = {"from_attributes": True}


class TradeResultResponse(BaseModel):
    """Successful buy or sell."""

    success: bool = True
    message: str
    trade: TradeResponse
    holding: HoldingResponse | None = Field(
        default=None, description="None when a sell exhausted the holding"
    )


class ErrorResponse(BaseModel):
    """Structured failure of any trading operation."""

    success: bool = False
    error: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class RecalculationResponse(BaseModel):
    """Successful price update or valuation recalculation."""

    success: bool = True
    message: str
    share_id: int
    shareholder_ids: list[int] = Field(default_factory=list)


def error_response(result: TradeResult | RecalculationResult) -> ErrorResponse:
    return ErrorResponse(
        error=result.error.value,
        message=result.message,
        details=result.details,
    )


def trade_result_response(result: TradeResult) -> TradeResultResponse | ErrorResponse:
    """Map a TradeResult onto its success or error payload."""
    if not result.success:
        return error_response(result)

    holding: Holding | None = result.holding
    return TradeResultResponse(
        message=result.message,
        trade=TradeResponse.from_trade(result.trade),
        holding=HoldingResponse.model_validate(holding) if holding is not None else None,
    )


def recalculation_response(
    result: RecalculationResult,
) -> RecalculationResponse | ErrorResponse:
    """Map a RecalculationResult onto its success or error payload."""
    if not result.success:
        return error_response(result)

    return RecalculationResponse(
        message=result.message,
        share_id=result.share_id,
        shareholder_ids=result.shareholder_ids,
    )
