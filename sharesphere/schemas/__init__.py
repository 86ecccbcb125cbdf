"""Pydantic schemas for the trading core's boundary payloads."""

from sharesphere.schemas.portfolio import (
    HoldingValueResponse,
    PortfolioResponse,
    PortfolioSummaryResponse,
    TradeHistoryItem,
    TradeHistoryResponse,
)
from sharesphere.schemas.trading import (
    ErrorResponse,
    HoldingResponse,
    RecalculationResponse,
    TradeRequest,
    TradeResponse,
    TradeResultResponse,
    TradeType,
    recalculation_response,
    trade_result_response,
)

__all__ = [
    # Trading schemas
    "TradeType",
    "TradeRequest",
    "TradeResponse",
    "HoldingResponse",
    "TradeResultResponse",
    "ErrorResponse",
    "RecalculationResponse",
    "trade_result_response",
    "recalculation_response",
    # Portfolio schemas
    "HoldingValueResponse",
    "PortfolioSummaryResponse",
    "PortfolioResponse",
    "TradeHistoryItem",
    "TradeHistoryResponse",
]
