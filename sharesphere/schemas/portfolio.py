"""Pydantic schemas for portfolio endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from sharesphere.models import Trade
from sharesphere.schemas.trading import TradeType


class HoldingValueResponse(BaseModel):
    """A holding valued at the current share price."""

    share_id: int
    ticker: str
    company_name: str
    amount: int
    current_price: Decimal
    current_value: Decimal

    model_config = {"from_attributes": True}


class PortfolioSummaryResponse(BaseModel):
    """Portfolio summary for a shareholder."""

    shareholder_id: int
    name: str
    portfolio_value: Decimal = Field(..., description="Stored aggregate value")
    holdings_value: Decimal = Field(..., description="Value recomputed from holdings")
    holdings_count: int
    is_consistent: bool

    model_config = {"from_attributes": True}


class PortfolioResponse(BaseModel):
    """Summary plus the holdings behind it."""

    summary: PortfolioSummaryResponse
    holdings: list[HoldingValueResponse] = Field(default_factory=list)


class TradeHistoryItem(BaseModel):
    """A trade as shown in a shareholder's history."""

    id: str
    trade_type: TradeType
    ticker: str
    company_name: str
    broker_name: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    timestamp: datetime

    @classmethod
    def from_trade(cls, trade: Trade) -> "TradeHistoryItem":
        """Build from a trade with company and broker loaded."""
        return cls(
            id=trade.id,
            trade_type=trade.trade_type.value,
            ticker=trade.company.ticker,
            company_name=trade.company.name,
            broker_name=trade.broker.name,
            quantity=trade.quantity,
            unit_price=trade.unit_price,
            total_amount=trade.total_amount,
            timestamp=trade.timestamp,
        )


class TradeHistoryResponse(BaseModel):
    """Response for listing trades."""

    trades: list[TradeHistoryItem] = Field(default_factory=list)
