"""Portfolio service - holdings, valuation summary and trade history."""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from sharesphere.models import Company, Holding, Share, Shareholder, Trade, TradeType


@dataclass
class HoldingValuation:
    """A holding valued at the share's current price."""

    share_id: int
    ticker: str
    company_name: str
    amount: int
    current_price: Decimal

    @property
    def current_value(self) -> Decimal:
        return self.current_price * self.amount


@dataclass
class PortfolioSummary:
    """A shareholder's stored portfolio value next to the value recomputed from holdings."""

    shareholder_id: int
    name: str
    portfolio_value: Decimal
    holdings_value: Decimal
    holdings_count: int

    @property
    def is_consistent(self) -> bool:
        """True when the stored aggregate matches amount x price over the holdings."""
        return self.portfolio_value == self.holdings_value


async def get_shareholder_holdings(
    session: AsyncSession, shareholder_id: int
) -> list[HoldingValuation]:
    """Get all holdings for a shareholder, valued at current prices.

    Args:
        session: Database session
        shareholder_id: Shareholder ID

    Returns:
        List of valued holdings, ordered by ticker
    """
    result = await session.execute(
        select(Holding, Share, Company)
        .join(Share, Holding.share_id == Share.id)
        .join(Company, Share.company_id == Company.id)
        .where(Holding.shareholder_id == shareholder_id)
        .order_by(Company.ticker, Share.id)
    )

    return [
        HoldingValuation(
            share_id=share.id,
            ticker=company.ticker,
            company_name=company.name,
            amount=holding.amount,
            current_price=share.price,
        )
        for holding, share, company in result.all()
    ]


async def get_portfolio_summary(
    session: AsyncSession, shareholder_id: int
) -> PortfolioSummary | None:
    """Get portfolio summary for a shareholder.

    Returns:
        Portfolio summary or None if shareholder not found
    """
    shareholder = await session.get(Shareholder, shareholder_id)
    if shareholder is None:
        return None

    holdings = await get_shareholder_holdings(session, shareholder_id)
    holdings_value = sum((h.current_value for h in holdings), Decimal("0.00"))

    return PortfolioSummary(
        shareholder_id=shareholder.id,
        name=shareholder.name,
        portfolio_value=shareholder.portfolio_value,
        holdings_value=holdings_value,
        holdings_count=len(holdings),
    )


async def get_trade_history(
    session: AsyncSession,
    shareholder_id: int,
    trade_type: TradeType | None = None,
    limit: int | None = None,
) -> list[Trade]:
    """Get a shareholder's trades, newest first.

    Company and broker are loaded for display.

    Args:
        session: Database session
        shareholder_id: Shareholder ID
        trade_type: Filter by BUY or SELL (optional)
        limit: Maximum number of trades (optional)
    """
    query = (
        select(Trade)
        .options(joinedload(Trade.company), joinedload(Trade.broker))
        .where(Trade.shareholder_id == shareholder_id)
    )

    if trade_type:
        query = query.where(Trade.trade_type == trade_type)

    query = query.order_by(Trade.timestamp.desc())
    if limit:
        query = query.limit(limit)

    result = await session.execute(query)
    return list(result.scalars().all())
