"""Trade execution engine.

Buy and sell are symmetric state transitions over four pieces of state:
share inventory, the shareholder's holding, the trade journal and the
shareholder's portfolio value. Each runs in one unit of work:

1. Validate quantity, shareholder, share (with company) and broker
2. Check inventory (buy) or the existing holding (sell)
3. Move shares between the inventory and the holding
4. Journal the trade at the share's current price
5. Adjust portfolio value by quantity x price
6. Commit all of it, or none of it

All validation happens before the first mutation. Share, Holding and
Shareholder rows are versioned, so a concurrent writer turns our commit
into a ConcurrencyConflictError and the whole attempt is retried.
"""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sharesphere import telemetry
from sharesphere.errors import (
    InsufficientHoldingsError,
    InsufficientInventoryError,
    InvalidQuantityError,
    NoHoldingsError,
    NotFoundError,
    TradingError,
)
from sharesphere.models import Holding, Share, Shareholder, Trade, TradeType
from sharesphere.services.results import TradeResult
from sharesphere.unit_of_work import UnitOfWork, run_in_unit_of_work

logger = logging.getLogger(__name__)


def generate_trade_id() -> str:
    """Generate a unique trade ID."""
    return str(uuid.uuid4())


async def _load_parties(
    uow: UnitOfWork,
    shareholder_id: int,
    share_id: int,
    broker_id: int,
    quantity: int,
) -> tuple[Shareholder, Share]:
    """Run the validation steps common to buy and sell.

    Raises:
        InvalidQuantityError: If quantity <= 0
        NotFoundError: If shareholder, share or broker is missing
    """
    if quantity <= 0:
        raise InvalidQuantityError(quantity)

    shareholder = await uow.find_shareholder(shareholder_id)
    if shareholder is None:
        raise NotFoundError("Shareholder", shareholder_id)

    share = await uow.find_share_with_company(share_id)
    if share is None:
        raise NotFoundError("Share", share_id)

    broker = await uow.find_broker(broker_id)
    if broker is None:
        raise NotFoundError("Broker", broker_id)

    return shareholder, share


def _journal_trade(
    uow: UnitOfWork,
    trade_type: TradeType,
    shareholder: Shareholder,
    share: Share,
    broker_id: int,
    quantity: int,
) -> Trade:
    """Append a trade at the share's current price."""
    trade = Trade(
        id=generate_trade_id(),
        shareholder_id=shareholder.id,
        broker_id=broker_id,
        company_id=share.company_id,
        share_id=share.id,
        trade_type=trade_type,
        quantity=quantity,
        unit_price=share.price,
        timestamp=datetime.now(UTC),
    )
    uow.add(trade)
    return trade


async def execute_buy(
    uow: UnitOfWork,
    shareholder_id: int,
    share_id: int,
    broker_id: int,
    quantity: int,
) -> TradeResult:
    """Buy shares from the inventory in the given unit of work (one attempt).

    Args:
        uow: Open unit of work; committed on success
        shareholder_id: Buying shareholder
        share_id: Share being bought
        broker_id: Broker executing the trade
        quantity: Number of shares

    Returns:
        Successful TradeResult with the trade and the created/updated holding

    Raises:
        TradingError: On any validation, conflict or persistence failure
    """
    shareholder, share = await _load_parties(uow, shareholder_id, share_id, broker_id, quantity)

    if share.available_quantity < quantity:
        raise InsufficientInventoryError(quantity, share.available_quantity)

    holding = await uow.find_holding(shareholder_id, share_id)

    share.available_quantity -= quantity

    if holding is not None:
        holding.amount += quantity
    else:
        holding = Holding(shareholder_id=shareholder_id, share_id=share_id, amount=quantity)
        uow.add(holding)

    trade = _journal_trade(uow, TradeType.BUY, shareholder, share, broker_id, quantity)

    shareholder.portfolio_value += quantity * share.price

    await uow.commit()

    return TradeResult.ok(
        f"Bought {quantity} share(s) of {share.company.name}.",
        trade,
        holding,
        ticker=share.company.ticker,
    )


async def execute_sell(
    uow: UnitOfWork,
    shareholder_id: int,
    share_id: int,
    broker_id: int,
    quantity: int,
) -> TradeResult:
    """Sell shares back to the inventory in the given unit of work (one attempt).

    Selling the whole holding deletes it; the result then carries no holding.

    Raises:
        TradingError: On any validation, conflict or persistence failure
    """
    shareholder, share = await _load_parties(uow, shareholder_id, share_id, broker_id, quantity)

    holding = await uow.find_holding(shareholder_id, share_id)
    if holding is None:
        raise NoHoldingsError(shareholder_id, share_id)

    if holding.amount < quantity:
        raise InsufficientHoldingsError(holding.amount, quantity)

    if holding.amount == quantity:
        await uow.delete(holding)
        remaining = None
    else:
        holding.amount -= quantity
        remaining = holding

    share.available_quantity += quantity

    trade = _journal_trade(uow, TradeType.SELL, shareholder, share, broker_id, quantity)

    shareholder.portfolio_value -= quantity * share.price

    await uow.commit()

    return TradeResult.ok(
        f"Sold {quantity} share(s) of {share.company.name}.",
        trade,
        remaining,
        ticker=share.company.ticker,
    )


async def _run_trade(
    trade_type: TradeType,
    execute,
    shareholder_id: int,
    share_id: int,
    broker_id: int,
    quantity: int,
    session_factory: async_sessionmaker[AsyncSession] | None,
    max_attempts: int | None,
) -> TradeResult:
    operation = trade_type.value.lower()
    context = {
        "trade_type": trade_type.value,
        "shareholder_id": shareholder_id,
        "share_id": share_id,
        "broker_id": broker_id,
        "quantity": quantity,
    }

    async def attempt(uow: UnitOfWork) -> TradeResult:
        return await execute(uow, shareholder_id, share_id, broker_id, quantity)

    try:
        result = await run_in_unit_of_work(
            operation,
            attempt,
            session_factory=session_factory,
            max_attempts=max_attempts,
        )
    except TradingError as exc:
        logger.warning(
            "Trade rejected",
            extra={**context, "error": exc.kind.value, "reason": exc.message},
        )
        telemetry.record_rejection(operation, exc.kind.value)
        return TradeResult.failure(exc)

    trade = result.trade
    telemetry.record_trade(trade_type.value, result.details["ticker"], trade.quantity, trade.unit_price)
    logger.info(
        "Trade executed",
        extra={
            **context,
            "trade_id": trade.id,
            "ticker": result.details["ticker"],
            "price": float(trade.unit_price),
        },
    )
    return result


async def buy(
    shareholder_id: int,
    share_id: int,
    broker_id: int,
    quantity: int,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    max_attempts: int | None = None,
) -> TradeResult:
    """Buy shares for a shareholder through a broker.

    Never raises for trading failures: check ``result.success``.
    """
    return await _run_trade(
        TradeType.BUY, execute_buy,
        shareholder_id, share_id, broker_id, quantity,
        session_factory, max_attempts,
    )


async def sell(
    shareholder_id: int,
    share_id: int,
    broker_id: int,
    quantity: int,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    max_attempts: int | None = None,
) -> TradeResult:
    """Sell a shareholder's shares through a broker.

    Never raises for trading failures: check ``result.success``.
    """
    return await _run_trade(
        TradeType.SELL, execute_sell,
        shareholder_id, share_id, broker_id, quantity,
        session_factory, max_attempts,
    )
