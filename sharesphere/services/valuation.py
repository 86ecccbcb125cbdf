"""Portfolio valuation - keeps portfolio_value in step with share prices.

Trades adjust portfolio_value incrementally at the execution price. When a
share's price changes, every shareholder holding it is revalued from
scratch: the sum over all of their holdings of amount x current price.
A delta is not possible because holdings do not remember the price their
value was last computed at.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sharesphere import telemetry
from sharesphere.errors import InvalidPriceError, NotFoundError, TradingError
from sharesphere.models import Holding
from sharesphere.services.results import RecalculationResult
from sharesphere.unit_of_work import UnitOfWork, run_in_unit_of_work

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def compute_portfolio_value(holdings: Iterable[Holding]) -> Decimal:
    """Sum of amount x current share price over the given holdings."""
    return sum((h.amount * h.share.price for h in holdings), Decimal("0.00"))


async def execute_recalculation(uow: UnitOfWork, share_id: int) -> RecalculationResult:
    """Revalue every holder of a share in the given unit of work (one attempt).

    Raises:
        NotFoundError: If the share does not exist
        TradingError: On conflict or persistence failure
    """
    share = await uow.find_share_with_company(share_id)
    if share is None:
        raise NotFoundError("Share", share_id)

    shareholders = await uow.find_shareholders_holding(share_id)
    for shareholder in shareholders:
        shareholder.portfolio_value = compute_portfolio_value(shareholder.holdings)

    await uow.commit()

    return RecalculationResult.ok(
        f"Recalculated portfolio value of {len(shareholders)} shareholder(s) "
        f"holding {share.company.ticker}.",
        share_id,
        [s.id for s in shareholders],
        ticker=share.company.ticker,
    )


async def recalculate_for_share_price_change(
    share_id: int,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    max_attempts: int | None = None,
) -> RecalculationResult:
    """Recompute portfolio_value for every shareholder holding the share.

    Runs in its own unit of work. Never raises for trading failures:
    check ``result.success``.
    """
    async def attempt(uow: UnitOfWork) -> RecalculationResult:
        return await execute_recalculation(uow, share_id)

    try:
        result = await run_in_unit_of_work(
            "recalculate",
            attempt,
            session_factory=session_factory,
            max_attempts=max_attempts,
        )
    except TradingError as exc:
        logger.warning(
            "Recalculation failed",
            extra={"share_id": share_id, "error": exc.kind.value, "reason": exc.message},
        )
        telemetry.record_rejection("recalculate", exc.kind.value)
        return RecalculationResult.failure(exc, share_id)

    telemetry.record_recalculation(result.details["ticker"], len(result.shareholder_ids))
    logger.info(
        "Portfolio values recalculated",
        extra={"share_id": share_id, "shareholders": len(result.shareholder_ids)},
    )
    return result


def _parse_price(price) -> Decimal:
    try:
        value = Decimal(str(price))
    except InvalidOperation:
        raise InvalidPriceError(price) from None
    if not value.is_finite() or value <= 0:
        raise InvalidPriceError(value)
    return value.quantize(CENT)


async def update_share_price(
    share_id: int,
    new_price: Decimal | str | int,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    max_attempts: int | None = None,
) -> RecalculationResult:
    """Set a share's price and revalue the portfolios holding it.

    The price is committed first; the recalculation then runs synchronously
    in its own unit of work. An unchanged price triggers no recalculation.
    """
    try:
        price = _parse_price(new_price)
    except InvalidPriceError as exc:
        telemetry.record_rejection("set_price", exc.kind.value)
        return RecalculationResult.failure(exc, share_id)

    async def attempt(uow: UnitOfWork) -> Decimal | None:
        share = await uow.find_share_with_company(share_id)
        if share is None:
            raise NotFoundError("Share", share_id)
        if share.price == price:
            return None
        old_price = share.price
        share.price = price
        await uow.commit()
        return old_price

    try:
        old_price = await run_in_unit_of_work(
            "set_price",
            attempt,
            session_factory=session_factory,
            max_attempts=max_attempts,
        )
    except TradingError as exc:
        logger.warning(
            "Price update failed",
            extra={"share_id": share_id, "error": exc.kind.value, "reason": exc.message},
        )
        telemetry.record_rejection("set_price", exc.kind.value)
        return RecalculationResult.failure(exc, share_id)

    if old_price is None:
        return RecalculationResult.ok(f"Price of share {share_id} is unchanged.", share_id, [])

    logger.info(
        "Share price updated",
        extra={"share_id": share_id, "old_price": float(old_price), "new_price": float(price)},
    )
    return await recalculate_for_share_price_change(
        share_id, session_factory=session_factory, max_attempts=max_attempts
    )
