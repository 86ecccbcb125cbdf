"""Tests for the trade execution engine (buy and sell)."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from sharesphere.errors import ErrorKind
from sharesphere.models import TradeType
from sharesphere.services import trading, valuation


# ============================================================================
# Buy
# ============================================================================


class TestBuy:
    """Tests for successful purchases."""

    @pytest.mark.asyncio
    async def test_buy_updates_inventory_holding_and_value(
        self, session_factory, state, shareholder, share, broker
    ):
        """Buying 10 @ 100.00 from 50 available."""
        result = await trading.buy(
            shareholder.id, share.id, broker.id, 10, session_factory=session_factory
        )

        assert result.success
        assert result.error is None
        assert result.trade.trade_type == TradeType.BUY
        assert result.trade.quantity == 10
        assert result.trade.unit_price == Decimal("100.00")
        assert result.holding.amount == 10
        assert "Test Company" in result.message

        assert (await state.share(share.id)).available_quantity == 40
        assert (await state.shareholder(shareholder.id)).portfolio_value == Decimal("11000.00")

    @pytest.mark.asyncio
    async def test_first_purchase_creates_holding(
        self, session_factory, state, shareholder, share, broker
    ):
        """A first buy creates the holding with amount = quantity."""
        assert await state.holding(shareholder.id, share.id) is None

        result = await trading.buy(
            shareholder.id, share.id, broker.id, 10, session_factory=session_factory
        )

        holding = await state.holding(shareholder.id, share.id)
        assert holding is not None
        assert holding.amount == 10
        assert result.holding.shareholder_id == shareholder.id
        assert result.holding.share_id == share.id

    @pytest.mark.asyncio
    async def test_second_purchase_updates_existing_holding(
        self, session_factory, state, shareholder, share, broker
    ):
        """A later buy increments the same holding."""
        await trading.buy(shareholder.id, share.id, broker.id, 10, session_factory=session_factory)
        result = await trading.buy(
            shareholder.id, share.id, broker.id, 15, session_factory=session_factory
        )

        assert result.success
        assert result.holding.amount == 25
        assert (await state.holding(shareholder.id, share.id)).amount == 25
        assert (await state.share(share.id)).available_quantity == 25

    @pytest.mark.asyncio
    async def test_buy_journals_trade(self, session_factory, state, shareholder, share, broker):
        """The trade records parties, company and execution price."""
        result = await trading.buy(
            shareholder.id, share.id, broker.id, 10, session_factory=session_factory
        )

        trades = await state.trades()
        assert len(trades) == 1
        trade = trades[0]
        assert trade.id == result.trade.id
        assert trade.trade_type == TradeType.BUY
        assert trade.shareholder_id == shareholder.id
        assert trade.company_id == share.company_id
        assert trade.share_id == share.id
        assert trade.broker_id == broker.id
        assert trade.quantity == 10
        assert trade.unit_price == Decimal("100.00")
        assert trade.timestamp is not None

    @pytest.mark.asyncio
    async def test_buy_entire_inventory(self, session_factory, state, shareholder, share, broker):
        """Buying exactly the available quantity leaves zero, not negative."""
        result = await trading.buy(
            shareholder.id, share.id, broker.id, 50, session_factory=session_factory
        )

        assert result.success
        assert (await state.share(share.id)).available_quantity == 0


class TestBuyValidation:
    """Tests for rejected purchases. None of them may change state."""

    async def _assert_unchanged(self, state, shareholder, share):
        assert (await state.share(share.id)).available_quantity == 50
        assert (await state.shareholder(shareholder.id)).portfolio_value == Decimal("10000.00")
        assert await state.holding(shareholder.id, share.id) is None
        assert await state.trades() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -5])
    async def test_invalid_quantity(self, session_factory, state, shareholder, share, broker, quantity):
        """Zero or negative quantity is rejected."""
        result = await trading.buy(
            shareholder.id, share.id, broker.id, quantity, session_factory=session_factory
        )

        assert not result.success
        assert result.error == ErrorKind.INVALID_QUANTITY
        assert "greater than 0" in result.message
        assert result.trade is None
        assert result.holding is None
        await self._assert_unchanged(state, shareholder, share)

    @pytest.mark.asyncio
    async def test_unknown_shareholder(self, session_factory, state, shareholder, share, broker):
        """Missing shareholder is NOT_FOUND."""
        result = await trading.buy(999, share.id, broker.id, 10, session_factory=session_factory)

        assert result.error == ErrorKind.NOT_FOUND
        assert result.details["entity"] == "Shareholder"
        assert "999" in result.message
        await self._assert_unchanged(state, shareholder, share)

    @pytest.mark.asyncio
    async def test_unknown_share(self, session_factory, state, shareholder, share, broker):
        """Missing share is NOT_FOUND."""
        result = await trading.buy(shareholder.id, 999, broker.id, 10, session_factory=session_factory)

        assert result.error == ErrorKind.NOT_FOUND
        assert result.details["entity"] == "Share"
        await self._assert_unchanged(state, shareholder, share)

    @pytest.mark.asyncio
    async def test_unknown_broker(self, session_factory, state, shareholder, share, broker):
        """Missing broker is NOT_FOUND."""
        result = await trading.buy(shareholder.id, share.id, 999, 10, session_factory=session_factory)

        assert result.error == ErrorKind.NOT_FOUND
        assert result.details["entity"] == "Broker"
        await self._assert_unchanged(state, shareholder, share)

    @pytest.mark.asyncio
    async def test_insufficient_inventory(self, session_factory, state, shareholder, share, broker):
        """Buying 60 against 50 available is rejected with both amounts."""
        result = await trading.buy(
            shareholder.id, share.id, broker.id, 60, session_factory=session_factory
        )

        assert result.error == ErrorKind.INSUFFICIENT_INVENTORY
        assert result.details == {"requested": 60, "available": 50}
        await self._assert_unchanged(state, shareholder, share)

    @pytest.mark.asyncio
    async def test_quantity_checked_before_lookups(self, session_factory, share, broker):
        """Validation order: quantity first, then shareholder."""
        result = await trading.buy(999, share.id, broker.id, 0, session_factory=session_factory)

        assert result.error == ErrorKind.INVALID_QUANTITY

    @pytest.mark.asyncio
    async def test_shareholder_checked_before_share(self, session_factory, broker):
        """Validation order: shareholder before share."""
        result = await trading.buy(998, 999, broker.id, 10, session_factory=session_factory)

        assert result.details["entity"] == "Shareholder"


# ============================================================================
# Sell
# ============================================================================


class TestSell:
    """Tests for successful sales."""

    @pytest.mark.asyncio
    async def test_partial_sell_keeps_holding(
        self, session_factory, state, shareholder, share, broker
    ):
        """Selling part of a holding decrements it."""
        await trading.buy(shareholder.id, share.id, broker.id, 10, session_factory=session_factory)

        result = await trading.sell(
            shareholder.id, share.id, broker.id, 4, session_factory=session_factory
        )

        assert result.success
        assert result.trade.trade_type == TradeType.SELL
        assert result.holding.amount == 6
        assert (await state.holding(shareholder.id, share.id)).amount == 6
        assert (await state.share(share.id)).available_quantity == 44
        assert (await state.shareholder(shareholder.id)).portfolio_value == Decimal("10600.00")

    @pytest.mark.asyncio
    async def test_full_sell_deletes_holding(
        self, session_factory, state, shareholder, share, broker
    ):
        """Selling the whole holding removes it instead of leaving zero."""
        await trading.buy(shareholder.id, share.id, broker.id, 10, session_factory=session_factory)

        result = await trading.sell(
            shareholder.id, share.id, broker.id, 10, session_factory=session_factory
        )

        assert result.success
        assert result.holding is None
        assert await state.holding(shareholder.id, share.id) is None
        assert (await state.share(share.id)).available_quantity == 50
        assert "Sold 10 share(s) of Test Company" in result.message

    @pytest.mark.asyncio
    async def test_round_trip_restores_state(
        self, session_factory, state, shareholder, share, broker
    ):
        """Buy(q) then sell(q) restores inventory and portfolio value exactly."""
        before_value = (await state.shareholder(shareholder.id)).portfolio_value

        await trading.buy(shareholder.id, share.id, broker.id, 10, session_factory=session_factory)
        assert (await state.shareholder(shareholder.id)).portfolio_value == Decimal("11000.00")

        await trading.sell(shareholder.id, share.id, broker.id, 10, session_factory=session_factory)

        assert (await state.share(share.id)).available_quantity == 50
        assert await state.holding(shareholder.id, share.id) is None
        assert (await state.shareholder(shareholder.id)).portfolio_value == before_value

        trades = await state.trades()
        assert [t.trade_type for t in trades] == [TradeType.BUY, TradeType.SELL]

    @pytest.mark.asyncio
    async def test_sell_uses_price_at_execution(
        self, session_factory, state, shareholder, share, broker
    ):
        """Journaled prices are frozen; later price changes don't rewrite them."""
        buy = await trading.buy(
            shareholder.id, share.id, broker.id, 10, session_factory=session_factory
        )
        await valuation.update_share_price(share.id, "120.00", session_factory=session_factory)

        sell = await trading.sell(
            shareholder.id, share.id, broker.id, 10, session_factory=session_factory
        )

        assert sell.trade.unit_price == Decimal("120.00")
        trades = {t.id: t for t in await state.trades()}
        assert trades[buy.trade.id].unit_price == Decimal("100.00")
        assert trades[sell.trade.id].unit_price == Decimal("120.00")


class TestSellValidation:
    """Tests for rejected sales."""

    @pytest.mark.asyncio
    async def test_no_holdings(self, session_factory, state, shareholder, share, broker):
        """Selling without a holding is NO_HOLDINGS and changes nothing."""
        result = await trading.sell(
            shareholder.id, share.id, broker.id, 5, session_factory=session_factory
        )

        assert not result.success
        assert result.error == ErrorKind.NO_HOLDINGS
        assert result.message == "Shareholder owns no shares of this company."
        assert (await state.share(share.id)).available_quantity == 50
        assert (await state.shareholder(shareholder.id)).portfolio_value == Decimal("10000.00")
        assert await state.trades() == []

    @pytest.mark.asyncio
    async def test_insufficient_holdings(self, session_factory, state, shareholder, share, broker):
        """Selling more than held reports held vs. requested."""
        await trading.buy(shareholder.id, share.id, broker.id, 5, session_factory=session_factory)

        result = await trading.sell(
            shareholder.id, share.id, broker.id, 8, session_factory=session_factory
        )

        assert result.error == ErrorKind.INSUFFICIENT_HOLDINGS
        assert result.details == {"held": 5, "requested": 8}
        assert (await state.holding(shareholder.id, share.id)).amount == 5
        assert (await state.share(share.id)).available_quantity == 45
        assert len(await state.trades()) == 1

    @pytest.mark.asyncio
    async def test_invalid_quantity(self, session_factory, shareholder, share, broker):
        """Sell validates quantity like buy."""
        result = await trading.sell(
            shareholder.id, share.id, broker.id, 0, session_factory=session_factory
        )

        assert result.error == ErrorKind.INVALID_QUANTITY

    @pytest.mark.asyncio
    async def test_unknown_broker(self, session_factory, shareholder, share, broker):
        """Sell checks the broker before the holding."""
        result = await trading.sell(
            shareholder.id, share.id, 999, 5, session_factory=session_factory
        )

        assert result.error == ErrorKind.NOT_FOUND
        assert result.details["entity"] == "Broker"


# ============================================================================
# Atomicity and retries
# ============================================================================


class TestAtomicity:
    """Failures after mutation roll everything back."""

    @pytest.mark.asyncio
    async def test_commit_failure_rolls_back(
        self, session_factory, state, shareholder, share, broker, monkeypatch
    ):
        """A commit failing after the flush leaves no partial state or trade."""

        async def failing_commit(self):
            await self.flush()
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(AsyncSession, "commit", failing_commit)

        result = await trading.buy(
            shareholder.id, share.id, broker.id, 10, session_factory=session_factory
        )

        assert not result.success
        assert result.error == ErrorKind.PERSISTENCE_FAILURE
        # Infrastructure details stay out of the message
        assert "disk" not in result.message

        monkeypatch.undo()
        assert (await state.share(share.id)).available_quantity == 50
        assert await state.holding(shareholder.id, share.id) is None
        assert (await state.shareholder(shareholder.id)).portfolio_value == Decimal("10000.00")
        assert await state.trades() == []

    @pytest.mark.asyncio
    async def test_conflict_is_retried(
        self, session_factory, state, shareholder, share, broker, monkeypatch
    ):
        """A version conflict on the first attempt is retried with fresh reads."""
        original_commit = AsyncSession.commit
        calls = {"count": 0}

        async def flaky_commit(self):
            calls["count"] += 1
            if calls["count"] == 1:
                raise StaleDataError("UPDATE statement on table 'shares' expected to update 1 row(s)")
            await original_commit(self)

        monkeypatch.setattr(AsyncSession, "commit", flaky_commit)

        result = await trading.buy(
            shareholder.id, share.id, broker.id, 10, session_factory=session_factory
        )

        assert result.success
        assert calls["count"] == 2
        assert (await state.share(share.id)).available_quantity == 40
        assert len(await state.trades()) == 1

    @pytest.mark.asyncio
    async def test_conflict_retries_are_bounded(
        self, session_factory, state, shareholder, share, broker, monkeypatch
    ):
        """Persistent conflicts surface as CONCURRENCY_CONFLICT."""
        calls = {"count": 0}

        async def stale_commit(self):
            calls["count"] += 1
            raise StaleDataError("stale")

        monkeypatch.setattr(AsyncSession, "commit", stale_commit)

        result = await trading.sell(
            shareholder.id, share.id, broker.id, 0, session_factory=session_factory
        )
        # Validation failures never reach commit
        assert result.error == ErrorKind.INVALID_QUANTITY
        assert calls["count"] == 0

        result = await trading.buy(
            shareholder.id, share.id, broker.id, 10,
            session_factory=session_factory, max_attempts=2,
        )

        assert result.error == ErrorKind.CONCURRENCY_CONFLICT
        assert calls["count"] == 2

        monkeypatch.undo()
        assert (await state.share(share.id)).available_quantity == 50
        assert await state.trades() == []


class TestExplicitUnitOfWork:
    """The single-attempt forms run in a caller-provided unit of work."""

    @pytest.mark.asyncio
    async def test_execute_buy_raises_instead_of_returning_failure(
        self, session_factory, shareholder, share, broker
    ):
        """execute_buy raises the taxonomy error directly."""
        from sharesphere.errors import InsufficientInventoryError
        from sharesphere.unit_of_work import UnitOfWork

        async with UnitOfWork(session_factory) as uow:
            with pytest.raises(InsufficientInventoryError) as exc_info:
                await trading.execute_buy(uow, shareholder.id, share.id, broker.id, 51)

        assert exc_info.value.details["available"] == 50

    @pytest.mark.asyncio
    async def test_execute_sell_commits(self, session_factory, state, shareholder, share, broker):
        """execute_sell commits its own unit of work."""
        from sharesphere.unit_of_work import UnitOfWork

        await trading.buy(shareholder.id, share.id, broker.id, 3, session_factory=session_factory)

        async with UnitOfWork(session_factory) as uow:
            result = await trading.execute_sell(uow, shareholder.id, share.id, broker.id, 3)
            assert uow.committed

        assert result.success
        assert await state.holding(shareholder.id, share.id) is None
