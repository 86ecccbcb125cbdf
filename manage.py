#!/usr/bin/env python3
"""
Management script for the ShareSphere trading ledger.

Usage:
    python manage.py db init
    python manage.py db seed [-f data/seed.yaml]
    python manage.py db status
    python manage.py trade buy --shareholder 1 --share 1 --broker 1 --quantity 10
    python manage.py trade sell --shareholder 1 --share 1 --broker 1 --quantity 10
    python manage.py share set-price 1 105.50
    python manage.py portfolio show 1 [--trades]
"""

import asyncio
import logging
from decimal import Decimal
from pathlib import Path

import click
import yaml
from sqlalchemy import func, select

from sharesphere import telemetry
from sharesphere.database import AsyncSessionLocal, Base, engine
from sharesphere.models import (
    Broker,
    Company,
    Holding,
    Share,
    Shareholder,
    StockExchange,
    Trade,
)
from sharesphere.schemas import (
    HoldingValueResponse,
    PortfolioResponse,
    PortfolioSummaryResponse,
    TradeHistoryItem,
    TradeHistoryResponse,
    TradeRequest,
    recalculation_response,
    trade_result_response,
)
from sharesphere.services import portfolio, trading, valuation


DEFAULT_SEED_FILE = "data/seed.yaml"


# ============================================================================
# Direct database operations (internal)
# ============================================================================


async def _init_db():
    """Initialize the database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _clear_db():
    """Drop and recreate all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _seed(data: dict) -> dict[str, int]:
    """Load reference data (exchanges, companies, shares, brokers, shareholders)."""
    await _init_db()
    counts = {"exchanges": 0, "companies": 0, "shares": 0, "brokers": 0, "shareholders": 0}

    async with AsyncSessionLocal() as session:
        for exchange_data in data.get("exchanges", []):
            exchange = StockExchange(name=exchange_data["name"], country=exchange_data["country"])
            session.add(exchange)
            counts["exchanges"] += 1

            for company_data in exchange_data.get("companies", []):
                company = Company(
                    name=company_data["name"],
                    ticker=company_data["ticker"].upper(),
                    exchange=exchange,
                )
                session.add(company)
                counts["companies"] += 1

                for share_data in company_data.get("shares", []):
                    session.add(
                        Share(
                            company=company,
                            price=Decimal(str(share_data["price"])),
                            available_quantity=share_data["available_quantity"],
                        )
                    )
                    counts["shares"] += 1

        for broker_data in data.get("brokers", []):
            session.add(
                Broker(
                    name=broker_data["name"],
                    license_number=broker_data["license_number"],
                    email=broker_data["email"],
                )
            )
            counts["brokers"] += 1

        for shareholder_data in data.get("shareholders", []):
            # Portfolio value is derived from holdings, so new shareholders start at zero
            session.add(
                Shareholder(name=shareholder_data["name"], email=shareholder_data["email"])
            )
            counts["shareholders"] += 1

        await session.commit()

    return counts


async def _count_records():
    """Count records in each table."""
    await _init_db()
    async with AsyncSessionLocal() as session:
        counts = {}
        for model, name in [
            (StockExchange, "exchanges"),
            (Company, "companies"),
            (Share, "shares"),
            (Broker, "brokers"),
            (Shareholder, "shareholders"),
            (Holding, "holdings"),
            (Trade, "trades"),
        ]:
            result = await session.execute(select(func.count()).select_from(model))
            counts[name] = result.scalar_one()
        return counts


async def _trade(side: str, request: TradeRequest):
    operation = trading.buy if side == "buy" else trading.sell
    return await operation(
        request.shareholder_id,
        request.share_id,
        request.broker_id,
        request.quantity,
        session_factory=AsyncSessionLocal,
    )


async def _portfolio(shareholder_id: int, with_trades: bool):
    async with AsyncSessionLocal() as session:
        summary = await portfolio.get_portfolio_summary(session, shareholder_id)
        if summary is None:
            return None, None
        holdings = await portfolio.get_shareholder_holdings(session, shareholder_id)
        trades = []
        if with_trades:
            trades = await portfolio.get_trade_history(session, shareholder_id)

    response = PortfolioResponse(
        summary=PortfolioSummaryResponse.model_validate(summary),
        holdings=[HoldingValueResponse.model_validate(h) for h in holdings],
    )
    history = TradeHistoryResponse(trades=[TradeHistoryItem.from_trade(t) for t in trades])
    return response, history


def _echo_result(response) -> None:
    """Print a response payload as JSON, failing the command on errors."""
    click.echo(response.model_dump_json(indent=2))
    if not response.success:
        raise SystemExit(1)


# ============================================================================
# CLI: Main group
# ============================================================================


@click.group()
def cli():
    """ShareSphere management commands."""
    if telemetry.setup_telemetry():
        # Attach OTLP handler to root logger for log export
        handler = telemetry.get_log_handler()
        if handler:
            logging.getLogger().addHandler(handler)
            logging.getLogger().setLevel(logging.INFO)


# ============================================================================
# CLI: db
# ============================================================================


@cli.group()
def db():
    """Direct database operations."""
    pass


@db.command("init")
def db_init():
    """Create database tables."""
    asyncio.run(_init_db())
    click.echo("Database initialized")


@db.command("clear")
@click.confirmation_option(prompt="This will delete ALL data. Continue?")
def db_clear():
    """Drop and recreate all tables."""
    asyncio.run(_clear_db())
    click.echo("Database cleared")


@db.command("seed")
@click.option(
    "--file", "-f",
    default=DEFAULT_SEED_FILE,
    type=click.Path(exists=True),
    help="YAML file with reference data",
)
def db_seed(file):
    """Load exchanges, companies, shares, brokers and shareholders."""
    with open(Path(file)) as f:
        data = yaml.safe_load(f) or {}

    counts = asyncio.run(_seed(data))
    summary = ", ".join(f"{count} {name}" for name, count in counts.items())
    click.echo(f"Seeded {summary}")


@db.command("status")
def db_status():
    """Show record counts per table."""
    counts = asyncio.run(_count_records())
    for name, count in counts.items():
        click.echo(f"  {name:<14} {count}")


# ============================================================================
# CLI: trade
# ============================================================================


def _trade_options(func):
    func = click.option("--quantity", "-q", type=int, required=True, help="Number of shares")(func)
    func = click.option("--broker", "broker_id", type=int, required=True, help="Broker ID")(func)
    func = click.option("--share", "share_id", type=int, required=True, help="Share ID")(func)
    func = click.option(
        "--shareholder", "shareholder_id", type=int, required=True, help="Shareholder ID"
    )(func)
    return func


@cli.group()
def trade():
    """Buy and sell shares."""
    pass


@trade.command("buy")
@_trade_options
def trade_buy(shareholder_id, share_id, broker_id, quantity):
    """Buy shares from the available inventory."""
    request = TradeRequest(
        shareholder_id=shareholder_id, share_id=share_id, broker_id=broker_id, quantity=quantity
    )
    result = asyncio.run(_trade("buy", request))
    _echo_result(trade_result_response(result))


@trade.command("sell")
@_trade_options
def trade_sell(shareholder_id, share_id, broker_id, quantity):
    """Sell held shares back to the inventory."""
    request = TradeRequest(
        shareholder_id=shareholder_id, share_id=share_id, broker_id=broker_id, quantity=quantity
    )
    result = asyncio.run(_trade("sell", request))
    _echo_result(trade_result_response(result))


# ============================================================================
# CLI: share
# ============================================================================


@cli.group()
def share():
    """Manage share prices."""
    pass


@share.command("set-price")
@click.argument("share_id", type=int)
@click.argument("price")
def share_set_price(share_id, price):
    """Set a share's price and revalue affected portfolios."""
    result = asyncio.run(
        valuation.update_share_price(share_id, price, session_factory=AsyncSessionLocal)
    )
    _echo_result(recalculation_response(result))


# ============================================================================
# CLI: portfolio
# ============================================================================


@cli.group("portfolio")
def portfolio_group():
    """Inspect shareholder portfolios."""
    pass


@portfolio_group.command("show")
@click.argument("shareholder_id", type=int)
@click.option("--trades", is_flag=True, help="Include trade history")
def portfolio_show(shareholder_id, trades):
    """Show holdings and valuation for a shareholder."""
    response, history = asyncio.run(_portfolio(shareholder_id, trades))
    if response is None:
        raise click.ClickException(f"Shareholder with ID {shareholder_id} was not found.")

    click.echo(response.model_dump_json(indent=2))
    if trades:
        click.echo(history.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
