"""
Unit of work - one database transaction per trading operation.

A UnitOfWork owns a fresh AsyncSession for exactly one buy, sell or
recalculation attempt. Lookups and writes go through it; commit() is the
only way anything becomes visible, and leaving the ``async with`` block
without a commit rolls every mutation back (including journaled trades).

SQLAlchemy errors never escape this module: version mismatches, duplicate
holding inserts and lock contention become ConcurrencyConflictError; anything
else, including CHECK and NOT NULL violations, becomes PersistenceFailureError.
"""

import logging
from contextlib import contextmanager
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload, selectinload
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from sharesphere import telemetry
from sharesphere.config import settings
from sharesphere.database import AsyncSessionLocal
from sharesphere.errors import ConcurrencyConflictError, PersistenceFailureError
from sharesphere.models import Broker, Holding, Share, Shareholder

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Driver messages that mean "another transaction holds the row/table"
_LOCK_CONTENTION_MARKERS = (
    "database is locked",
    "deadlock detected",
    "could not serialize access",
)


def _is_lock_contention(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in _LOCK_CONTENTION_MARKERS)


def _is_holding_key_collision(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed: holdings.shareholder_id, ..."
    # PostgreSQL: 'duplicate key value violates unique constraint "holdings_pkey"'
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return "holdings" in message and ("unique constraint" in message or "duplicate key" in message)


@contextmanager
def _translate_errors(action: str):
    """Map SQLAlchemy failures onto the trading error taxonomy."""
    try:
        yield
    except StaleDataError as exc:
        raise ConcurrencyConflictError() from exc
    except IntegrityError as exc:
        if _is_holding_key_collision(exc):
            # A concurrent first purchase won the insert
            raise ConcurrencyConflictError() from exc
        logger.exception("Constraint violation", extra={"action": action})
        raise PersistenceFailureError() from exc
    except OperationalError as exc:
        if _is_lock_contention(exc):
            raise ConcurrencyConflictError() from exc
        logger.exception("Persistence failure", extra={"action": action})
        raise PersistenceFailureError() from exc
    except SQLAlchemyError as exc:
        logger.exception("Persistence failure", extra={"action": action})
        raise PersistenceFailureError() from exc


class UnitOfWork:
    """Transaction scope for a single trading operation.

    Usage:
        async with UnitOfWork(session_factory) as uow:
            share = await uow.find_share_with_company(share_id)
            share.available_quantity -= 10
            await uow.commit()
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or AsyncSessionLocal
        self._session: AsyncSession | None = None
        self.committed = False

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork used outside of 'async with'")
        return self._session

    async def __aenter__(self) -> "UnitOfWork":
        self._session = self._session_factory()
        self.committed = False
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if not self.committed:
                await self.rollback()
        except PersistenceFailureError:
            # Closing the session below discards the connection and its transaction
            logger.warning("Rollback failed, discarding connection")
        finally:
            await self._session.close()
            self._session = None

    # --- Lookups ---

    async def find_shareholder(self, shareholder_id: int) -> Shareholder | None:
        with _translate_errors("find_shareholder"):
            return await self.session.get(Shareholder, shareholder_id)

    async def find_share_with_company(self, share_id: int) -> Share | None:
        with _translate_errors("find_share"):
            result = await self.session.execute(
                select(Share).options(joinedload(Share.company)).where(Share.id == share_id)
            )
            return result.scalar_one_or_none()

    async def find_broker(self, broker_id: int) -> Broker | None:
        with _translate_errors("find_broker"):
            return await self.session.get(Broker, broker_id)

    async def find_holding(self, shareholder_id: int, share_id: int) -> Holding | None:
        with _translate_errors("find_holding"):
            return await self.session.get(Holding, (shareholder_id, share_id))

    async def find_shareholders_holding(self, share_id: int) -> list[Shareholder]:
        """Shareholders owning the share, with all their holdings and shares loaded."""
        with _translate_errors("find_shareholders_holding"):
            result = await self.session.execute(
                select(Shareholder)
                .join(Shareholder.holdings)
                .where(Holding.share_id == share_id)
                .options(selectinload(Shareholder.holdings).selectinload(Holding.share))
                .order_by(Shareholder.id)
            )
            return list(result.scalars().all())

    # --- Writes ---

    def add(self, instance) -> None:
        self.session.add(instance)

    async def delete(self, instance) -> None:
        await self.session.delete(instance)

    async def commit(self) -> None:
        """Flush and commit everything in this unit of work."""
        with _translate_errors("commit"):
            await self.session.commit()
        self.committed = True

    async def rollback(self) -> None:
        with _translate_errors("rollback"):
            await self.session.rollback()


async def run_in_unit_of_work(
    operation: str,
    attempt: Callable[[UnitOfWork], Awaitable[T]],
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    max_attempts: int | None = None,
) -> T:
    """Run ``attempt`` in a fresh unit of work, retrying on concurrency conflicts.

    Each retry starts from a new session, so it re-reads the rows another
    writer changed. Raises the last ConcurrencyConflictError once the
    attempts are exhausted; any other TradingError is raised immediately.
    """
    attempts = max_attempts or settings.trade_max_attempts

    def log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            "Concurrency conflict, retrying",
            extra={
                "operation": operation,
                "attempt": retry_state.attempt_number,
                "max_attempts": attempts,
            },
        )
        telemetry.record_retry(operation)

    async for retry_attempt in AsyncRetrying(
        retry=retry_if_exception_type(ConcurrencyConflictError),
        stop=stop_after_attempt(attempts),
        wait=wait_incrementing(
            start=settings.trade_retry_backoff, increment=settings.trade_retry_backoff
        ),
        before_sleep=log_retry,
        reraise=True,
    ):
        with retry_attempt:
            async with UnitOfWork(session_factory) as uow:
                return await attempt(uow)
