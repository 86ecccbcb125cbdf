"""
Trade model - the trade journal.

Single source of truth for trade history. Trades are append-only:
once flushed, an UPDATE or DELETE of a trade row is refused. The unit
price is frozen at execution time and does not follow later price changes.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, object_session, relationship

from sharesphere.database import Base


class TradeType(enum.Enum):
    """Direction of a trade, from the shareholder's point of view."""

    BUY = "BUY"
    SELL = "SELL"


class Trade(Base):
    """An executed buy or sell of shares by a shareholder."""

    __tablename__ = "trades"

    # Primary key: unique trade identifier
    id: Mapped[str] = mapped_column(String, primary_key=True)

    # Who traded, and through whom
    shareholder_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shareholders.id"), nullable=False
    )
    broker_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("brokers.id"), nullable=False
    )

    # What was traded
    company_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("companies.id"), nullable=False
    )
    share_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shares.id"), nullable=False
    )

    # Buy or sell
    trade_type: Mapped[TradeType] = mapped_column(Enum(TradeType), nullable=False)

    # Number of shares traded
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Share price at the moment of execution
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # When the trade executed
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    # Relationships
    shareholder: Mapped["Shareholder"] = relationship(back_populates="trades")
    broker: Mapped["Broker"] = relationship(back_populates="trades")
    company: Mapped["Company"] = relationship(back_populates="trades")

    # Database constraints
    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_trade_quantity_positive"),
        CheckConstraint("unit_price > 0", name="check_trade_price_positive"),
    )

    @property
    def total_amount(self) -> Decimal:
        """Cash value of the trade at execution price."""
        return self.unit_price * self.quantity

    def __repr__(self) -> str:
        return (
            f"Trade(id={self.id!r}, {self.trade_type.value} {self.quantity} "
            f"of share {self.share_id} @ {self.unit_price})"
        )


class TradeJournalViolation(Exception):
    """Raised when code tries to modify or delete a journaled trade."""


@event.listens_for(Trade, "before_update")
def _refuse_trade_update(mapper, connection, target) -> None:
    # before_update also fires for rows marked dirty without column changes
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise TradeJournalViolation(f"Trade {target.id} is immutable")


@event.listens_for(Trade, "before_delete")
def _refuse_trade_delete(mapper, connection, target) -> None:
    raise TradeJournalViolation(f"Trade {target.id} cannot be deleted")


# Import at end to avoid circular imports
from sharesphere.models.broker import Broker
from sharesphere.models.company import Company
from sharesphere.models.shareholder import Shareholder
