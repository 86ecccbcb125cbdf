"""
Shareholder model - an investor owning holdings.

portfolio_value is a denormalized aggregate: the sum of amount x current
price over the shareholder's holdings. Trades adjust it incrementally and
price changes recompute it, both under the row's version check.
"""

from decimal import Decimal

from sqlalchemy import Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sharesphere.database import Base


class Shareholder(Base):
    """An investor trading shares through brokers."""

    __tablename__ = "shareholders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    # Aggregate valuation of all holdings at current prices
    # Numeric(15,2) allows up to 999,999,999,999,999.99
    portfolio_value: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )

    # Optimistic concurrency counter, bumped on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    holdings: Mapped[list["Holding"]] = relationship(back_populates="shareholder")
    trades: Mapped[list["Trade"]] = relationship(back_populates="shareholder")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"Shareholder(id={self.id!r}, name={self.name!r}, "
            f"portfolio_value={self.portfolio_value})"
        )


# Import at end to avoid circular imports
from sharesphere.models.holding import Holding
from sharesphere.models.trade import Trade
