"""
Company model - represents a listed company.

Companies are reference entities: the trading core reads them to label
trades, it never modifies them.
"""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sharesphere.database import Base


class Company(Base):
    """A company listed on a stock exchange."""

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Company name
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Unique ticker symbol (e.g., "TECH", "RETAIL")
    ticker: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)

    # Where the company is listed
    exchange_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stock_exchanges.id"), nullable=False
    )

    # Relationships (defined for ORM navigation)
    exchange: Mapped["StockExchange"] = relationship(back_populates="companies")
    shares: Mapped[list["Share"]] = relationship(back_populates="company")
    trades: Mapped[list["Trade"]] = relationship(back_populates="company")

    def __repr__(self) -> str:
        return f"Company(id={self.id!r}, ticker={self.ticker!r}, name={self.name!r})"


# Import at end to avoid circular imports
from sharesphere.models.exchange import StockExchange
from sharesphere.models.share import Share
from sharesphere.models.trade import Trade
