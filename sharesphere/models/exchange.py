"""
StockExchange model - the venue a company is listed on.

Reference data for the trading core; only used to give trades and
holdings their display context.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sharesphere.database import Base


class StockExchange(Base):
    """A stock exchange listing companies."""

    __tablename__ = "stock_exchanges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)

    companies: Mapped[list["Company"]] = relationship(back_populates="exchange")

    def __repr__(self) -> str:
        return f"StockExchange(id={self.id!r}, name={self.name!r})"


# Import at end to avoid circular imports
from sharesphere.models.company import Company
