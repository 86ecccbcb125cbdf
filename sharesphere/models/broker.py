"""Broker model - the intermediary a trade is executed through."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sharesphere.database import Base


class Broker(Base):
    """A licensed broker. Only its existence matters to the trading core."""

    __tablename__ = "brokers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    license_number: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False)

    trades: Mapped[list["Trade"]] = relationship(back_populates="broker")

    def __repr__(self) -> str:
        return f"Broker(id={self.id!r}, name={self.name!r})"


# Import at end to avoid circular imports
from sharesphere.models.trade import Trade
