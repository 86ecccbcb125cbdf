"""
Share model - a tradeable share class of a company.

Holds the current unit price and the inventory of shares not held by any
shareholder. The inventory is mutated by every trade and the price by
out-of-band price updates, so the row is versioned: an UPDATE only
succeeds if nobody else changed the row since it was read.
"""

from decimal import Decimal

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sharesphere.database import Base


class Share(Base):
    """Shares of a company available for trading."""

    __tablename__ = "shares"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    company_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("companies.id"), nullable=False
    )

    # Current unit price
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Shares not currently held by any shareholder (inventory)
    available_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Optimistic concurrency counter, bumped on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    company: Mapped["Company"] = relationship(back_populates="shares")
    holdings: Mapped[list["Holding"]] = relationship(back_populates="share")

    __mapper_args__ = {"version_id_col": version}

    # Database constraints
    __table_args__ = (
        CheckConstraint("price > 0", name="check_share_price_positive"),
        CheckConstraint(
            "available_quantity >= 0", name="check_available_quantity_non_negative"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"Share(id={self.id!r}, company_id={self.company_id!r}, "
            f"price={self.price}, available={self.available_quantity})"
        )


# Import at end to avoid circular imports
from sharesphere.models.company import Company
from sharesphere.models.holding import Holding
