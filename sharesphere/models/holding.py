"""
Holding model - tracks share ownership.

Represents how many shares of a Share a shareholder owns.
Uses a composite primary key (shareholder_id, share_id), so two
concurrent first purchases for the same pair cannot both insert.
"""

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sharesphere.database import Base


class Holding(Base):
    """Share ownership record - links a shareholder to a share."""

    __tablename__ = "holdings"

    # Composite primary key: shareholder + share
    shareholder_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shareholders.id"), primary_key=True
    )
    share_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shares.id"), primary_key=True
    )

    # Number of shares owned (must be positive)
    # When amount reaches 0, the row is deleted
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Optimistic concurrency counter, bumped on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    shareholder: Mapped["Shareholder"] = relationship(back_populates="holdings")
    share: Mapped["Share"] = relationship(back_populates="holdings")

    __mapper_args__ = {"version_id_col": version}

    # Database constraints
    __table_args__ = (
        CheckConstraint("amount > 0", name="check_amount_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"Holding(shareholder={self.shareholder_id!r}, "
            f"share={self.share_id!r}, amount={self.amount})"
        )


# Import at end to avoid circular imports
from sharesphere.models.share import Share
from sharesphere.models.shareholder import Shareholder
