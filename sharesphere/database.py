"""
Database configuration for the trading ledger.

Uses async SQLAlchemy with SQLite (local) or PostgreSQL (production).
Share, Holding and Shareholder rows carry a version counter, so every
read-then-write of inventory, holdings or portfolio value is checked
against concurrent writers at flush time.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from sharesphere.config import settings

# Create async engine
# echo=False by default, set SQLALCHEMY_ECHO=1 to enable SQL logging
engine = create_async_engine(settings.database_url, echo=settings.sql_echo)

# Session factory - creates new database sessions
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass
