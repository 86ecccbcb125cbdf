"""
SQLAlchemy models for the trading ledger.

This module exports all models and the Base class for easy imports:
    from sharesphere.models import Base, Share, Shareholder, Holding, Trade
"""

from sharesphere.database import Base
from sharesphere.models.exchange import StockExchange
from sharesphere.models.company import Company
from sharesphere.models.share import Share
from sharesphere.models.broker import Broker
from sharesphere.models.shareholder import Shareholder
from sharesphere.models.holding import Holding
from sharesphere.models.trade import Trade, TradeJournalViolation, TradeType

__all__ = [
    "Base",
    "StockExchange",
    "Company",
    "Share",
    "Broker",
    "Shareholder",
    "Holding",
    "Trade",
    "TradeJournalViolation",
    "TradeType",
]
