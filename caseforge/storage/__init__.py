"""Storage backends for CaseForge."""

from .base import (
    Account,
    AuditStore,
    ItemInstance,
    LedgerMeta,
    LedgerSnapshot,
    LevelReward,
    OfferStatus,
    PersistenceGateway,
    PromoCode,
    TradeOffer,
    Wager,
)
from .memory import InMemoryAuditStore, InMemoryGateway
from .sqlalchemy import AsyncSQLAlchemyStorage
from .writer import WriteBehindQueue

__all__ = [
    "Account",
    "AuditStore",
    "ItemInstance",
    "LedgerMeta",
    "LedgerSnapshot",
    "LevelReward",
    "OfferStatus",
    "PersistenceGateway",
    "PromoCode",
    "TradeOffer",
    "Wager",
    "InMemoryAuditStore",
    "InMemoryGateway",
    "AsyncSQLAlchemyStorage",
    "WriteBehindQueue",
]
