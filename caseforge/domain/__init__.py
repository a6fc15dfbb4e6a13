"""Domain models and services."""

from .cases import (
    CaseDefinition,
    ItemDefinition,
    RarityTier,
    Variation,
    VariationDescriptor,
    WonItem,
    default_cases,
)
from .exceptions import (
    AlreadyExists,
    AlreadyRedeemed,
    CodeInactive,
    CodeNotFound,
    ErrorKind,
    InsufficientFunds,
    InvalidAmount,
    ItemNotFound,
    LedgerError,
    NotAuthorized,
    NotFound,
    NotPending,
    RedemptionsExhausted,
    StaleOffer,
    ValidationError,
)
from .store import AccountStore, Transaction
from .roller import RewardRoller, roll_case
from .progression import ProgressionEngine, ProgressionResult
from .catalog import CaseCatalog
from .economy import CaseOpening, DailyClaim, EconomyService, Sale
from .trades import TradeNegotiator
from .wagers import WagerEngine
from .promos import PromoLedger, Redemption

__all__ = [
    "CaseDefinition",
    "ItemDefinition",
    "RarityTier",
    "Variation",
    "VariationDescriptor",
    "WonItem",
    "default_cases",
    "AlreadyExists",
    "AlreadyRedeemed",
    "CodeInactive",
    "CodeNotFound",
    "ErrorKind",
    "InsufficientFunds",
    "InvalidAmount",
    "ItemNotFound",
    "LedgerError",
    "NotAuthorized",
    "NotFound",
    "NotPending",
    "RedemptionsExhausted",
    "StaleOffer",
    "ValidationError",
    "AccountStore",
    "Transaction",
    "RewardRoller",
    "roll_case",
    "ProgressionEngine",
    "ProgressionResult",
    "CaseCatalog",
    "CaseOpening",
    "DailyClaim",
    "EconomyService",
    "Sale",
    "TradeNegotiator",
    "WagerEngine",
    "PromoLedger",
    "Redemption",
]
