"""Ledger records and storage abstractions used by the CaseForge services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

from ..domain.cases import CaseDefinition, VariationDescriptor


class OfferStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class ItemInstance:
    """One minted unit of a reward, owned by exactly one account."""

    instance_id: str
    item_id: str
    name: str
    rarity: str
    value: int
    case_id: str | None = None
    image: str | None = None
    variation: VariationDescriptor | None = None
    obtained_at: datetime | None = None


@dataclass(slots=True)
class Account:
    account_id: int
    display_name: str = ""
    username: str | None = None
    balance: int = 0
    inventory: list[ItemInstance] = field(default_factory=list)
    banned: bool = False
    last_daily_claim: datetime | None = None
    xp: int = 0
    level: int = 1
    milestones_reached: int = 0
    max_case_openings: int = 1
    lifetime_earnings: int = 0
    created_at: datetime | None = None

    def find_item(self, instance_id: str) -> ItemInstance | None:
        for item in self.inventory:
            if item.instance_id == instance_id:
                return item
        return None

    def owns(self, instance_id: str) -> bool:
        return self.find_item(instance_id) is not None

    def inventory_value(self) -> int:
        return sum(item.value for item in self.inventory)


@dataclass(slots=True)
class TradeOffer:
    trade_id: str
    from_account_id: int
    to_account_id: int
    offered_item_ids: tuple[str, ...] = ()
    requested_item_ids: tuple[str, ...] = ()
    offered_coins: int = 0
    requested_coins: int = 0
    status: OfferStatus = OfferStatus.PENDING
    created_at: datetime | None = None
    settled_at: datetime | None = None


@dataclass(slots=True)
class Wager:
    wager_id: str
    challenger_account_id: int
    opponent_account_id: int
    stake: int
    status: OfferStatus = OfferStatus.PENDING
    winner_account_id: int | None = None
    created_at: datetime | None = None
    settled_at: datetime | None = None


@dataclass(slots=True)
class PromoCode:
    code_id: str
    code: str
    grant_amount: int
    max_redemptions: int = 1
    redemptions_used: int = 0
    redeemed_by: set[int] = field(default_factory=set)
    active: bool = True
    created_at: datetime | None = None


@dataclass(slots=True)
class LevelReward:
    level: int
    max_case_openings: int
    title: str | None = None


@dataclass(slots=True)
class LedgerMeta:
    last_daily_grant_date: str | None = None


@dataclass(slots=True)
class LedgerSnapshot:
    """Full durable image of the ledger."""

    accounts: list[Account] = field(default_factory=list)
    cases: list[CaseDefinition] = field(default_factory=list)
    trades: list[TradeOffer] = field(default_factory=list)
    wagers: list[Wager] = field(default_factory=list)
    promo_codes: list[PromoCode] = field(default_factory=list)
    level_rewards: list[LevelReward] = field(default_factory=list)
    meta: LedgerMeta = field(default_factory=LedgerMeta)


class PersistenceGateway(Protocol):
    async def load(self) -> LedgerSnapshot | None:
        """Return the stored snapshot or None when nothing was saved yet."""
        ...

    async def save(self, snapshot: LedgerSnapshot) -> None:
        """Overwrite the stored snapshot."""
        ...


class AuditStore(Protocol):
    async def add_entry(self, action: str, payload: dict) -> None:
        ...
