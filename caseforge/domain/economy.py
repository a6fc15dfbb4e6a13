"""Case opening, item sales and daily grants."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from ..config import EconomyConfig
from ..storage.base import Account, ItemInstance
from .cases import CaseDefinition
from .events import CASE_OPENED, DAILY_GRANTED, ITEM_SOLD, EventBus
from .exceptions import AlreadyRedeemed, InvalidAmount, NotAuthorized, NotFound
from .progression import ProgressionEngine, ProgressionResult
from .roller import RewardRoller
from .store import META_KEY, AccountStore, apply_delta, detach_item, mint_instance, utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CaseOpening:
    case: CaseDefinition
    items: list[ItemInstance]
    balance: int
    progression: ProgressionResult = field(default_factory=ProgressionResult)

    @property
    def total_value(self) -> int:
        return sum(item.value for item in self.items)


@dataclass(slots=True)
class Sale:
    items: list[ItemInstance]
    amount: int
    balance: int
    progression: ProgressionResult = field(default_factory=ProgressionResult)


@dataclass(slots=True)
class DailyClaim:
    amount: int
    balance: int
    progression: ProgressionResult = field(default_factory=ProgressionResult)


class EconomyService:
    """Account-facing economy operations built on the ledger store."""

    def __init__(
        self,
        store: AccountStore,
        roller: RewardRoller,
        progression: ProgressionEngine,
        config: EconomyConfig | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._roller = roller
        self._progression = progression
        self._config = config or EconomyConfig()
        self._events = event_bus or EventBus()
        self._tz = ZoneInfo(self._config.daily_grant_timezone)

    async def open_case(self, account_id: int, case_id: str, count: int = 1) -> CaseOpening:
        case = self._store.get_case(case_id)
        if not case.enabled:
            raise NotFound(f"Case {case_id} is disabled")
        if count < 1:
            raise InvalidAmount("Open at least one case")

        async with self._store.transaction(account_id) as tx:
            account = tx.account(account_id)
            _require_active(account)
            if count > account.max_case_openings:
                raise InvalidAmount(
                    f"Account {account_id} may open at most {account.max_case_openings} cases at once"
                )
            apply_delta(account, -case.price * count)
            now = utcnow()
            minted = [mint_instance(won, now=now) for won in self._roller.roll_many(case, count)]
            account.inventory.extend(minted)
            progress = self._progression.apply_xp(account, case.xp_reward * count)

        await self._events.publish(
            CASE_OPENED,
            {
                "account_id": account_id,
                "case_id": case_id,
                "items": [item.instance_id for item in minted],
            },
        )
        await self._progression.announce(account_id, progress)
        return CaseOpening(
            case=case, items=copy.deepcopy(minted), balance=account.balance, progression=progress
        )

    async def sell_item(self, account_id: int, instance_id: str) -> Sale:
        async with self._store.transaction(account_id) as tx:
            account = tx.account(account_id)
            item = detach_item(account, instance_id)
            apply_delta(account, item.value)
            progress = self._progression.apply_earnings(account, item.value)
        return await self._after_sale(account_id, [item], account.balance, progress)

    async def sell_all(self, account_id: int) -> Sale:
        async with self._store.transaction(account_id) as tx:
            account = tx.account(account_id)
            items = list(account.inventory)
            account.inventory.clear()
            amount = sum(item.value for item in items)
            apply_delta(account, amount)
            progress = self._progression.apply_earnings(account, amount)
        return await self._after_sale(account_id, items, account.balance, progress)

    async def _after_sale(
        self, account_id: int, items: list[ItemInstance], balance: int, progress: ProgressionResult
    ) -> Sale:
        amount = sum(item.value for item in items)
        if items:
            await self._events.publish(
                ITEM_SOLD,
                {"account_id": account_id, "items": [i.instance_id for i in items], "amount": amount},
            )
        await self._progression.announce(account_id, progress)
        return Sale(items=items, amount=amount, balance=balance, progression=progress)

    def local_date(self, moment: datetime) -> date:
        return moment.astimezone(self._tz).date()

    async def claim_daily(self, account_id: int, *, now: datetime | None = None) -> DailyClaim:
        now = now or utcnow()
        amount = self._config.daily_grant_amount
        async with self._store.transaction(account_id) as tx:
            account = tx.account(account_id)
            _require_active(account)
            last = account.last_daily_claim
            if last is not None and self.local_date(last) == self.local_date(now):
                raise AlreadyRedeemed(f"Account {account_id} already claimed today's grant")
            apply_delta(account, amount)
            account.last_daily_claim = now
            progress = self._progression.apply_earnings(account, amount)
        await self._events.publish(DAILY_GRANTED, {"account_id": account_id, "amount": amount})
        await self._progression.announce(account_id, progress)
        return DailyClaim(amount=amount, balance=account.balance, progression=progress)

    def daily_grant_done(self, now: datetime) -> bool:
        last = self._store.meta.last_daily_grant_date
        if not last:
            return False
        return self.local_date(_parse_moment(last)) == self.local_date(now)

    def daily_grant_due(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        if now.astimezone(self._tz).hour != self._config.daily_grant_hour:
            return False
        return not self.daily_grant_done(now)

    async def grant_daily_to_all(self, *, now: datetime | None = None) -> int:
        """Credit every account once per local calendar day; returns accounts credited."""
        now = now or utcnow()
        if self.daily_grant_done(now):
            return 0
        amount = self._config.daily_grant_amount
        results: dict[int, ProgressionResult] = {}
        while True:
            ids = self._store.account_ids()
            async with self._store.transaction(*ids, keys=[META_KEY]) as tx:
                # accounts created while waiting for the locks need a wider lock set
                if set(self._store.account_ids()).difference(ids):
                    continue
                last = tx.meta.last_daily_grant_date
                if last and self.local_date(_parse_moment(last)) == self.local_date(now):
                    return 0
                for account_id in ids:
                    if not tx.has_account(account_id):
                        continue
                    account = tx.account(account_id)
                    apply_delta(account, amount)
                    results[account_id] = self._progression.apply_earnings(account, amount)
                tx.meta.last_daily_grant_date = now.isoformat()
            break

        logger.info("Daily grant of %s distributed to %s accounts.", amount, len(results))
        await self._events.publish(DAILY_GRANTED, {"account_id": None, "amount": amount, "count": len(results)})
        for account_id, progress in results.items():
            await self._progression.announce(account_id, progress)
        return len(results)


def _require_active(account: Account) -> None:
    if account.banned:
        raise NotAuthorized(f"Account {account.account_id} is banned")


def _parse_moment(raw: str) -> datetime:
    moment = datetime.fromisoformat(raw)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment
