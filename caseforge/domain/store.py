"""Authoritative in-memory ledger with per-account transactions.

Every mutation runs inside :meth:`AccountStore.transaction`, which locks the
touched keys in ascending order, hands out working copies and publishes them
in one synchronous commit step. A transaction body that raises leaves the
committed state untouched and enqueues nothing. Readers always receive deep
copies of committed records, so they never observe half of a mutation.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Hashable, Iterable
from uuid import uuid4

from ..config import EconomyConfig, ProgressionConfig
from ..storage.base import (
    Account,
    ItemInstance,
    LedgerMeta,
    LedgerSnapshot,
    LevelReward,
    PersistenceGateway,
    PromoCode,
    TradeOffer,
    Wager,
)
from ..storage.writer import WriteBehindQueue
from .cases import CaseDefinition, WonItem, default_cases
from .exceptions import (
    AlreadyExists,
    InsufficientFunds,
    InvalidAmount,
    ItemNotFound,
    NotFound,
)

logger = logging.getLogger(__name__)

LockKey = tuple[Hashable, ...]

CATALOG_KEY: LockKey = ("catalog",)
META_KEY: LockKey = ("meta",)
SETTINGS_KEY: LockKey = ("settings",)


def account_key(account_id: int) -> LockKey:
    return ("account", int(account_id))


def promo_key(code: str) -> LockKey:
    return ("promo", code.strip().lower())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def apply_delta(account: Account, delta: int) -> int:
    """Change a working account balance, refusing to go below zero."""
    new_balance = account.balance + int(delta)
    if new_balance < 0:
        raise InsufficientFunds(
            f"Account {account.account_id} has {account.balance}, needs {-delta}",
            balance=account.balance,
            required=-delta,
        )
    account.balance = new_balance
    return new_balance


def mint_instance(template: WonItem, *, now: datetime | None = None) -> ItemInstance:
    return ItemInstance(
        instance_id=uuid4().hex,
        item_id=template.item_id,
        name=template.name,
        rarity=template.rarity,
        value=template.value,
        case_id=template.case_id,
        image=template.image,
        variation=template.variation,
        obtained_at=now or utcnow(),
    )


def detach_item(account: Account, instance_id: str) -> ItemInstance:
    for index, item in enumerate(account.inventory):
        if item.instance_id == instance_id:
            return account.inventory.pop(index)
    raise ItemNotFound(f"Item {instance_id} not owned by account {account.account_id}")


def short_id(taken: Callable[[str], bool]) -> str:
    while True:
        candidate = uuid4().hex[:8]
        if not taken(candidate):
            return candidate


class _LedgerState:
    def __init__(self) -> None:
        self.accounts: dict[int, Account] = {}
        self.cases: dict[str, CaseDefinition] = {}
        self.trades: dict[str, TradeOffer] = {}
        self.wagers: dict[str, Wager] = {}
        self.promos: dict[str, PromoCode] = {}
        self.level_rewards: dict[int, LevelReward] = {}
        self.meta = LedgerMeta()


class Transaction:
    """Working view handed to a transaction body; never used after commit."""

    def __init__(self, state: _LedgerState, account_ids: frozenset[int], keys: frozenset) -> None:
        self._state = state
        self._account_ids = account_ids
        self._keys = keys
        self._accounts: dict[int, Account] = {}
        self._replace_accounts: dict[int, Account] | None = None
        self._trades: dict[str, TradeOffer] = {}
        self._wagers: dict[str, Wager] = {}
        self._promos: dict[str, PromoCode | None] = {}
        self._cases: dict[str, CaseDefinition | None] = {}
        self._replace_cases: dict[str, CaseDefinition] | None = None
        self._level_rewards: dict[int, LevelReward | None] = {}
        self._meta: LedgerMeta | None = None
        self._closed = False

    @property
    def account_ids(self) -> frozenset[int]:
        return self._account_ids

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Transaction already finished")

    def _check_account_locked(self, account_id: int) -> None:
        if account_id not in self._account_ids:
            raise RuntimeError(f"Account {account_id} is not locked by this transaction")

    def has_account(self, account_id: int) -> bool:
        self._check_account_locked(account_id)
        return account_id in self._accounts or account_id in self._state.accounts

    def account(self, account_id: int) -> Account:
        self._check_open()
        self._check_account_locked(account_id)
        if account_id not in self._accounts:
            committed = self._state.accounts.get(account_id)
            if committed is None:
                raise NotFound(f"Account {account_id} not found")
            self._accounts[account_id] = copy.deepcopy(committed)
        return self._accounts[account_id]

    def add_account(self, account: Account) -> Account:
        self._check_open()
        self._check_account_locked(account.account_id)
        if self.has_account(account.account_id):
            raise AlreadyExists(f"Account {account.account_id} already exists")
        self._accounts[account.account_id] = account
        return account

    def put_account(self, account: Account) -> None:
        self._check_open()
        self._check_account_locked(account.account_id)
        self._accounts[account.account_id] = account

    def replace_accounts(self, accounts: Iterable[Account]) -> None:
        self._check_open()
        replacement = {account.account_id: copy.deepcopy(account) for account in accounts}
        for account_id in replacement:
            self._check_account_locked(account_id)
        self._replace_accounts = replacement
        self._accounts = dict(replacement)

    def trade(self, trade_id: str) -> TradeOffer:
        self._check_open()
        if trade_id not in self._trades:
            committed = self._state.trades.get(trade_id)
            if committed is None:
                raise NotFound(f"Trade {trade_id} not found")
            self._trades[trade_id] = copy.deepcopy(committed)
        return self._trades[trade_id]

    def put_trade(self, trade: TradeOffer) -> None:
        self._check_open()
        self._trades[trade.trade_id] = trade

    def trade_exists(self, trade_id: str) -> bool:
        return trade_id in self._trades or trade_id in self._state.trades

    def wager(self, wager_id: str) -> Wager:
        self._check_open()
        if wager_id not in self._wagers:
            committed = self._state.wagers.get(wager_id)
            if committed is None:
                raise NotFound(f"Wager {wager_id} not found")
            self._wagers[wager_id] = copy.deepcopy(committed)
        return self._wagers[wager_id]

    def put_wager(self, wager: Wager) -> None:
        self._check_open()
        self._wagers[wager.wager_id] = wager

    def wager_exists(self, wager_id: str) -> bool:
        return wager_id in self._wagers or wager_id in self._state.wagers

    def promo(self, code: str) -> PromoCode | None:
        self._check_open()
        key = code.strip().lower()
        if promo_key(key) not in self._keys:
            raise RuntimeError(f"Promo code {key} is not locked by this transaction")
        if key not in self._promos:
            committed = self._state.promos.get(key)
            self._promos[key] = copy.deepcopy(committed) if committed else None
        return self._promos[key]

    def put_promo(self, promo: PromoCode) -> None:
        self._check_open()
        self._promos[promo.code.strip().lower()] = promo

    def delete_promo(self, code: str) -> None:
        self._check_open()
        self._promos[code.strip().lower()] = None

    def put_case(self, case: CaseDefinition) -> None:
        self._check_open()
        self._cases[case.case_id] = case

    def delete_case(self, case_id: str) -> None:
        self._check_open()
        self._cases[case_id] = None

    def replace_cases(self, cases: Iterable[CaseDefinition]) -> None:
        self._check_open()
        self._replace_cases = {case.case_id: case for case in cases}
        self._cases = {}

    def put_level_reward(self, reward: LevelReward) -> None:
        self._check_open()
        self._level_rewards[reward.level] = reward

    def delete_level_reward(self, level: int) -> None:
        self._check_open()
        self._level_rewards[level] = None

    @property
    def meta(self) -> LedgerMeta:
        self._check_open()
        if self._meta is None:
            self._meta = copy.deepcopy(self._state.meta)
        return self._meta

    def _staged(self) -> bool:
        return any(
            (
                self._accounts,
                self._replace_accounts is not None,
                self._trades,
                self._wagers,
                self._promos,
                self._cases,
                self._replace_cases is not None,
                self._level_rewards,
                self._meta is not None,
            )
        )

    def commit(self) -> bool:
        """Publish every staged record at once; returns True when anything changed."""
        self._check_open()
        self._closed = True
        if not self._staged():
            return False
        state = self._state
        if self._replace_accounts is not None:
            state.accounts = {}
        state.accounts.update(self._accounts)
        state.trades.update(self._trades)
        state.wagers.update(self._wagers)
        for key, promo in self._promos.items():
            if promo is None:
                state.promos.pop(key, None)
            else:
                state.promos[key] = promo
        if self._replace_cases is not None:
            state.cases = dict(self._replace_cases)
        for case_id, case in self._cases.items():
            if case is None:
                state.cases.pop(case_id, None)
            else:
                state.cases[case_id] = case
        for level, reward in self._level_rewards.items():
            if reward is None:
                state.level_rewards.pop(level, None)
            else:
                state.level_rewards[level] = reward
        if self._meta is not None:
            state.meta = self._meta
        return True

    def discard(self) -> None:
        self._closed = True


class AccountStore:
    """Single source of truth for accounts and the records that reference them.

    Per-key locks are created on demand and dropped once no transaction holds
    or waits for them.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        economy: EconomyConfig | None = None,
        progression: ProgressionConfig | None = None,
        flush_interval: float = 0.1,
    ) -> None:
        self._gateway = gateway
        self._economy = economy or EconomyConfig()
        self._progression = progression or ProgressionConfig()
        self._state = _LedgerState()
        self._locks: dict[LockKey, asyncio.Lock] = {}
        self._lock_users: dict[LockKey, int] = {}
        self._writer = WriteBehindQueue(gateway, self.snapshot, interval=flush_interval)

    # lifecycle

    async def load(self) -> None:
        """Replace in-memory state with the gateway snapshot, seeding defaults when empty."""
        snapshot = await self._gateway.load()
        state = _LedgerState()
        if snapshot is None:
            state.cases = {case.case_id: case for case in default_cases()}
            self._state = state
            self._writer.enqueue()
            logger.info("Ledger initialised with default catalog.")
            return
        state.accounts = {account.account_id: account for account in snapshot.accounts}
        state.cases = {case.case_id: case for case in snapshot.cases}
        state.trades = {trade.trade_id: trade for trade in snapshot.trades}
        state.wagers = {wager.wager_id: wager for wager in snapshot.wagers}
        state.promos = {promo.code.lower(): promo for promo in snapshot.promo_codes}
        state.level_rewards = {reward.level: reward for reward in snapshot.level_rewards}
        state.meta = snapshot.meta
        self._state = state
        logger.info(
            "Ledger loaded: %s accounts, %s cases, %s trades, %s wagers.",
            len(state.accounts),
            len(state.cases),
            len(state.trades),
            len(state.wagers),
        )

    def start(self) -> None:
        self._writer.start()

    async def flush(self) -> bool:
        return await self._writer.flush()

    async def close(self) -> None:
        await self._writer.close()

    @property
    def has_pending_writes(self) -> bool:
        return self._writer.pending

    def snapshot(self) -> LedgerSnapshot:
        state = self._state
        return copy.deepcopy(
            LedgerSnapshot(
                accounts=list(state.accounts.values()),
                cases=list(state.cases.values()),
                trades=list(state.trades.values()),
                wagers=list(state.wagers.values()),
                promo_codes=list(state.promos.values()),
                level_rewards=sorted(state.level_rewards.values(), key=lambda r: r.level),
                meta=state.meta,
            )
        )

    # transactions

    def _claim_lock(self, key: LockKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        return lock

    def _release_claim(self, key: LockKey) -> None:
        users = self._lock_users[key] - 1
        if users:
            self._lock_users[key] = users
        else:
            # nobody holds or waits for it any more
            del self._lock_users[key]
            del self._locks[key]

    @asynccontextmanager
    async def transaction(
        self, *account_ids: int, keys: Iterable[LockKey] = ()
    ) -> AsyncIterator[Transaction]:
        ids = frozenset(int(account_id) for account_id in account_ids)
        extra = frozenset(keys)
        ordered = sorted({account_key(account_id) for account_id in ids} | extra)
        locks = [self._claim_lock(key) for key in ordered]
        acquired: list[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            tx = Transaction(self._state, ids, extra)
            try:
                yield tx
            except BaseException:
                tx.discard()
                raise
            if tx.commit():
                self._writer.enqueue()
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in ordered:
                self._release_claim(key)

    # reads

    def get_account(self, account_id: int) -> Account:
        account = self._state.accounts.get(int(account_id))
        if account is None:
            raise NotFound(f"Account {account_id} not found")
        return copy.deepcopy(account)

    def has_account(self, account_id: int) -> bool:
        return int(account_id) in self._state.accounts

    def find_by_username(self, username: str) -> Account | None:
        needle = username.lstrip("@").lower()
        for account in self._state.accounts.values():
            if account.username and account.username.lower() == needle:
                return copy.deepcopy(account)
        return None

    def list_accounts(self) -> list[Account]:
        return [copy.deepcopy(account) for account in self._state.accounts.values()]

    def account_ids(self) -> list[int]:
        return list(self._state.accounts)

    def get_case(self, case_id: str) -> CaseDefinition:
        case = self._state.cases.get(case_id)
        if case is None:
            raise NotFound(f"Case {case_id} not found")
        return copy.deepcopy(case)

    def list_cases(self) -> list[CaseDefinition]:
        return [copy.deepcopy(case) for case in self._state.cases.values()]

    def get_trade(self, trade_id: str) -> TradeOffer:
        trade = self._state.trades.get(trade_id)
        if trade is None:
            raise NotFound(f"Trade {trade_id} not found")
        return copy.deepcopy(trade)

    def list_trades(self, predicate: Callable[[TradeOffer], bool] | None = None) -> list[TradeOffer]:
        return [
            copy.deepcopy(trade)
            for trade in self._state.trades.values()
            if predicate is None or predicate(trade)
        ]

    def get_wager(self, wager_id: str) -> Wager:
        wager = self._state.wagers.get(wager_id)
        if wager is None:
            raise NotFound(f"Wager {wager_id} not found")
        return copy.deepcopy(wager)

    def list_wagers(self, predicate: Callable[[Wager], bool] | None = None) -> list[Wager]:
        return [
            copy.deepcopy(wager)
            for wager in self._state.wagers.values()
            if predicate is None or predicate(wager)
        ]

    def get_promo(self, code: str) -> PromoCode | None:
        promo = self._state.promos.get(code.strip().lower())
        return copy.deepcopy(promo) if promo else None

    def list_promos(self) -> list[PromoCode]:
        return [copy.deepcopy(promo) for promo in self._state.promos.values()]

    def level_reward(self, level: int) -> LevelReward | None:
        reward = self._state.level_rewards.get(level)
        return copy.deepcopy(reward) if reward else None

    def list_level_rewards(self) -> list[LevelReward]:
        return [copy.deepcopy(r) for r in sorted(self._state.level_rewards.values(), key=lambda r: r.level)]

    @property
    def meta(self) -> LedgerMeta:
        return copy.deepcopy(self._state.meta)

    # account operations

    def new_account(self, account_id: int, *, display_name: str = "", username: str | None = None) -> Account:
        return Account(
            account_id=int(account_id),
            display_name=display_name,
            username=username,
            balance=self._economy.starting_balance,
            max_case_openings=self._progression.base_max_case_openings,
            created_at=utcnow(),
        )

    async def create_account(
        self, account_id: int, *, display_name: str = "", username: str | None = None
    ) -> Account:
        async with self.transaction(account_id) as tx:
            account = tx.add_account(
                self.new_account(account_id, display_name=display_name, username=username)
            )
        logger.info("Account %s created.", account_id)
        return copy.deepcopy(account)

    async def adjust_balance(self, account_id: int, delta: int) -> Account:
        async with self.transaction(account_id) as tx:
            account = tx.account(account_id)
            apply_delta(account, delta)
        return copy.deepcopy(account)

    async def set_balance(self, account_id: int, value: int) -> Account:
        if value < 0:
            raise InvalidAmount(f"Balance cannot be negative: {value}")
        async with self.transaction(account_id) as tx:
            account = tx.account(account_id)
            account.balance = int(value)
        return copy.deepcopy(account)

    async def mint_item(self, account_id: int, template: WonItem) -> ItemInstance:
        async with self.transaction(account_id) as tx:
            account = tx.account(account_id)
            instance = mint_instance(template)
            account.inventory.append(instance)
        return copy.deepcopy(instance)

    async def remove_item(self, account_id: int, instance_id: str) -> ItemInstance:
        async with self.transaction(account_id) as tx:
            removed = detach_item(tx.account(account_id), instance_id)
        return removed

    async def ban_account(self, account_id: int) -> Account:
        return await self._set_banned(account_id, True)

    async def unban_account(self, account_id: int) -> Account:
        return await self._set_banned(account_id, False)

    async def _set_banned(self, account_id: int, banned: bool) -> Account:
        async with self.transaction(account_id) as tx:
            account = tx.account(account_id)
            account.banned = banned
        return copy.deepcopy(account)

    async def reset_account(self, account_id: int) -> Account:
        async with self.transaction(account_id) as tx:
            account = tx.account(account_id)
            fresh = self.new_account(
                account_id, display_name=account.display_name, username=account.username
            )
            fresh.banned = account.banned
            fresh.created_at = account.created_at
            tx.put_account(fresh)
        logger.info("Account %s reset.", account_id)
        return copy.deepcopy(fresh)

    async def set_progress(self, account_id: int, *, level: int, xp: int) -> Account:
        if level < 1:
            raise InvalidAmount("Level must be at least 1")
        if not 0 <= xp < self._progression.xp_per_level:
            raise InvalidAmount(f"XP must be between 0 and {self._progression.xp_per_level - 1}")
        async with self.transaction(account_id) as tx:
            account = tx.account(account_id)
            account.level = level
            account.xp = xp
        return copy.deepcopy(account)

    async def replace_accounts(self, accounts: Iterable[Account]) -> int:
        incoming = list(accounts)
        for account in incoming:
            if account.balance < 0:
                raise InvalidAmount(f"Account {account.account_id} has negative balance")
        ids = set(self.account_ids()) | {account.account_id for account in incoming}
        async with self.transaction(*ids) as tx:
            tx.replace_accounts(incoming)
        logger.info("Replaced account registry with %s accounts.", len(incoming))
        return len(incoming)
