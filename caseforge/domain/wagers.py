"""Peer-to-peer coin bets settled by one fair draw."""

from __future__ import annotations

import copy
import logging
from random import Random

from ..storage.base import OfferStatus, Wager
from .events import WAGER_CANCELLED, WAGER_COMPLETED, WAGER_CREATED, EventBus
from .exceptions import InsufficientFunds, InvalidAmount, NotAuthorized, NotPending, StaleOffer
from .progression import ProgressionEngine, ProgressionResult
from .store import AccountStore, apply_delta, short_id, utcnow

logger = logging.getLogger(__name__)


class WagerEngine:
    def __init__(
        self,
        store: AccountStore,
        *,
        rng: Random | None = None,
        progression: ProgressionEngine | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._rng = rng or Random()
        self._progression = progression
        self._events = event_bus or EventBus()

    async def create_wager(self, challenger_id: int, opponent_id: int, stake: int) -> Wager:
        if stake <= 0:
            raise InvalidAmount("Stake must be positive")
        if challenger_id == opponent_id:
            raise NotAuthorized("Cannot wager against yourself")

        async with self._store.transaction(challenger_id, opponent_id) as tx:
            challenger = tx.account(challenger_id)
            opponent = tx.account(opponent_id)
            if challenger.banned or opponent.banned:
                raise NotAuthorized("Banned accounts cannot wager")
            for account in (challenger, opponent):
                if account.balance < stake:
                    raise InsufficientFunds(
                        f"Account {account.account_id} cannot cover stake {stake}",
                        balance=account.balance,
                        required=stake,
                    )
            wager = Wager(
                wager_id=short_id(tx.wager_exists),
                challenger_account_id=challenger_id,
                opponent_account_id=opponent_id,
                stake=stake,
                created_at=utcnow(),
            )
            tx.put_wager(wager)

        await self._events.publish(
            WAGER_CREATED,
            {
                "wager_id": wager.wager_id,
                "challenger_account_id": challenger_id,
                "opponent_account_id": opponent_id,
                "stake": stake,
            },
        )
        return copy.deepcopy(wager)

    async def settle_wager(self, wager_id: str, acting_account_id: int) -> Wager:
        known = self._store.get_wager(wager_id)
        if acting_account_id != known.opponent_account_id:
            raise NotAuthorized("Only the challenged account can accept this wager")

        progress = ProgressionResult()
        async with self._store.transaction(
            known.challenger_account_id, known.opponent_account_id
        ) as tx:
            wager = tx.wager(wager_id)
            if wager.status is not OfferStatus.PENDING:
                raise NotPending(f"Wager {wager_id} is {wager.status.value}")
            challenger = tx.account(wager.challenger_account_id)
            opponent = tx.account(wager.opponent_account_id)
            if challenger.balance < wager.stake or opponent.balance < wager.stake:
                raise StaleOffer(f"Wager {wager_id} can no longer be covered by both accounts")
            winner = challenger if self._rng.random() < 0.5 else opponent
            apply_delta(challenger, -wager.stake)
            apply_delta(opponent, -wager.stake)
            apply_delta(winner, 2 * wager.stake)
            if self._progression is not None:
                progress = self._progression.apply_earnings(winner, wager.stake)
            wager.status = OfferStatus.COMPLETED
            wager.winner_account_id = winner.account_id
            wager.settled_at = utcnow()

        logger.info(
            "Wager %s settled: %s wins %s.", wager_id, wager.winner_account_id, wager.stake * 2
        )
        await self._events.publish(
            WAGER_COMPLETED,
            {
                "wager_id": wager_id,
                "winner_account_id": wager.winner_account_id,
                "stake": wager.stake,
            },
        )
        if self._progression is not None:
            await self._progression.announce(wager.winner_account_id, progress)
        return copy.deepcopy(wager)

    async def cancel_wager(self, wager_id: str, acting_account_id: int) -> Wager:
        known = self._store.get_wager(wager_id)
        if acting_account_id not in (known.challenger_account_id, known.opponent_account_id):
            raise NotAuthorized("Only wager participants can cancel it")

        async with self._store.transaction(
            known.challenger_account_id, known.opponent_account_id
        ) as tx:
            wager = tx.wager(wager_id)
            if wager.status is not OfferStatus.PENDING:
                raise NotPending(f"Wager {wager_id} is {wager.status.value}")
            wager.status = OfferStatus.CANCELLED
            wager.settled_at = utcnow()

        await self._events.publish(
            WAGER_CANCELLED, {"wager_id": wager_id, "cancelled_by": acting_account_id}
        )
        return copy.deepcopy(wager)

    def pending_for(self, account_id: int) -> list[Wager]:
        return self._store.list_wagers(
            lambda w: w.status is OfferStatus.PENDING
            and account_id in (w.challenger_account_id, w.opponent_account_id)
        )
