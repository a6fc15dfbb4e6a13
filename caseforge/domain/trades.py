"""Two-party item and coin exchanges."""

from __future__ import annotations

import copy
import logging
from typing import Sequence

from ..storage.base import Account, OfferStatus, TradeOffer
from .events import TRADE_CANCELLED, TRADE_COMPLETED, TRADE_CREATED, EventBus
from .exceptions import (
    InsufficientFunds,
    InvalidAmount,
    ItemNotFound,
    LedgerError,
    NotAuthorized,
    NotPending,
    StaleOffer,
)
from .store import AccountStore, apply_delta, detach_item, short_id, utcnow

logger = logging.getLogger(__name__)


class TradeNegotiator:
    """Create, settle and cancel trade offers.

    A trade moves Pending -> Completed or Pending -> Cancelled exactly once.
    Settlement re-checks funds and ownership under both account locks; any
    mismatch raises StaleOffer and leaves every record untouched.
    """

    def __init__(self, store: AccountStore, *, event_bus: EventBus | None = None) -> None:
        self._store = store
        self._events = event_bus or EventBus()

    async def create_trade(
        self,
        from_id: int,
        to_id: int,
        offered_ids: Sequence[str] = (),
        requested_ids: Sequence[str] = (),
        offered_coins: int = 0,
        requested_coins: int = 0,
    ) -> TradeOffer:
        if from_id == to_id:
            raise NotAuthorized("Cannot trade with yourself")
        if offered_coins < 0 or requested_coins < 0:
            raise InvalidAmount("Trade coin amounts cannot be negative")
        offered = tuple(dict.fromkeys(offered_ids))
        requested = tuple(dict.fromkeys(requested_ids))
        if not (offered or requested or offered_coins or requested_coins):
            raise InvalidAmount("Trade must exchange at least one item or coin")

        async with self._store.transaction(from_id, to_id) as tx:
            sender = tx.account(from_id)
            receiver = tx.account(to_id)
            if sender.banned or receiver.banned:
                raise NotAuthorized("Banned accounts cannot trade")
            if offered_coins > sender.balance:
                raise InsufficientFunds(
                    f"Account {from_id} cannot offer {offered_coins}",
                    balance=sender.balance,
                    required=offered_coins,
                )
            _require_owned(sender, offered)
            _require_owned(receiver, requested)
            trade = TradeOffer(
                trade_id=short_id(tx.trade_exists),
                from_account_id=from_id,
                to_account_id=to_id,
                offered_item_ids=offered,
                requested_item_ids=requested,
                offered_coins=offered_coins,
                requested_coins=requested_coins,
                created_at=utcnow(),
            )
            tx.put_trade(trade)

        await self._events.publish(
            TRADE_CREATED,
            {"trade_id": trade.trade_id, "from_account_id": from_id, "to_account_id": to_id},
        )
        return copy.deepcopy(trade)

    async def settle_trade(self, trade_id: str, acting_account_id: int) -> TradeOffer:
        known = self._store.get_trade(trade_id)
        if acting_account_id != known.to_account_id:
            raise NotAuthorized("Only the receiving account can accept this trade")

        async with self._store.transaction(known.from_account_id, known.to_account_id) as tx:
            trade = tx.trade(trade_id)
            if trade.status is not OfferStatus.PENDING:
                raise NotPending(f"Trade {trade_id} is {trade.status.value}")
            sender = tx.account(trade.from_account_id)
            receiver = tx.account(trade.to_account_id)
            try:
                _require_owned(sender, trade.offered_item_ids)
                _require_owned(receiver, trade.requested_item_ids)
                apply_delta(sender, -trade.offered_coins)
                apply_delta(receiver, -trade.requested_coins)
            except LedgerError as exc:
                raise StaleOffer(f"Trade {trade_id} no longer matches the ledger: {exc}") from exc
            apply_delta(sender, trade.requested_coins)
            apply_delta(receiver, trade.offered_coins)
            for instance_id in trade.offered_item_ids:
                receiver.inventory.append(detach_item(sender, instance_id))
            for instance_id in trade.requested_item_ids:
                sender.inventory.append(detach_item(receiver, instance_id))
            trade.status = OfferStatus.COMPLETED
            trade.settled_at = utcnow()

        logger.info(
            "Trade %s settled between %s and %s.",
            trade_id,
            trade.from_account_id,
            trade.to_account_id,
        )
        await self._events.publish(
            TRADE_COMPLETED,
            {
                "trade_id": trade_id,
                "from_account_id": trade.from_account_id,
                "to_account_id": trade.to_account_id,
            },
        )
        return copy.deepcopy(trade)

    async def cancel_trade(self, trade_id: str, acting_account_id: int) -> TradeOffer:
        known = self._store.get_trade(trade_id)
        if acting_account_id not in (known.from_account_id, known.to_account_id):
            raise NotAuthorized("Only trade participants can cancel it")

        async with self._store.transaction(known.from_account_id, known.to_account_id) as tx:
            trade = tx.trade(trade_id)
            if trade.status is not OfferStatus.PENDING:
                raise NotPending(f"Trade {trade_id} is {trade.status.value}")
            trade.status = OfferStatus.CANCELLED
            trade.settled_at = utcnow()

        await self._events.publish(
            TRADE_CANCELLED,
            {"trade_id": trade_id, "cancelled_by": acting_account_id},
        )
        return copy.deepcopy(trade)

    def incoming(self, account_id: int) -> list[TradeOffer]:
        return self._store.list_trades(
            lambda t: t.to_account_id == account_id and t.status is OfferStatus.PENDING
        )

    def outgoing(self, account_id: int) -> list[TradeOffer]:
        return self._store.list_trades(
            lambda t: t.from_account_id == account_id and t.status is OfferStatus.PENDING
        )


def _require_owned(account: Account, instance_ids: Sequence[str]) -> None:
    for instance_id in instance_ids:
        if not account.owns(instance_id):
            raise ItemNotFound(f"Item {instance_id} not owned by account {account.account_id}")
