"""Ledger event dispatch.

Events are published after a transaction has committed and released its
locks, so listeners are free to perform outbound I/O.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, DefaultDict, Iterable, Mapping

logger = logging.getLogger(__name__)

EventPayload = Mapping[str, Any]
EventListener = Callable[[EventPayload], Awaitable[None]]

ACCOUNT_CREATED = "account.created"
CASE_OPENED = "case.opened"
ITEM_SOLD = "item.sold"
TRADE_CREATED = "trade.created"
TRADE_COMPLETED = "trade.completed"
TRADE_CANCELLED = "trade.cancelled"
WAGER_CREATED = "wager.created"
WAGER_COMPLETED = "wager.completed"
WAGER_CANCELLED = "wager.cancelled"
PROMO_REDEEMED = "promo.redeemed"
DAILY_GRANTED = "daily.granted"
LEVEL_UP = "progression.level_up"


class EventBus:
    """Async pub-sub; a failing listener never affects the committed operation."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, list[EventListener]] = defaultdict(list)

    def subscribe(self, event_name: str, listener: EventListener) -> None:
        self._listeners[event_name].append(listener)

    async def publish(self, event_name: str, payload: EventPayload) -> None:
        for listener in list(self._listeners.get(event_name, ())):
            try:
                await listener(payload)
            except Exception:
                logger.exception("Listener for '%s' failed.", event_name)

    def clear(self) -> None:
        self._listeners.clear()

    def listeners(self, event_name: str) -> Iterable[EventListener]:
        return tuple(self._listeners.get(event_name, ()))
