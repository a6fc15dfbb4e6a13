"""Deliver ledger events to the accounts they concern.

Listeners run after the originating transaction has released its locks, so
outbound Bot API calls here never hold up other ledger operations.
"""

from __future__ import annotations

import logging

from aiogram import Bot

from ..app import LedgerApp
from ..domain import events
from ..domain.events import EventPayload
from .api_utils import notify_account
from .keyboards import trade_offer_keyboard, wager_offer_keyboard

logger = logging.getLogger(__name__)


def register_notifications(app: LedgerApp, bot: Bot) -> None:
    store = app.store

    async def on_trade_created(payload: EventPayload) -> None:
        trade = store.get_trade(payload["trade_id"])
        await notify_account(
            bot,
            trade.to_account_id,
            f"📨 Новое предложение обмена {trade.trade_id} от {trade.from_account_id}.\n/trades — подробности.",
            reply_markup=trade_offer_keyboard(trade.trade_id),
        )

    async def on_trade_completed(payload: EventPayload) -> None:
        await notify_account(
            bot, payload["from_account_id"], f"✅ Обмен {payload['trade_id']} принят."
        )

    async def on_wager_created(payload: EventPayload) -> None:
        await notify_account(
            bot,
            payload["opponent_account_id"],
            f"🎲 {payload['challenger_account_id']} вызывает вас на ставку {payload['stake']} 🪙.",
            reply_markup=wager_offer_keyboard(payload["wager_id"]),
        )

    async def on_wager_completed(payload: EventPayload) -> None:
        wager = store.get_wager(payload["wager_id"])
        await notify_account(
            bot,
            wager.challenger_account_id,
            f"🎲 Ставка {wager.wager_id} сыграна. Победитель: {wager.winner_account_id}.",
        )

    async def on_level_up(payload: EventPayload) -> None:
        await notify_account(
            bot, payload["account_id"], f"⭐ Новый уровень: {payload['levels'][-1]}!"
        )

    app.event_bus.subscribe(events.TRADE_CREATED, on_trade_created)
    app.event_bus.subscribe(events.TRADE_COMPLETED, on_trade_completed)
    app.event_bus.subscribe(events.WAGER_CREATED, on_wager_created)
    app.event_bus.subscribe(events.WAGER_COMPLETED, on_wager_completed)
    app.event_bus.subscribe(events.LEVEL_UP, on_level_up)
    logger.debug("Telegram notifications registered.")
