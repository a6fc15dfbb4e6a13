"""Telegram integration helpers."""

from .aiogram_router import build_router
from .filters import AdminFilter, ConnectedFilter
from .keyboards import case_open_keyboard, trade_offer_keyboard, wager_offer_keyboard
from .notifications import register_notifications

__all__ = [
    "build_router",
    "AdminFilter",
    "ConnectedFilter",
    "case_open_keyboard",
    "trade_offer_keyboard",
    "wager_offer_keyboard",
    "register_notifications",
]
