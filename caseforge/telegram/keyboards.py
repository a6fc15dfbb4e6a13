"""Keyboard helpers for CaseForge bots."""

from __future__ import annotations

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

CALLBACK_PREFIX = "caseforge"


def case_open_keyboard(case_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="🔄 Открыть ещё", callback_data=f"{CALLBACK_PREFIX}:open:{case_id}")],
            [InlineKeyboardButton(text="🎒 Инвентарь", callback_data=f"{CALLBACK_PREFIX}:inventory")],
        ]
    )


def trade_offer_keyboard(trade_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="✅ Принять", callback_data=f"{CALLBACK_PREFIX}:trade:accept:{trade_id}"),
                InlineKeyboardButton(text="❌ Отклонить", callback_data=f"{CALLBACK_PREFIX}:trade:decline:{trade_id}"),
            ]
        ]
    )


def wager_offer_keyboard(wager_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="🎲 Принять", callback_data=f"{CALLBACK_PREFIX}:bet:accept:{wager_id}"),
                InlineKeyboardButton(text="❌ Отклонить", callback_data=f"{CALLBACK_PREFIX}:bet:decline:{wager_id}"),
            ]
        ]
    )


def parse_callback(data: str | None) -> list[str]:
    """Split ``caseforge:<action>:...`` callback data; empty list for foreign data."""
    if not data:
        return []
    parts = data.split(":")
    if parts[0] != CALLBACK_PREFIX or len(parts) < 2:
        return []
    return parts[1:]
