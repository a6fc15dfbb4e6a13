"""Reusable aiogram filters for CaseForge bots."""

from __future__ import annotations

from aiogram.filters import BaseFilter
from aiogram.types import Message

from ..config import CaseForgeConfig
from ..domain.store import AccountStore


class AdminFilter(BaseFilter):
    def __init__(self, config: CaseForgeConfig) -> None:
        self._admins = set(config.admin.admin_ids)

    async def __call__(self, message: Message) -> bool:
        user = message.from_user
        return bool(user and user.id in self._admins)


class ConnectedFilter(BaseFilter):
    """Injects the caller's account snapshot as ``account`` when connected."""

    def __init__(self, store: AccountStore) -> None:
        self._store = store

    async def __call__(self, message: Message) -> dict | bool:
        user = message.from_user
        if not user or not self._store.has_account(user.id):
            return False
        return {"account": self._store.get_account(user.id)}
