"""In-memory storage backend for CaseForge."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque

from .base import AuditStore, LedgerSnapshot, PersistenceGateway
from .codec import dump_snapshot, parse_snapshot


class InMemoryGateway(PersistenceGateway):
    """Keeps the last saved snapshot as plain data, detached from live records."""

    def __init__(self, initial: LedgerSnapshot | None = None) -> None:
        self._data: dict[str, Any] | None = dump_snapshot(initial) if initial else None
        self.saves = 0

    async def load(self) -> LedgerSnapshot | None:
        if self._data is None:
            return None
        return parse_snapshot(self._data)

    async def save(self, snapshot: LedgerSnapshot) -> None:
        self._data = dump_snapshot(snapshot)
        self.saves += 1

    def raw(self) -> dict[str, Any] | None:
        return self._data


class InMemoryAuditStore(AuditStore):
    def __init__(self, *, maxlen: int = 1000) -> None:
        self._entries: Deque[tuple[datetime, str, dict]] = deque(maxlen=maxlen)

    async def add_entry(self, action: str, payload: dict) -> None:
        self._entries.append((datetime.now(timezone.utc), action, payload))

    def dump(self) -> list[tuple[datetime, str, dict]]:
        return list(self._entries)
