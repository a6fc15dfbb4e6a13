"""Pytest fixtures for CaseForge."""

from __future__ import annotations

from random import Random

import pytest

from ..app import LedgerApp
from ..config import CaseForgeConfig


class ScriptedRandom(Random):
    """``random()`` replays the given values in order, then repeats the last one."""

    def __init__(self, *values: float) -> None:
        super().__init__(0)
        self._values = list(values) or [0.0]
        self._index = 0

    def random(self) -> float:
        value = self._values[min(self._index, len(self._values) - 1)]
        self._index += 1
        return value


@pytest.fixture()
def memory_app() -> LedgerApp:
    return app_fixture(rng_seed=7)


def app_fixture(bot_token: str = "test", *, rng: Random | None = None, **kwargs) -> LedgerApp:
    """Helper for ad-hoc tests where pytest is not available."""
    config = CaseForgeConfig(bot_token=bot_token, **kwargs)
    return LedgerApp(config, rng=rng)


async def loaded_app(*, rng: Random | None = None, **kwargs) -> LedgerApp:
    """Build an in-memory app with its ledger loaded; the write-behind task is not started."""
    app = app_fixture(rng=rng, **kwargs)
    await app.init_backend()
    await app.store.load()
    return app
