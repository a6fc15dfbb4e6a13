"""Пример запуска CaseForge со своим каталогом кейсов и наградами за уровни."""

from __future__ import annotations

import asyncio
from pathlib import Path

from caseforge import CaseForgeConfig, LedgerApp
from caseforge.diagnostics import EconomySimulator, run_checklist
from caseforge.loaders import load_catalog_from_json
from caseforge.storage.base import LevelReward

CATALOG_PATH = Path(__file__).with_name("catalog") / "cases.json"


async def register(app: LedgerApp) -> None:
    """Загружаем кейсы и настраиваем награды за уровни."""
    await load_catalog_from_json(app, CATALOG_PATH)

    await app.progression.set_level_reward(LevelReward(level=2, max_case_openings=3, title="Новичок"))
    await app.progression.set_level_reward(
        LevelReward(level=5, max_case_openings=5, title="Коллекционер")
    )


async def simulate() -> None:
    app = LedgerApp(CaseForgeConfig.from_env())
    await app.init_backend()
    await app.store.load()
    await register(app)
    for issue in run_checklist(app):
        print(f"[{issue.severity}] {issue.message}")
    result = EconomySimulator(app).simulate("knife_case", openings=1000)
    print(f"Средний выигрыш: {result.average_value:.1f}, возврат: {result.return_to_player:.0%}")
    await app.shutdown()


if __name__ == "__main__":
    # С CASEFORGE_STORAGE_BACKEND=sqlalchemy каталог и награды сохраняются,
    # и запущенный затем caseforge-bot работает уже с ними.
    asyncio.run(simulate())
