"""Process entry point: run the bot, the daily grant scheduler and flush on exit."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os

from aiogram import Bot, Dispatcher
from rich.console import Console

from .admin import build_admin_router
from .app import LedgerApp
from .config import CaseForgeConfig
from .domain.economy import EconomyService
from .telegram import build_router, register_notifications

logger = logging.getLogger(__name__)
console = Console()


async def daily_grant_loop(economy: EconomyService, interval: float) -> None:
    """Tick forever; the grant itself is idempotent per local calendar day."""
    while True:
        try:
            if economy.daily_grant_due():
                credited = await economy.grant_daily_to_all()
                if credited:
                    logger.info("Scheduled daily grant credited %s accounts.", credited)
        except Exception:
            logger.exception("Scheduled daily grant failed.")
        await asyncio.sleep(interval)


async def run_bot(config: CaseForgeConfig) -> None:
    if not config.bot_token:
        raise ValueError("CASEFORGE_BOT_TOKEN is required to run the bot")

    app = LedgerApp(config)
    await app.start()

    bot = Bot(config.bot_token)
    dp = Dispatcher()
    dp.include_router(build_admin_router(app))
    dp.include_router(build_router(app))
    register_notifications(app, bot)

    scheduler = asyncio.create_task(
        daily_grant_loop(app.economy, config.economy.daily_check_interval_seconds),
        name="caseforge-daily-grant",
    )
    console.print(
        f"[bold green]CaseForge ready![/bold green] "
        f"Accounts: {len(app.store.account_ids())}, cases: {len(app.store.list_cases())}"
    )
    try:
        await dp.start_polling(bot)
    finally:
        scheduler.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await scheduler
        await app.shutdown()
        await bot.session.close()


def main() -> None:
    logging.basicConfig(
        level=os.getenv("CASEFORGE_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_bot(CaseForgeConfig.from_env()))


if __name__ == "__main__":
    main()
