"""Admin command wiring for aiogram."""

from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message

from ..app import LedgerApp
from ..domain.exceptions import LedgerError
from ..telegram.aiogram_router import command_args, describe_error, format_item
from ..telegram.api_utils import safe_message_answer
from ..telegram.filters import AdminFilter
from .service import AdminService


def build_admin_router(app: LedgerApp) -> Router:
    router = Router()
    router.message.filter(AdminFilter(app.config))
    service = app_admin_service(app)
    commands = app.config.admin.commands

    async def run(message: Message, usage: str, min_args: int, action) -> None:
        args = command_args(message.text)
        if len(args) < min_args:
            await safe_message_answer(message, f"Использование: {usage}")
            return
        try:
            reply = await action(args)
        except (LedgerError, ValueError) as exc:
            text = describe_error(exc) if isinstance(exc, LedgerError) else f"Ошибка: {exc}"
            await safe_message_answer(message, text)
            return
        await safe_message_answer(message, reply)

    @router.message(Command(commands.ban))
    async def handle_ban(message: Message) -> None:
        async def action(args: list[str]) -> str:
            target = int(args[0])
            await service.ban(target, reason=f"by {message.from_user.id}")
            return f"Аккаунт {target} заблокирован."

        await run(message, f"/{commands.ban} <account_id>", 1, action)

    @router.message(Command(commands.unban))
    async def handle_unban(message: Message) -> None:
        async def action(args: list[str]) -> str:
            target = int(args[0])
            await service.unban(target)
            return f"Аккаунт {target} разблокирован."

        await run(message, f"/{commands.unban} <account_id>", 1, action)

    @router.message(Command(commands.reset))
    async def handle_reset(message: Message) -> None:
        async def action(args: list[str]) -> str:
            account = await service.reset(int(args[0]))
            return f"Аккаунт {account.account_id} сброшен. Баланс: {account.balance} 🪙"

        await run(message, f"/{commands.reset} <account_id>", 1, action)

    @router.message(Command(commands.set_balance))
    async def handle_set_balance(message: Message) -> None:
        async def action(args: list[str]) -> str:
            account = await service.set_balance(int(args[0]), int(args[1]))
            return f"Баланс {account.account_id}: {account.balance} 🪙"

        await run(message, f"/{commands.set_balance} <account_id> <сумма>", 2, action)

    @router.message(Command(commands.grant_item))
    async def handle_grant_item(message: Message) -> None:
        async def action(args: list[str]) -> str:
            variation = " ".join(args[3:]) or None
            item = await service.grant_item(int(args[0]), args[1], args[2], variation=variation)
            return f"Выдано пользователю {args[0]}: {format_item(item)}"

        await run(
            message,
            f"/{commands.grant_item} <account_id> <case_id> <item_id> [вариация]",
            3,
            action,
        )

    @router.message(Command(commands.create_promo))
    async def handle_create_promo(message: Message) -> None:
        async def action(args: list[str]) -> str:
            max_uses = int(args[2]) if len(args) > 2 else 1
            promo = await service.create_promo(args[0], int(args[1]), max_uses)
            return f"Промокод {promo.code}: {promo.grant_amount} 🪙, активаций: {promo.max_redemptions}"

        await run(message, f"/{commands.create_promo} <код> <сумма> [активаций]", 2, action)

    @router.message(Command(commands.daily_all))
    async def handle_daily_all(message: Message) -> None:
        async def action(args: list[str]) -> str:
            credited = await service.grant_daily_to_all()
            if not credited:
                return "Ежедневный бонус сегодня уже начислен."
            return f"Ежедневный бонус начислен {credited} аккаунтам."

        await run(message, f"/{commands.daily_all}", 0, action)

    return router


def app_admin_service(app: LedgerApp) -> AdminService:
    return AdminService(
        store=app.store,
        audit_store=app.audit_store,
        catalog=app.catalog,
        economy=app.economy,
        promos=app.promos,
        progression=app.progression,
        event_bus=app.event_bus,
        audit_enabled=app.config.admin.enable_audit_logs,
    )
