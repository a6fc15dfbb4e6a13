"""Factory helpers to wire CaseForge ledger services into aiogram."""

from __future__ import annotations

from typing import Iterable, Sequence

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from ..app import LedgerApp
from ..domain.cases import CaseDefinition
from ..domain.economy import CaseOpening, DailyClaim, Sale
from ..domain.exceptions import (
    AlreadyExists,
    ErrorKind,
    InsufficientFunds,
    InvalidAmount,
    ItemNotFound,
    LedgerError,
)
from ..domain.progression import ProgressionResult
from ..domain.promos import Redemption
from ..domain.store import AccountStore
from ..storage.base import Account, ItemInstance, TradeOffer, Wager
from .api_utils import safe_callback_answer, safe_message_answer, safe_message_photo
from .filters import ConnectedFilter
from .keyboards import case_open_keyboard, parse_callback

SHORT_ID_LENGTH = 8

RARITY_LABELS = {
    "blue": "🔵 Армейское",
    "purple": "🟣 Запрещённое",
    "pink": "🩷 Засекреченное",
    "red": "🔴 Тайное",
    "gold": "🟡 Редкое",
    "contraband": "🟠 Контрабанда",
}

ERROR_MESSAGES = {
    ErrorKind.NOT_FOUND: "Не найдено.",
    ErrorKind.ALREADY_EXISTS: "Такая запись уже существует.",
    ErrorKind.INVALID_AMOUNT: "Некорректное количество.",
    ErrorKind.INSUFFICIENT_FUNDS: "Недостаточно монет.",
    ErrorKind.ITEM_NOT_FOUND: "Предмет не найден в инвентаре.",
    ErrorKind.STALE_OFFER: "Предложение устарело: балансы или предметы изменились.",
    ErrorKind.NOT_AUTHORIZED: "Это действие недоступно.",
    ErrorKind.NOT_PENDING: "Предложение уже закрыто.",
    ErrorKind.ALREADY_REDEEMED: "Уже получено.",
    ErrorKind.REDEMPTIONS_EXHAUSTED: "Лимит активаций промокода исчерпан.",
    ErrorKind.CODE_INACTIVE: "Промокод неактивен.",
    ErrorKind.CODE_NOT_FOUND: "Промокод не найден.",
    ErrorKind.VALIDATION_ERROR: "Данные не прошли проверку.",
}

CONNECTED_COMMANDS = (
    "balance",
    "open",
    "inventory",
    "sell",
    "trade",
    "trades",
    "accept",
    "decline",
    "bet",
    "acceptbet",
    "declinebet",
    "promo",
    "daily",
    "profile",
)


def build_router(app: LedgerApp) -> Router:
    router = Router()
    store = app.store
    connected = ConnectedFilter(store)

    @router.message(Command("start", "help"))
    async def handle_help(message: Message) -> None:
        await safe_message_answer(message, render_help_message())

    @router.message(Command("connect"))
    async def handle_connect(message: Message) -> None:
        user = message.from_user
        if not user:
            return
        try:
            account = await store.create_account(
                user.id, display_name=user.full_name, username=user.username
            )
        except AlreadyExists:
            await safe_message_answer(message, "Аккаунт уже подключён. /balance покажет баланс.")
            return
        await safe_message_answer(
            message, f"✅ Аккаунт создан! Стартовый баланс: {account.balance} 🪙\n/cases — список кейсов."
        )

    @router.message(Command("cases"))
    async def handle_cases(message: Message) -> None:
        await safe_message_answer(message, format_cases(store.list_cases()))

    @router.message(Command("balance"), connected)
    async def handle_balance(message: Message, account: Account) -> None:
        await safe_message_answer(message, format_balance(account))

    @router.message(Command("profile"), connected)
    async def handle_profile(message: Message, account: Account) -> None:
        await safe_message_answer(
            message, format_profile(account, xp_per_level=app.config.progression.xp_per_level)
        )

    @router.message(Command("inventory"), connected)
    async def handle_inventory(message: Message, account: Account) -> None:
        await safe_message_answer(message, format_inventory(account))

    @router.message(Command("open"), connected)
    async def handle_open(message: Message, account: Account) -> None:
        args = command_args(message.text)
        if not args:
            await safe_message_answer(message, "Использование: /open <case_id> [кол-во]")
            return
        try:
            count = parse_positive_int(args[1]) if len(args) > 1 else 1
            opening = await app.economy.open_case(account.account_id, args[0], count)
        except LedgerError as exc:
            await safe_message_answer(message, describe_error(exc))
            return
        text = format_opening(opening)
        markup = case_open_keyboard(opening.case.case_id)
        image = opening.items[0].image if len(opening.items) == 1 else None
        if image:
            await safe_message_photo(
                message, resolve_image_url(app.config.public_base_url, image), text, reply_markup=markup
            )
        else:
            await safe_message_answer(message, text, reply_markup=markup)

    @router.message(Command("sell"), connected)
    async def handle_sell(message: Message, account: Account) -> None:
        args = command_args(message.text)
        if not args:
            await safe_message_answer(message, "Использование: /sell <id предмета> или /sell all")
            return
        try:
            if args[0].lower() == "all":
                sale = await app.economy.sell_all(account.account_id)
            else:
                (instance_id,) = resolve_instance_ids(account, args[:1])
                sale = await app.economy.sell_item(account.account_id, instance_id)
        except LedgerError as exc:
            await safe_message_answer(message, describe_error(exc))
            return
        await safe_message_answer(message, format_sale(sale))

    @router.message(Command("trade"), connected)
    async def handle_trade(message: Message, account: Account) -> None:
        args = command_args(message.text)
        if len(args) < 3:
            await safe_message_answer(
                message,
                "Использование: /trade <@ник|id> <мои предметы|-> <их предметы|-> "
                "[мои монеты] [их монеты]\nID предметов через запятую.",
            )
            return
        target = resolve_target(store, args[0])
        if target is None:
            await safe_message_answer(message, "Получатель не найден. Он должен выполнить /connect.")
            return
        try:
            offered = resolve_instance_ids(account, split_ids(args[1]))
            requested = resolve_instance_ids(target, split_ids(args[2]))
            offered_coins = parse_non_negative_int(args[3]) if len(args) > 3 else 0
            requested_coins = parse_non_negative_int(args[4]) if len(args) > 4 else 0
            trade = await app.trades.create_trade(
                account.account_id,
                target.account_id,
                offered,
                requested,
                offered_coins,
                requested_coins,
            )
        except LedgerError as exc:
            await safe_message_answer(message, describe_error(exc))
            return
        await safe_message_answer(message, "📨 Предложение отправлено.\n" + format_trade(trade))

    @router.message(Command("trades"), connected)
    async def handle_trades(message: Message, account: Account) -> None:
        await safe_message_answer(
            message,
            format_trades(app.trades.incoming(account.account_id), app.trades.outgoing(account.account_id)),
        )

    @router.message(Command("accept"), connected)
    async def handle_accept(message: Message, account: Account) -> None:
        args = command_args(message.text)
        if not args:
            await safe_message_answer(message, "Использование: /accept <trade_id>")
            return
        await safe_message_answer(message, await _settle_trade(app, args[0], account.account_id))

    @router.message(Command("decline"), connected)
    async def handle_decline(message: Message, account: Account) -> None:
        args = command_args(message.text)
        if not args:
            await safe_message_answer(message, "Использование: /decline <trade_id>")
            return
        await safe_message_answer(message, await _cancel_trade(app, args[0], account.account_id))

    @router.message(Command("bet"), connected)
    async def handle_bet(message: Message, account: Account) -> None:
        args = command_args(message.text)
        if len(args) < 2:
            await safe_message_answer(message, "Использование: /bet <@ник|id> <ставка>")
            return
        target = resolve_target(store, args[0])
        if target is None:
            await safe_message_answer(message, "Соперник не найден. Он должен выполнить /connect.")
            return
        try:
            wager = await app.wagers.create_wager(
                account.account_id, target.account_id, parse_positive_int(args[1])
            )
        except LedgerError as exc:
            await safe_message_answer(message, describe_error(exc))
            return
        await safe_message_answer(message, "🎲 Вызов отправлен.\n" + format_wager(wager))

    @router.message(Command("acceptbet"), connected)
    async def handle_accept_bet(message: Message, account: Account) -> None:
        args = command_args(message.text)
        if not args:
            await safe_message_answer(message, "Использование: /acceptbet <bet_id>")
            return
        await safe_message_answer(message, await _settle_wager(app, args[0], account.account_id))

    @router.message(Command("declinebet"), connected)
    async def handle_decline_bet(message: Message, account: Account) -> None:
        args = command_args(message.text)
        if not args:
            await safe_message_answer(message, "Использование: /declinebet <bet_id>")
            return
        await safe_message_answer(message, await _cancel_wager(app, args[0], account.account_id))

    @router.message(Command("promo"), connected)
    async def handle_promo(message: Message, account: Account) -> None:
        args = command_args(message.text)
        if not args:
            await safe_message_answer(message, "Использование: /promo <код>")
            return
        try:
            redemption = await app.promos.redeem(account.account_id, args[0])
        except LedgerError as exc:
            await safe_message_answer(message, describe_error(exc))
            return
        await safe_message_answer(message, format_redemption(redemption))

    @router.message(Command("daily"), connected)
    async def handle_daily(message: Message, account: Account) -> None:
        try:
            claim = await app.economy.claim_daily(account.account_id)
        except LedgerError as exc:
            await safe_message_answer(message, describe_error(exc))
            return
        await safe_message_answer(message, format_daily(claim))

    @router.message(Command(*CONNECTED_COMMANDS))
    async def handle_not_connected(message: Message) -> None:
        await safe_message_answer(message, "Сначала подключите аккаунт командой /connect.")

    @router.callback_query(lambda c: bool(parse_callback(c.data)))
    async def handle_callback(callback: CallbackQuery) -> None:
        user = callback.from_user
        parts = parse_callback(callback.data)
        if not user or not store.has_account(user.id):
            await safe_callback_answer(callback, "Сначала /connect", show_alert=True)
            return
        action = parts[0]
        if action == "open" and len(parts) == 2:
            try:
                opening = await app.economy.open_case(user.id, parts[1])
            except LedgerError as exc:
                await safe_callback_answer(callback, describe_error(exc), show_alert=True)
                return
            await safe_callback_answer(callback)
            await safe_message_answer(
                callback.message, format_opening(opening), reply_markup=case_open_keyboard(parts[1])
            )
        elif action == "inventory":
            await safe_callback_answer(callback)
            await safe_message_answer(callback.message, format_inventory(store.get_account(user.id)))
        elif action in ("trade", "bet") and len(parts) == 3:
            verb, record_id = parts[1], parts[2]
            if action == "trade":
                handler = _settle_trade if verb == "accept" else _cancel_trade
            else:
                handler = _settle_wager if verb == "accept" else _cancel_wager
            await safe_callback_answer(callback)
            await safe_message_answer(callback.message, await handler(app, record_id, user.id))
        else:
            await safe_callback_answer(callback)

    return router


async def _settle_trade(app: LedgerApp, trade_id: str, account_id: int) -> str:
    try:
        trade = await app.trades.settle_trade(trade_id, account_id)
    except LedgerError as exc:
        return describe_error(exc)
    return "✅ Обмен завершён.\n" + format_trade(trade)


async def _cancel_trade(app: LedgerApp, trade_id: str, account_id: int) -> str:
    try:
        await app.trades.cancel_trade(trade_id, account_id)
    except LedgerError as exc:
        return describe_error(exc)
    return f"❌ Обмен {trade_id} отменён."


async def _settle_wager(app: LedgerApp, wager_id: str, account_id: int) -> str:
    try:
        wager = await app.wagers.settle_wager(wager_id, account_id)
    except LedgerError as exc:
        return describe_error(exc)
    return format_wager(wager)


async def _cancel_wager(app: LedgerApp, wager_id: str, account_id: int) -> str:
    try:
        await app.wagers.cancel_wager(wager_id, account_id)
    except LedgerError as exc:
        return describe_error(exc)
    return f"❌ Ставка {wager_id} отменена."


def command_args(text: str | None) -> list[str]:
    if not text:
        return []
    return text.strip().split()[1:]


def parse_positive_int(raw: str) -> int:
    value = parse_non_negative_int(raw)
    if value == 0:
        raise InvalidAmount("Значение должно быть больше нуля")
    return value


def parse_non_negative_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidAmount(f"'{raw}' не является числом") from exc
    if value < 0:
        raise InvalidAmount("Значение не может быть отрицательным")
    return value


def split_ids(raw: str) -> list[str]:
    if raw.strip() == "-":
        return []
    return [token for token in raw.split(",") if token.strip()]


def short_item_id(instance_id: str) -> str:
    return instance_id[:SHORT_ID_LENGTH]


def resolve_instance_ids(account: Account, tokens: Sequence[str]) -> list[str]:
    """Expand short id prefixes into full instance ids owned by ``account``."""
    resolved: list[str] = []
    for token in tokens:
        prefix = token.strip().lower()
        matches = [item.instance_id for item in account.inventory if item.instance_id.startswith(prefix)]
        if not prefix or len(matches) != 1:
            raise ItemNotFound(f"Item {token} not found for account {account.account_id}")
        resolved.append(matches[0])
    return resolved


def resolve_target(store: AccountStore, token: str) -> Account | None:
    if token.startswith("@"):
        return store.find_by_username(token)
    if token.isdigit() and store.has_account(int(token)):
        return store.get_account(int(token))
    return store.find_by_username(token)


def resolve_image_url(base_url: str, image: str) -> str:
    if image.startswith(("http://", "https://")):
        return image
    return f"{base_url.rstrip('/')}/{image.lstrip('/')}"


def describe_error(exc: LedgerError) -> str:
    if isinstance(exc, InsufficientFunds) and exc.required is not None:
        return f"Недостаточно монет: нужно {exc.required} 🪙, на балансе {exc.balance} 🪙."
    if exc.kind is ErrorKind.INVALID_AMOUNT and str(exc):
        return f"Некорректное значение: {exc}"
    return ERROR_MESSAGES.get(exc.kind, "Операция не выполнена.")


def render_help_message() -> str:
    lines = [
        "Привет! Это бот кейсов CaseForge.",
        "",
        "Команды:",
        "• /connect — создать аккаунт",
        "• /balance — баланс",
        "• /cases — список кейсов",
        "• /open <case_id> [кол-во] — открыть кейс",
        "• /inventory — инвентарь",
        "• /sell <id>|all — продать предмет или всё",
        "• /trade <@ник> <мои id|-> <их id|-> [мои монеты] [их монеты] — обмен",
        "• /trades — входящие и исходящие обмены",
        "• /accept <id>, /decline <id> — ответить на обмен",
        "• /bet <@ник> <ставка> — вызвать на ставку",
        "• /acceptbet <id>, /declinebet <id> — ответить на ставку",
        "• /promo <код> — активировать промокод",
        "• /daily — ежедневный бонус",
        "• /profile — уровень и опыт",
    ]
    return "\n".join(lines)


def rarity_label(rarity: str) -> str:
    return RARITY_LABELS.get(rarity, rarity)


def format_balance(account: Account) -> str:
    return f"💰 Баланс: {account.balance} 🪙\n🎒 Предметов: {len(account.inventory)}"


def format_cases(cases: Iterable[CaseDefinition]) -> str:
    lines = ["📦 Доступные кейсы:"]
    for case in cases:
        if not case.enabled:
            continue
        lines.append(f"• {case.case_id}: {case.name} — {case.price} 🪙 ({len(case.items)} предметов)")
    if len(lines) == 1:
        return "Доступных кейсов пока нет."
    lines.append("")
    lines.append("Открыть: /open <case_id>")
    return "\n".join(lines)


def format_item(item: ItemInstance) -> str:
    return f"[{short_item_id(item.instance_id)}] {item.name} {rarity_label(item.rarity)} — {item.value} 🪙"


def format_opening(opening: CaseOpening) -> str:
    lines = [f"🎁 {opening.case.name}:"]
    lines.extend(f"• {format_item(item)}" for item in opening.items)
    lines.append("")
    lines.append(f"💰 Баланс: {opening.balance} 🪙")
    lines.extend(format_progression(opening.progression))
    return "\n".join(lines)


def format_inventory(account: Account) -> str:
    if not account.inventory:
        return "Инвентарь пуст. Открывай кейсы командой /open."
    lines = ["🎒 Инвентарь:"]
    lines.extend(f"• {format_item(item)}" for item in account.inventory)
    lines.append("")
    lines.append(f"Общая стоимость: {account.inventory_value()} 🪙")
    return "\n".join(lines)


def format_sale(sale: Sale) -> str:
    if not sale.items:
        return "Нечего продавать."
    lines = [f"💸 Продано предметов: {len(sale.items)} на {sale.amount} 🪙", f"💰 Баланс: {sale.balance} 🪙"]
    lines.extend(format_progression(sale.progression))
    return "\n".join(lines)


def format_trade(trade: TradeOffer) -> str:
    offered = ", ".join(short_item_id(i) for i in trade.offered_item_ids) or "—"
    requested = ", ".join(short_item_id(i) for i in trade.requested_item_ids) or "—"
    return "\n".join(
        [
            f"🔁 Обмен {trade.trade_id} [{trade.status.value}]",
            f"От {trade.from_account_id} → {trade.to_account_id}",
            f"Отдаёт: {offered}; монеты: {trade.offered_coins}",
            f"Просит: {requested}; монеты: {trade.requested_coins}",
        ]
    )


def format_trades(incoming: Sequence[TradeOffer], outgoing: Sequence[TradeOffer]) -> str:
    if not incoming and not outgoing:
        return "Активных обменов нет."
    lines: list[str] = []
    if incoming:
        lines.append("📥 Входящие:")
        lines.extend(format_trade(trade) for trade in incoming)
    if outgoing:
        if lines:
            lines.append("")
        lines.append("📤 Исходящие:")
        lines.extend(format_trade(trade) for trade in outgoing)
    return "\n".join(lines)


def format_wager(wager: Wager) -> str:
    header = f"🎲 Ставка {wager.wager_id}: {wager.stake} 🪙 [{wager.status.value}]"
    parties = f"{wager.challenger_account_id} vs {wager.opponent_account_id}"
    if wager.winner_account_id is None:
        return f"{header}\n{parties}"
    return f"{header}\n{parties}\n🏆 Победитель: {wager.winner_account_id} (+{wager.stake * 2} 🪙)"


def format_redemption(redemption: Redemption) -> str:
    lines = [
        f"🎟️ Промокод {redemption.code} активирован: +{redemption.amount} 🪙",
        f"💰 Баланс: {redemption.balance} 🪙",
    ]
    lines.extend(format_progression(redemption.progression))
    return "\n".join(lines)


def format_daily(claim: DailyClaim) -> str:
    lines = [f"📅 Ежедневный бонус: +{claim.amount} 🪙", f"💰 Баланс: {claim.balance} 🪙"]
    lines.extend(format_progression(claim.progression))
    return "\n".join(lines)


def format_progression(result: ProgressionResult) -> list[str]:
    lines: list[str] = []
    if result.xp_gained:
        lines.append(f"📈 Опыт: +{result.xp_gained}")
    if result.leveled_up:
        lines.append(f"⭐ Новый уровень: {result.levels_gained[-1]}!")
    for reward in result.rewards:
        lines.append(f"🔓 Уровень {reward.level}: можно открывать до {reward.max_case_openings} кейсов за раз")
    return lines


def format_profile(account: Account, *, xp_per_level: int) -> str:
    name = account.display_name or (f"@{account.username}" if account.username else str(account.account_id))
    lines = [
        f"👤 Профиль {name}",
        f"⭐ Уровень: {account.level}",
        f"📈 Опыт: {account.xp}/{xp_per_level}",
        f"💰 Баланс: {account.balance} 🪙",
        f"🏦 Заработано всего: {account.lifetime_earnings} 🪙",
        f"📦 Кейсов за раз: {account.max_case_openings}",
        f"🎒 Предметов: {len(account.inventory)} на {account.inventory_value()} 🪙",
    ]
    if account.banned:
        lines.append("🚫 Аккаунт заблокирован")
    return "\n".join(lines)
