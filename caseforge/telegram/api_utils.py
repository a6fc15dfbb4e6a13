"""Shared helpers to deliver Telegram messages without breaking ledger flows."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from aiogram import Bot
from aiogram.exceptions import (
    TelegramAPIError,
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramRetryAfter,
)
from aiogram.types import CallbackQuery, Message

P = ParamSpec("P")
T = TypeVar("T")

logger = logging.getLogger(__name__)


async def safe_api_call(
    label: str,
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    retries: int = 3,
    **kwargs: P.kwargs,
) -> T | None:
    """Run a Bot API call; rate limits are retried, delivery failures return None."""
    for attempt in range(1, retries + 1):
        try:
            return await func(*args, **kwargs)
        except TelegramRetryAfter as exc:
            delay = float(getattr(exc, "retry_after", 0) or 1.0)
            if attempt >= retries:
                logger.warning(
                    "Telegram call '%s' gave up after %s rate-limited attempts (retry_after=%s).",
                    label,
                    attempt,
                    delay,
                )
                return None
            logger.info(
                "Telegram call '%s' rate limited; retrying in %.1f s (attempt %s/%s).",
                label,
                delay,
                attempt,
                retries,
            )
            await asyncio.sleep(delay)
        except TelegramForbiddenError:
            logger.info("Telegram call '%s' forbidden; the chat blocked the bot.", label)
            return None
        except TelegramBadRequest as exc:
            if "message is not modified" in str(exc).lower():
                logger.debug("Telegram call '%s' skipped: content unchanged.", label)
            else:
                logger.warning("Telegram call '%s' bad request: %s", label, exc)
            return None
        except TelegramAPIError as exc:
            logger.error("Telegram call '%s' failed: %s", label, exc, exc_info=True)
            return None
    return None


async def safe_message_answer(message: Message | None, text: str, **kwargs) -> bool:
    if not message:
        return False
    return (await safe_api_call("message.answer", message.answer, text, **kwargs)) is not None


async def safe_message_photo(message: Message | None, photo: str, caption: str, **kwargs) -> bool:
    """Send a photo with caption, falling back to plain text when the photo is rejected."""
    if not message:
        return False
    sent = await safe_api_call(
        "message.answer_photo", message.answer_photo, photo, caption=caption, **kwargs
    )
    if sent is not None:
        return True
    return await safe_message_answer(message, caption, **kwargs)


async def safe_callback_answer(
    callback: CallbackQuery | None,
    text: str | None = None,
    **kwargs,
) -> bool:
    if not callback:
        return False
    params = dict(kwargs)
    if text is not None:
        params["text"] = text
    return (await safe_api_call("callback.answer", callback.answer, **params)) is not None


async def notify_account(bot: Bot, account_id: int, text: str, **kwargs) -> bool:
    """Direct message to an account; used by ledger event listeners after commit."""
    return (
        await safe_api_call("bot.send_message", bot.send_message, account_id, text, **kwargs)
    ) is not None
