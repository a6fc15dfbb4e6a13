"""Usage-capped promotional codes."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass

from ..storage.base import PromoCode
from .events import PROMO_REDEEMED, EventBus
from .exceptions import (
    AlreadyExists,
    AlreadyRedeemed,
    CodeInactive,
    CodeNotFound,
    InvalidAmount,
    NotAuthorized,
    RedemptionsExhausted,
)
from .progression import ProgressionEngine, ProgressionResult
from .store import AccountStore, apply_delta, promo_key, utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Redemption:
    code: str
    amount: int
    balance: int
    progression: ProgressionResult


class PromoLedger:
    """Codes are matched case-insensitively.

    A redemption credits the account and records it on the code within one
    transaction holding both the account lock and the code lock.
    """

    def __init__(
        self,
        store: AccountStore,
        *,
        progression: ProgressionEngine | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._progression = progression
        self._events = event_bus or EventBus()

    async def create_code(self, code: str, grant_amount: int, max_redemptions: int = 1) -> PromoCode:
        normalized = code.strip()
        if not normalized:
            raise InvalidAmount("Promo code cannot be empty")
        _check_terms(grant_amount, max_redemptions)
        async with self._store.transaction(keys=[promo_key(normalized)]) as tx:
            if tx.promo(normalized) is not None:
                raise AlreadyExists(f"Promo code {normalized} already exists")
            promo = PromoCode(
                code_id=normalized.lower(),
                code=normalized,
                grant_amount=grant_amount,
                max_redemptions=max_redemptions,
                created_at=utcnow(),
            )
            tx.put_promo(promo)
        logger.info("Promo code %s created (%s x%s).", normalized, grant_amount, max_redemptions)
        return copy.deepcopy(promo)

    async def update_code(
        self,
        code: str,
        *,
        grant_amount: int | None = None,
        max_redemptions: int | None = None,
        active: bool | None = None,
    ) -> PromoCode:
        async with self._store.transaction(keys=[promo_key(code)]) as tx:
            promo = tx.promo(code)
            if promo is None:
                raise CodeNotFound(f"Promo code {code} not found")
            new_amount = promo.grant_amount if grant_amount is None else grant_amount
            new_max = promo.max_redemptions if max_redemptions is None else max_redemptions
            _check_terms(new_amount, new_max)
            if new_max < promo.redemptions_used:
                raise InvalidAmount(
                    f"Promo code {code} was already redeemed {promo.redemptions_used} times"
                )
            promo.grant_amount = new_amount
            promo.max_redemptions = new_max
            if active is not None:
                promo.active = active
        return copy.deepcopy(promo)

    async def delete_code(self, code: str) -> None:
        async with self._store.transaction(keys=[promo_key(code)]) as tx:
            if tx.promo(code) is None:
                raise CodeNotFound(f"Promo code {code} not found")
            tx.delete_promo(code)

    def list_codes(self) -> list[PromoCode]:
        return self._store.list_promos()

    async def redeem(self, account_id: int, code: str) -> Redemption:
        progress = ProgressionResult()
        async with self._store.transaction(account_id, keys=[promo_key(code)]) as tx:
            account = tx.account(account_id)
            if account.banned:
                raise NotAuthorized("Banned accounts cannot redeem promo codes")
            promo = tx.promo(code)
            if promo is None:
                raise CodeNotFound(f"Promo code {code} not found")
            if not promo.active:
                raise CodeInactive(f"Promo code {promo.code} is inactive")
            if account_id in promo.redeemed_by:
                raise AlreadyRedeemed(f"Promo code {promo.code} already used by {account_id}")
            if promo.redemptions_used >= promo.max_redemptions:
                raise RedemptionsExhausted(f"Promo code {promo.code} is exhausted")
            apply_delta(account, promo.grant_amount)
            promo.redeemed_by.add(account_id)
            promo.redemptions_used += 1
            if self._progression is not None:
                progress = self._progression.apply_earnings(account, promo.grant_amount)

        logger.info("Promo code %s redeemed by %s.", promo.code, account_id)
        await self._events.publish(
            PROMO_REDEEMED,
            {"account_id": account_id, "code": promo.code, "amount": promo.grant_amount},
        )
        if self._progression is not None:
            await self._progression.announce(account_id, progress)
        return Redemption(
            code=promo.code, amount=promo.grant_amount, balance=account.balance, progression=progress
        )


def _check_terms(grant_amount: int, max_redemptions: int) -> None:
    if grant_amount <= 0:
        raise InvalidAmount("Promo amount must be positive")
    if max_redemptions < 1:
        raise InvalidAmount("Promo code must allow at least one redemption")
