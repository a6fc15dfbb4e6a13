"""Administrative operations for CaseForge bots."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

from ..domain.cases import CaseDefinition, VariationDescriptor, WonItem, generate_items
from ..domain.catalog import CaseCatalog
from ..domain.economy import EconomyService
from ..domain.events import EventBus
from ..domain.exceptions import InvalidAmount, NotFound
from ..domain.progression import ProgressionEngine
from ..domain.promos import PromoLedger
from ..domain.store import AccountStore
from ..storage.base import Account, AuditStore, ItemInstance, LevelReward, PromoCode

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(
        self,
        store: AccountStore,
        audit_store: AuditStore,
        catalog: CaseCatalog,
        economy: EconomyService,
        promos: PromoLedger,
        progression: ProgressionEngine,
        event_bus: EventBus,
        *,
        audit_enabled: bool = True,
    ) -> None:
        self._store = store
        self._audit_store = audit_store
        self._catalog = catalog
        self._economy = economy
        self._promos = promos
        self._progression = progression
        self._events = event_bus
        self._audit_enabled = audit_enabled

    async def ban(self, account_id: int, *, reason: str | None = None) -> Account:
        account = await self._store.ban_account(account_id)
        await self._audit("ban", {"account_id": account_id, "reason": reason})
        await self._events.publish("admin.account.banned", {"account_id": account_id, "reason": reason})
        return account

    async def unban(self, account_id: int) -> Account:
        account = await self._store.unban_account(account_id)
        await self._audit("unban", {"account_id": account_id})
        await self._events.publish("admin.account.unbanned", {"account_id": account_id})
        return account

    async def reset(self, account_id: int) -> Account:
        account = await self._store.reset_account(account_id)
        await self._audit("reset", {"account_id": account_id})
        await self._events.publish("admin.account.reset", {"account_id": account_id})
        return account

    async def set_balance(self, account_id: int, value: int) -> Account:
        account = await self._store.set_balance(account_id, value)
        await self._audit("set_balance", {"account_id": account_id, "balance": value})
        return account

    async def set_progress(self, account_id: int, *, level: int, xp: int) -> Account:
        account = await self._store.set_progress(account_id, level=level, xp=xp)
        await self._audit("set_progress", {"account_id": account_id, "level": level, "xp": xp})
        return account

    async def grant_item(
        self,
        account_id: int,
        case_id: str,
        item_id: str,
        *,
        variation: str | None = None,
    ) -> ItemInstance:
        case = self._store.get_case(case_id)
        item = case.get_item(item_id)
        won = WonItem(
            item_id=item.item_id,
            name=item.name,
            rarity=item.rarity,
            value=item.base_value,
            case_id=case.case_id,
            image=item.image,
        )
        if variation is not None:
            chosen = next((var for var in item.variations if var.name == variation), None)
            if chosen is None:
                raise NotFound(f"Item {item_id} has no variation '{variation}'")
            won = WonItem(
                item_id=item.item_id,
                name=f"{item.name} ({chosen.name})",
                rarity=item.rarity,
                value=chosen.price or item.base_value,
                case_id=case.case_id,
                image=chosen.image or item.image,
                variation=VariationDescriptor(
                    name=chosen.name,
                    price=chosen.price,
                    drop_weight=chosen.drop_weight,
                    image=chosen.image,
                ),
            )
        instance = await self._store.mint_item(account_id, won)
        await self._audit(
            "grant_item",
            {"account_id": account_id, "case_id": case_id, "item_id": item_id, "variation": variation},
        )
        await self._events.publish(
            "admin.item.granted",
            {"account_id": account_id, "instance_id": instance.instance_id},
        )
        return instance

    async def remove_item(self, account_id: int, instance_id: str) -> ItemInstance:
        removed = await self._store.remove_item(account_id, instance_id)
        await self._audit("remove_item", {"account_id": account_id, "instance_id": instance_id})
        return removed

    async def replace_accounts(self, accounts: Iterable[Account]) -> int:
        count = await self._store.replace_accounts(accounts)
        await self._audit("replace_accounts", {"count": count})
        return count

    async def replace_cases(self, cases: Iterable[CaseDefinition]) -> int:
        count = await self._catalog.replace_all(cases)
        await self._audit("replace_cases", {"count": count})
        return count

    async def upsert_cases(self, cases: Iterable[CaseDefinition]) -> int:
        count = await self._catalog.upsert(cases)
        await self._audit("upsert_cases", {"count": count})
        return count

    async def create_generated_case(
        self,
        case_id: str,
        name: str,
        price: int,
        entries: Mapping[str, Sequence[Mapping[str, Any]] | None] | None = None,
        *,
        xp_reward: int = 10,
    ) -> CaseDefinition:
        """Create a case whose items follow the standard rarity split."""
        case = CaseDefinition(
            case_id=case_id,
            name=name,
            price=price,
            items=generate_items(entries),
            xp_reward=xp_reward,
        )
        await self._catalog.create(case)
        await self._audit(
            "create_generated_case", {"case_id": case_id, "price": price, "items": len(case.items)}
        )
        return case

    async def set_case_enabled(self, case_id: str, enabled: bool) -> CaseDefinition:
        case = await self._catalog.set_enabled(case_id, enabled)
        await self._audit("set_case_enabled", {"case_id": case_id, "enabled": enabled})
        return case

    async def create_promo(self, code: str, amount: int, max_redemptions: int = 1) -> PromoCode:
        promo = await self._promos.create_code(code, amount, max_redemptions)
        await self._audit(
            "create_promo", {"code": promo.code, "amount": amount, "max_redemptions": max_redemptions}
        )
        return promo

    async def set_promo_active(self, code: str, active: bool) -> PromoCode:
        promo = await self._promos.update_code(code, active=active)
        await self._audit("set_promo_active", {"code": promo.code, "active": active})
        return promo

    async def delete_promo(self, code: str) -> None:
        await self._promos.delete_code(code)
        await self._audit("delete_promo", {"code": code})

    async def set_level_reward(
        self, level: int, max_case_openings: int, *, title: str = ""
    ) -> LevelReward:
        reward = await self._progression.set_level_reward(
            LevelReward(
                level=level,
                max_case_openings=max_case_openings,
                title=title,
            )
        )
        await self._audit(
            "set_level_reward",
            {"level": level, "max_case_openings": max_case_openings},
        )
        return reward

    async def remove_level_reward(self, level: int) -> None:
        await self._progression.remove_level_reward(level)
        await self._audit("remove_level_reward", {"level": level})

    async def grant_daily_to_all(self, *, now: datetime | None = None) -> int:
        credited = await self._economy.grant_daily_to_all(now=now)
        await self._audit("daily_all", {"credited": credited})
        return credited

    async def adjust_balance(self, account_id: int, delta: int) -> Account:
        if delta == 0:
            raise InvalidAmount("Delta must not be zero")
        account = await self._store.adjust_balance(account_id, delta)
        await self._audit("adjust_balance", {"account_id": account_id, "delta": delta})
        return account

    async def _audit(self, action: str, payload: dict) -> None:
        logger.info("Admin action %s: %s", action, payload)
        if not self._audit_enabled:
            return
        await self._audit_store.add_entry(
            action,
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                **payload,
            },
        )
