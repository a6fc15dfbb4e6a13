"""Convert ledger records to and from JSON-compatible dictionaries."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from ..domain.cases import CaseDefinition, ItemDefinition, Variation, VariationDescriptor
from .base import (
    Account,
    ItemInstance,
    LedgerMeta,
    LedgerSnapshot,
    LevelReward,
    OfferStatus,
    PromoCode,
    TradeOffer,
    Wager,
)


def _dt_out(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt_in(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def dump_variation(variation: VariationDescriptor | None) -> dict[str, Any] | None:
    if variation is None:
        return None
    return {
        "name": variation.name,
        "price": variation.price,
        "chance": variation.drop_weight,
        "image": variation.image,
    }


def parse_variation_descriptor(entry: dict[str, Any] | None) -> VariationDescriptor | None:
    if not entry:
        return None
    return VariationDescriptor(
        name=str(entry["name"]),
        price=int(entry.get("price", 0)),
        drop_weight=float(entry.get("chance", 0)),
        image=entry.get("image") or None,
    )


def dump_item_instance(item: ItemInstance) -> dict[str, Any]:
    return {
        "instanceId": item.instance_id,
        "itemId": item.item_id,
        "name": item.name,
        "rarity": item.rarity,
        "value": item.value,
        "caseId": item.case_id,
        "image": item.image,
        "variation": dump_variation(item.variation),
        "obtainedAt": _dt_out(item.obtained_at),
    }


def parse_item_instance(entry: dict[str, Any]) -> ItemInstance:
    return ItemInstance(
        instance_id=str(entry["instanceId"]),
        item_id=str(entry.get("itemId") or entry.get("id") or ""),
        name=str(entry.get("name", "")),
        rarity=str(entry.get("rarity", "")),
        value=int(entry.get("value", 0)),
        case_id=entry.get("caseId"),
        image=entry.get("image") or None,
        variation=parse_variation_descriptor(entry.get("variation")),
        obtained_at=_dt_in(entry.get("obtainedAt")),
    )


def dump_account(account: Account) -> dict[str, Any]:
    return {
        "accountId": account.account_id,
        "displayName": account.display_name,
        "username": account.username,
        "balance": account.balance,
        "inventory": [dump_item_instance(item) for item in account.inventory],
        "banned": account.banned,
        "lastDailyClaim": _dt_out(account.last_daily_claim),
        "xp": account.xp,
        "level": account.level,
        "milestonesReached": account.milestones_reached,
        "maxCaseOpenings": account.max_case_openings,
        "lifetimeEarnings": account.lifetime_earnings,
        "createdAt": _dt_out(account.created_at),
    }


def parse_account(entry: dict[str, Any]) -> Account:
    return Account(
        account_id=int(entry["accountId"]),
        display_name=str(entry.get("displayName") or ""),
        username=entry.get("username") or None,
        balance=int(entry.get("balance", 0)),
        inventory=[parse_item_instance(item) for item in entry.get("inventory", [])],
        banned=bool(entry.get("banned", False)),
        last_daily_claim=_dt_in(entry.get("lastDailyClaim")),
        xp=int(entry.get("xp", 0)),
        level=int(entry.get("level", 1)),
        milestones_reached=int(entry.get("milestonesReached", 0)),
        max_case_openings=int(entry.get("maxCaseOpenings", 1)),
        lifetime_earnings=int(entry.get("lifetimeEarnings", 0)),
        created_at=_dt_in(entry.get("createdAt")),
    )


def dump_case(case: CaseDefinition) -> dict[str, Any]:
    items = []
    for item in case.items:
        data: dict[str, Any] = {
            "id": item.item_id,
            "name": item.name,
            "rarity": item.rarity,
            "chance": item.drop_weight,
            "value": item.base_value,
        }
        if item.image:
            data["image"] = item.image
        if item.variations:
            data["variations"] = [
                {
                    "name": var.name,
                    "chance": var.drop_weight,
                    "price": var.price,
                    **({"image": var.image} if var.image else {}),
                }
                for var in item.variations
            ]
        items.append(data)
    return {
        "id": case.case_id,
        "name": case.name,
        "price": case.price,
        "xpReward": case.xp_reward,
        "enabled": case.enabled,
        "items": items,
    }


def parse_case(entry: dict[str, Any]) -> CaseDefinition:
    items = []
    for item in entry.get("items", []):
        variations = tuple(
            Variation(
                name=str(var["name"]),
                drop_weight=float(var.get("chance", 0) or 0),
                price=int(var.get("price", 0) or 0),
                image=var.get("image") or None,
            )
            for var in item.get("variations") or ()
        )
        items.append(
            ItemDefinition(
                item_id=str(item["id"]),
                name=str(item.get("name", item["id"])),
                rarity=str(item.get("rarity", "")),
                base_value=int(item.get("value", 0) or 0),
                drop_weight=float(item.get("chance", 0) or 0),
                variations=variations,
                image=item.get("image") or None,
            )
        )
    return CaseDefinition(
        case_id=str(entry["id"]),
        name=str(entry.get("name", entry["id"])),
        price=int(entry.get("price", 0) or 0),
        items=tuple(items),
        xp_reward=int(entry.get("xpReward", 10)),
        enabled=bool(entry.get("enabled", True)),
    )


def dump_trade(trade: TradeOffer) -> dict[str, Any]:
    return {
        "id": trade.trade_id,
        "fromAccountId": trade.from_account_id,
        "toAccountId": trade.to_account_id,
        "offeredItemIds": list(trade.offered_item_ids),
        "requestedItemIds": list(trade.requested_item_ids),
        "offeredCoins": trade.offered_coins,
        "requestedCoins": trade.requested_coins,
        "status": trade.status.value,
        "createdAt": _dt_out(trade.created_at),
        "settledAt": _dt_out(trade.settled_at),
    }


def parse_trade(entry: dict[str, Any]) -> TradeOffer:
    return TradeOffer(
        trade_id=str(entry["id"]),
        from_account_id=int(entry["fromAccountId"]),
        to_account_id=int(entry["toAccountId"]),
        offered_item_ids=tuple(entry.get("offeredItemIds", ())),
        requested_item_ids=tuple(entry.get("requestedItemIds", ())),
        offered_coins=int(entry.get("offeredCoins", 0)),
        requested_coins=int(entry.get("requestedCoins", 0)),
        status=OfferStatus(entry.get("status", OfferStatus.PENDING.value)),
        created_at=_dt_in(entry.get("createdAt")),
        settled_at=_dt_in(entry.get("settledAt")),
    )


def dump_wager(wager: Wager) -> dict[str, Any]:
    return {
        "id": wager.wager_id,
        "challengerAccountId": wager.challenger_account_id,
        "opponentAccountId": wager.opponent_account_id,
        "stake": wager.stake,
        "status": wager.status.value,
        "winnerAccountId": wager.winner_account_id,
        "createdAt": _dt_out(wager.created_at),
        "settledAt": _dt_out(wager.settled_at),
    }


def parse_wager(entry: dict[str, Any]) -> Wager:
    winner = entry.get("winnerAccountId")
    return Wager(
        wager_id=str(entry["id"]),
        challenger_account_id=int(entry["challengerAccountId"]),
        opponent_account_id=int(entry["opponentAccountId"]),
        stake=int(entry["stake"]),
        status=OfferStatus(entry.get("status", OfferStatus.PENDING.value)),
        winner_account_id=int(winner) if winner is not None else None,
        created_at=_dt_in(entry.get("createdAt")),
        settled_at=_dt_in(entry.get("settledAt")),
    )


def dump_promo(promo: PromoCode) -> dict[str, Any]:
    return {
        "id": promo.code_id,
        "code": promo.code,
        "amount": promo.grant_amount,
        "maxUses": promo.max_redemptions,
        "uses": promo.redemptions_used,
        "usedBy": sorted(promo.redeemed_by),
        "active": promo.active,
        "createdAt": _dt_out(promo.created_at),
    }


def parse_promo(entry: dict[str, Any]) -> PromoCode:
    return PromoCode(
        code_id=str(entry.get("id") or str(entry["code"]).lower()),
        code=str(entry["code"]),
        grant_amount=int(entry.get("amount", 0)),
        max_redemptions=int(entry.get("maxUses", 1)),
        redemptions_used=int(entry.get("uses", 0)),
        redeemed_by={int(account_id) for account_id in entry.get("usedBy", ())},
        active=bool(entry.get("active", True)),
        created_at=_dt_in(entry.get("createdAt")),
    )


def dump_level_reward(reward: LevelReward) -> dict[str, Any]:
    return {
        "level": reward.level,
        "maxCaseOpenings": reward.max_case_openings,
        "title": reward.title,
    }


def parse_level_reward(entry: dict[str, Any]) -> LevelReward:
    return LevelReward(
        level=int(entry["level"]),
        max_case_openings=int(entry.get("maxCaseOpenings", 1)),
        title=entry.get("title") or None,
    )


SECTIONS = ("accounts", "cases", "trades", "wagers", "promoCodes", "levelRewards")


def dump_snapshot(snapshot: LedgerSnapshot) -> dict[str, Any]:
    return {
        "accounts": [dump_account(account) for account in snapshot.accounts],
        "cases": [dump_case(case) for case in snapshot.cases],
        "trades": [dump_trade(trade) for trade in snapshot.trades],
        "wagers": [dump_wager(wager) for wager in snapshot.wagers],
        "promoCodes": [dump_promo(promo) for promo in snapshot.promo_codes],
        "levelRewards": [dump_level_reward(reward) for reward in snapshot.level_rewards],
        "meta": {"lastDailyGrantDate": snapshot.meta.last_daily_grant_date},
    }


def parse_snapshot(data: dict[str, Any]) -> LedgerSnapshot:
    meta = data.get("meta") or {}
    return LedgerSnapshot(
        accounts=[parse_account(entry) for entry in data.get("accounts", [])],
        cases=[parse_case(entry) for entry in data.get("cases", [])],
        trades=[parse_trade(entry) for entry in data.get("trades", [])],
        wagers=[parse_wager(entry) for entry in data.get("wagers", [])],
        promo_codes=[parse_promo(entry) for entry in data.get("promoCodes", [])],
        level_rewards=[parse_level_reward(entry) for entry in data.get("levelRewards", [])],
        meta=LedgerMeta(last_daily_grant_date=meta.get("lastDailyGrantDate")),
    )
