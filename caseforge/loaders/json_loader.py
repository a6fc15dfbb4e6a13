"""Load and export case catalogs and account registries as JSON documents."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence, TYPE_CHECKING

from ..domain.cases import CaseDefinition, RarityTier, catalog_weight_errors
from ..domain.exceptions import ValidationError
from ..storage.base import Account
from ..storage.codec import dump_account, dump_case, parse_account, parse_case

if TYPE_CHECKING:
    from ..app import LedgerApp


@dataclass(slots=True)
class CatalogDefinition:
    cases: Sequence[CaseDefinition]


async def load_catalog_from_json(
    app: "LedgerApp", path: str | Path, *, replace: bool = False
) -> CatalogDefinition:
    """Load cases from a JSON file and upsert (or replace) them in the app catalog."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    definition = parse_catalog_dict(data, tolerance=app.config.roll.weight_tolerance)
    if replace:
        await app.catalog.replace_all(definition.cases)
    else:
        await app.catalog.upsert(definition.cases)
    return definition


def parse_catalog_dict(data: dict[str, Any], *, tolerance: float = 0.1) -> CatalogDefinition:
    """Parse a JSON dict (already decoded) into case definitions."""
    errors = validate_catalog_dict(data, tolerance=tolerance)
    if errors:
        raise ValidationError(_format_errors("Catalog validation failed", errors), errors=errors)
    return CatalogDefinition(cases=tuple(parse_case(entry) for entry in data["cases"]))


def validate_catalog_file(path: str | Path, *, tolerance: float = 0.1) -> list[str]:
    """Validate catalog JSON file and return a list of errors."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return validate_catalog_dict(data, tolerance=tolerance)


def validate_catalog_dict(data: dict[str, Any], *, tolerance: float = 0.1) -> list[str]:
    errors: list[str] = []
    rarities = {tier.value for tier in RarityTier}

    cases_raw = data.get("cases") if isinstance(data, dict) else None
    if not isinstance(cases_raw, list) or not cases_raw:
        return ["Catalog must contain non-empty 'cases' array."]

    for idx, entry in enumerate(cases_raw, start=1):
        if not isinstance(entry, dict):
            errors.append(f"Case #{idx} must be an object.")
            continue
        case_id = entry.get("id")
        if not isinstance(case_id, str) or not case_id.strip():
            errors.append(f"Case #{idx} must define non-empty 'id'.")
            continue
        price = entry.get("price")
        if not isinstance(price, int) or price < 0:
            errors.append(f"Case '{case_id}' has invalid 'price' value '{price}'.")
        xp_reward = entry.get("xpReward", 10)
        if not isinstance(xp_reward, int) or xp_reward < 0:
            errors.append(f"Case '{case_id}' has invalid 'xpReward' value '{xp_reward}'.")

        items = entry.get("items")
        if not isinstance(items, list) or not items:
            errors.append(f"Case '{case_id}' must define non-empty 'items' array.")
            continue
        for item_idx, item in enumerate(items, start=1):
            if not isinstance(item, dict):
                errors.append(f"Case '{case_id}' item #{item_idx} must be an object.")
                continue
            item_id = item.get("id")
            if not isinstance(item_id, str) or not item_id.strip():
                errors.append(f"Case '{case_id}' item #{item_idx} must define non-empty 'id'.")
                continue
            if item.get("rarity") not in rarities:
                errors.append(
                    f"Case '{case_id}' item '{item_id}' has invalid rarity '{item.get('rarity')}'."
                )
            chance = item.get("chance")
            if not isinstance(chance, (int, float)) or chance < 0:
                errors.append(f"Case '{case_id}' item '{item_id}' has invalid 'chance' value '{chance}'.")
            value = item.get("value")
            if not isinstance(value, int) or value < 0:
                errors.append(f"Case '{case_id}' item '{item_id}' has invalid 'value' '{value}'.")
            variations = item.get("variations")
            if variations is None:
                continue
            if not isinstance(variations, list):
                errors.append(f"Case '{case_id}' item '{item_id}' variations must be an array.")
                continue
            for var in variations:
                if not isinstance(var, dict) or not isinstance(var.get("name"), str):
                    errors.append(f"Case '{case_id}' item '{item_id}' has a variation without 'name'.")
                    continue
                var_chance = var.get("chance")
                if not isinstance(var_chance, (int, float)) or var_chance < 0:
                    errors.append(
                        f"Case '{case_id}' item '{item_id}' variation '{var['name']}' has invalid 'chance'."
                    )
                var_price = var.get("price", 0)
                if not isinstance(var_price, int) or var_price < 0:
                    errors.append(
                        f"Case '{case_id}' item '{item_id}' variation '{var['name']}' has invalid 'price'."
                    )

    if errors:
        return errors
    return catalog_weight_errors([parse_case(entry) for entry in cases_raw], tolerance=tolerance)


def dump_catalog(cases: Iterable[CaseDefinition]) -> dict[str, Any]:
    return {"cases": [dump_case(case) for case in cases]}


def parse_accounts(data: dict[str, Any]) -> list[Account]:
    """Parse an exported account registry; rejects duplicates and negative balances."""
    entries = data.get("accounts") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ValidationError("Account export must contain 'accounts' array.", errors=[])
    errors: list[str] = []
    accounts: list[Account] = []
    seen: set[int] = set()
    for idx, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict) or "accountId" not in entry:
            errors.append(f"Account #{idx} must define 'accountId'.")
            continue
        try:
            account = parse_account(entry)
        except (TypeError, ValueError) as exc:
            errors.append(f"Account #{idx} is malformed: {exc}")
            continue
        if account.account_id in seen:
            errors.append(f"Account {account.account_id} defined multiple times.")
        if account.balance < 0:
            errors.append(f"Account {account.account_id} has negative balance.")
        seen.add(account.account_id)
        accounts.append(account)
    if errors:
        raise ValidationError(_format_errors("Account import failed", errors), errors=errors)
    return accounts


def dump_accounts(accounts: Iterable[Account]) -> dict[str, Any]:
    return {"accounts": [dump_account(account) for account in accounts]}


def _format_errors(prefix: str, errors: Iterable[str]) -> str:
    formatted = "\n".join(f"- {err}" for err in errors)
    return f"{prefix}:\n{formatted}"
