"""Case catalog models and utilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from .exceptions import NotFound, ValidationError

WEIGHT_TOTAL = 100.0


class RarityTier(str, Enum):
    BLUE = "blue"
    PURPLE = "purple"
    PINK = "pink"
    RED = "red"
    GOLD = "gold"
    CONTRABAND = "contraband"


# CS2 drop odds per tier, in percent.
RARITY_SHARES: dict[RarityTier, float] = {
    RarityTier.BLUE: 80.07,
    RarityTier.PURPLE: 15.98,
    RarityTier.PINK: 3.20,
    RarityTier.RED: 0.64,
    RarityTier.GOLD: 0.1,
    RarityTier.CONTRABAND: 0.01,
}

# tier: (placeholder count, placeholder name, base value, value step)
_GENERATED_DEFAULTS: dict[RarityTier, tuple[int, str, int, int]] = {
    RarityTier.BLUE: (5, "🔵 Синий предмет", 50, 10),
    RarityTier.PURPLE: (3, "🟣 Фиолетовый предмет", 150, 25),
    RarityTier.PINK: (3, "🩷 Розовый предмет", 300, 50),
    RarityTier.RED: (2, "🔴 Красный предмет", 600, 150),
    RarityTier.GOLD: (2, "🌟 Золотой предмет", 2000, 1000),
    RarityTier.CONTRABAND: (1, "❗ Контрабанда", 10000, 5000),
}


@dataclass(slots=True)
class Variation:
    """Alternative look of an item with its own drop weight and price."""

    name: str
    drop_weight: float
    price: int
    image: str | None = None


@dataclass(slots=True)
class ItemDefinition:
    item_id: str
    name: str
    rarity: str
    base_value: int
    drop_weight: float
    variations: tuple[Variation, ...] = field(default_factory=tuple)
    image: str | None = None


@dataclass(slots=True)
class CaseDefinition:
    """Purchasable weighted lottery over item definitions."""

    case_id: str
    name: str
    price: int
    items: tuple[ItemDefinition, ...] = field(default_factory=tuple)
    xp_reward: int = 10
    enabled: bool = True

    def get_item(self, item_id: str) -> ItemDefinition:
        for item in self.items:
            if item.item_id == item_id:
                return item
        raise NotFound(f"Item {item_id} not found in case {self.case_id}")


@dataclass(slots=True, frozen=True)
class VariationDescriptor:
    """Resolved variation attached to a won or owned item."""

    name: str
    price: int
    drop_weight: float
    image: str | None = None


@dataclass(slots=True, frozen=True)
class WonItem:
    """Outcome of a single roll; minting is left to the caller."""

    item_id: str
    name: str
    rarity: str
    value: int
    case_id: str | None = None
    image: str | None = None
    variation: VariationDescriptor | None = None


def weights_within_tolerance(weights: Iterable[float], tolerance: float) -> bool:
    total = sum(float(weight) for weight in weights)
    return abs(total - WEIGHT_TOTAL) <= tolerance


def case_weight_errors(case: CaseDefinition, *, tolerance: float = 0.1) -> list[str]:
    """Return human readable weight problems for a case, empty when valid."""
    errors: list[str] = []
    if not case.items:
        errors.append(f"Case '{case.case_id}' does not contain any items.")
        return errors
    for item in case.items:
        if item.drop_weight < 0:
            errors.append(f"Case '{case.case_id}' item '{item.item_id}' has negative weight.")
    total = sum(item.drop_weight for item in case.items)
    if not weights_within_tolerance((item.drop_weight for item in case.items), tolerance):
        errors.append(
            f"Case '{case.case_id}' item weights do not sum to 100 (current {total:g})."
        )
    for item in case.items:
        if not item.variations:
            continue
        var_total = sum(var.drop_weight for var in item.variations)
        if not weights_within_tolerance((var.drop_weight for var in item.variations), tolerance):
            errors.append(
                f"Case '{case.case_id}' item '{item.item_id}' variation weights "
                f"do not sum to 100 (current {var_total:g})."
            )
    return errors


def catalog_weight_errors(cases: Sequence[CaseDefinition], *, tolerance: float = 0.1) -> list[str]:
    errors: list[str] = []
    seen: set[str] = set()
    for case in cases:
        if case.case_id in seen:
            errors.append(f"Case id '{case.case_id}' defined multiple times.")
        seen.add(case.case_id)
        if case.price < 0:
            errors.append(f"Case '{case.case_id}' has negative price.")
        errors.extend(case_weight_errors(case, tolerance=tolerance))
    return errors


def default_cases() -> list[CaseDefinition]:
    """Catalog seeded into an empty ledger."""
    entries = (
        ("blue_1", "🔵 Синий камень", RarityTier.BLUE, 10, 50),
        ("blue_2", "🔵 Синий кристалл", RarityTier.BLUE, 10, 60),
        ("blue_3", "🔵 Синяя руда", RarityTier.BLUE, 10, 70),
        ("blue_4", "🔵 Синий осколок", RarityTier.BLUE, 10, 80),
        ("blue_5", "🔵 Синий артефакт", RarityTier.BLUE, 10, 90),
        ("purple_1", "🟣 Фиолетовый камень", RarityTier.PURPLE, 8.33, 150),
        ("purple_2", "🟣 Фиолетовый кристалл", RarityTier.PURPLE, 8.33, 175),
        ("purple_3", "🟣 Фиолетовый артефакт", RarityTier.PURPLE, 8.34, 200),
        ("pink_1", "🩷 Розовый камень", RarityTier.PINK, 5, 300),
        ("pink_2", "🩷 Розовый кристалл", RarityTier.PINK, 5, 350),
        ("pink_3", "🩷 Розовый артефакт", RarityTier.PINK, 5, 400),
        ("red_1", "🔴 Красный камень", RarityTier.RED, 4, 600),
        ("red_2", "🔴 Красный кристалл", RarityTier.RED, 4, 750),
        ("gold_1", "🌟 Золотой артефакт", RarityTier.GOLD, 1, 2000),
        ("gold_2", "🌟 Золотой реликт", RarityTier.GOLD, 1, 3000),
    )
    items = tuple(
        ItemDefinition(
            item_id=item_id,
            name=name,
            rarity=rarity.value,
            base_value=value,
            drop_weight=float(weight),
        )
        for item_id, name, rarity, weight, value in entries
    )
    return [CaseDefinition(case_id="basic_case", name="Базовый кейс", price=100, items=items)]


def generate_items(
    entries: Mapping[RarityTier | str, Sequence[Mapping[str, Any]] | None] | None = None,
) -> tuple[ItemDefinition, ...]:
    """Build a balanced item list using the CS2 rarity split.

    Each tier's share is divided evenly between its entries. Entries may set
    ``id``, ``name``, ``value`` and ``image``; anything missing is filled with
    numbered placeholders. A tier absent from ``entries`` gets its default
    number of placeholder items, while an explicitly empty list drops the tier
    and the remaining shares are scaled back up to 100.
    """
    given = {RarityTier(key): rows for key, rows in (entries or {}).items()}
    tiers: list[tuple[RarityTier, list[Mapping[str, Any]]]] = []
    for tier, (count, _, _, _) in _GENERATED_DEFAULTS.items():
        rows = given.get(tier)
        rows = [{} for _ in range(count)] if rows is None else list(rows)
        if rows:
            tiers.append((tier, rows))
    if not tiers:
        raise ValidationError("At least one item is required to generate a case.")

    scale = WEIGHT_TOTAL / sum(RARITY_SHARES[tier] for tier, _ in tiers)
    items: list[ItemDefinition] = []
    for tier, rows in tiers:
        _, label, base, step = _GENERATED_DEFAULTS[tier]
        weight = RARITY_SHARES[tier] * scale / len(rows)
        for index, row in enumerate(rows, start=1):
            items.append(
                ItemDefinition(
                    item_id=row.get("id") or f"{tier.value}_{index}",
                    name=row.get("name") or f"{label} {index}",
                    rarity=tier.value,
                    base_value=int(row.get("value") or base + (index - 1) * step),
                    drop_weight=weight,
                    image=row.get("image"),
                )
            )
    return tuple(items)
