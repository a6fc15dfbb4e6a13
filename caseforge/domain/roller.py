"""Weighted case rolls.

``roll_case`` is pure: every random decision comes from ``draw``, a callable
returning independent uniform values in ``[0, 100)``. Draw order is fixed:
item selection, then (only for items with variations) the bonus gate, then
(only when the gate passes) the variation selection.
"""

from __future__ import annotations

from random import Random
from typing import Callable, Sequence

from .cases import CaseDefinition, ItemDefinition, Variation, VariationDescriptor, WonItem
from .exceptions import NotFound

Draw = Callable[[], float]

DEFAULT_VARIATION_CHANCE = 10.0


def select_index(weights: Sequence[float], draw: float) -> int:
    """Cumulative-sum selection; the last entry wins when drift leaves no match."""
    if not weights:
        raise ValueError("Cannot select from an empty weight list")
    cumulative = 0.0
    for index, weight in enumerate(weights):
        cumulative += float(weight)
        if draw < cumulative:
            return index
    return len(weights) - 1


def roll_case(
    case: CaseDefinition,
    draw: Draw,
    *,
    variation_chance: float = DEFAULT_VARIATION_CHANCE,
) -> WonItem:
    if not case.items:
        raise NotFound(f"Case {case.case_id} has no items")
    item = case.items[select_index([entry.drop_weight for entry in case.items], draw())]
    if item.variations and draw() < variation_chance:
        variation = item.variations[
            select_index([entry.drop_weight for entry in item.variations], draw())
        ]
        return _with_variation(case, item, variation)
    return WonItem(
        item_id=item.item_id,
        name=item.name,
        rarity=item.rarity,
        value=item.base_value,
        case_id=case.case_id,
        image=item.image,
    )


def _with_variation(case: CaseDefinition, item: ItemDefinition, variation: Variation) -> WonItem:
    return WonItem(
        item_id=item.item_id,
        name=f"{item.name} ({variation.name})",
        rarity=item.rarity,
        value=variation.price or item.base_value,
        case_id=case.case_id,
        image=variation.image or item.image,
        variation=VariationDescriptor(
            name=variation.name,
            price=variation.price,
            drop_weight=variation.drop_weight,
            image=variation.image,
        ),
    )


class RewardRoller:
    """Bind ``roll_case`` to a random source."""

    def __init__(self, rng: Random | None = None, *, variation_chance: float = DEFAULT_VARIATION_CHANCE) -> None:
        self._rng = rng or Random()
        self._variation_chance = variation_chance

    def draw(self) -> float:
        return self._rng.random() * 100.0

    def roll(self, case: CaseDefinition) -> WonItem:
        return roll_case(case, self.draw, variation_chance=self._variation_chance)

    def roll_many(self, case: CaseDefinition, count: int) -> list[WonItem]:
        return [self.roll(case) for _ in range(count)]
