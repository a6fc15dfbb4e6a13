"""Monte-Carlo evaluation of case rolls."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from random import Random

from ..app import LedgerApp
from ..domain.cases import CaseDefinition, WonItem
from ..domain.exceptions import InvalidAmount
from ..domain.roller import RewardRoller


@dataclass(slots=True)
class SimulationResult:
    case_id: str
    price: int
    openings: int
    total_value: int = 0
    rarities: Counter = field(default_factory=Counter)
    items: Counter = field(default_factory=Counter)
    variation_hits: int = 0
    best_value: int = 0

    @property
    def average_value(self) -> float:
        return self.total_value / self.openings if self.openings else 0.0

    @property
    def return_to_player(self) -> float:
        """Average payout per coin spent; 1.0 means break-even."""
        spent = self.price * self.openings
        return self.total_value / spent if spent else 0.0

    def merge(self, won: WonItem) -> None:
        self.total_value += won.value
        self.rarities[won.rarity] += 1
        self.items[won.item_id] += 1
        if won.variation is not None:
            self.variation_hits += 1
        self.best_value = max(self.best_value, won.value)


def expected_value(case: CaseDefinition, *, variation_chance: float = 10.0) -> float:
    """Analytic expected payout of one opening under the gated variation policy."""
    total_weight = sum(item.drop_weight for item in case.items) or 1.0
    gate = variation_chance / 100.0
    result = 0.0
    for item in case.items:
        value = float(item.base_value)
        if item.variations:
            var_weight = sum(var.drop_weight for var in item.variations) or 1.0
            var_value = sum(
                (var.price or item.base_value) * var.drop_weight for var in item.variations
            ) / var_weight
            value = (1 - gate) * item.base_value + gate * var_value
        result += value * item.drop_weight / total_weight
    return result


class EconomySimulator:
    """Roll a case many times without touching any account."""

    def __init__(self, app: LedgerApp, *, rng: Random | None = None) -> None:
        self._app = app
        self._roller = RewardRoller(
            rng or Random(), variation_chance=app.config.roll.variation_chance
        )

    def simulate(self, case_id: str, *, openings: int = 1000) -> SimulationResult:
        if openings < 1:
            raise InvalidAmount("Simulate at least one opening")
        case = self._app.store.get_case(case_id)
        result = SimulationResult(case_id=case.case_id, price=case.price, openings=openings)
        for won in self._roller.roll_many(case, openings):
            result.merge(won)
        return result
